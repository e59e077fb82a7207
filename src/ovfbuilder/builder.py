# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Builder: prepare a configuration, then run the VM build pipeline.

Usage::

    builder = Builder()
    warnings = builder.prepare(template)      # may raise ConfigError
    outcome = await builder.run(ui)           # may raise DriverError

``cancel()`` may be called from a signal handler at any time; the build
stops before the next step and cleans up.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import httpx

from .artifact import Artifact
from .config import BuildConfig, load_config
from .driver import Driver, new_driver
from .hook import Hook, NoopHook
from .pipeline import PipelineRunner, RunOutcome, Step
from .state import StateBag, StateKey
from .steps import (
    StepAttachFloppy,
    StepAttachGuestAdditions,
    StepConfigureVRDP,
    StepConnect,
    StepCreateFloppy,
    StepDownload,
    StepDownloadGuestAdditions,
    StepExport,
    StepForwardSSH,
    StepHTTPServer,
    StepImport,
    StepOutputDir,
    StepProvision,
    StepRemoveDevices,
    StepRun,
    StepShutdown,
    StepSuppressMessages,
    StepTypeBootCommand,
    StepUploadGuestAdditions,
    StepUploadVersion,
    StepVBoxManage,
)
from .ui import Ui

logger = logging.getLogger(__name__)

DriverFactory = Callable[[], Awaitable[Driver]]


def build_steps(config: BuildConfig) -> list[Step]:
    """The ordered steps of a build for a prepared *config*."""
    return [
        StepOutputDir(path=config.output_directory, force=config.force),
        StepSuppressMessages(),
        StepCreateFloppy(
            files=tuple(config.floppy_files),
            directories=tuple(config.floppy_directories),
        ),
        StepHTTPServer(
            directory=config.http_directory,
            port_min=config.http_port_min,
            port_max=config.http_port_max,
        ),
        StepDownloadGuestAdditions(
            mode=config.guest_additions_mode,
            url=config.guest_additions_url,
            sha256=config.guest_additions_sha256,
        ),
        StepDownload(
            description="OVF/OVA",
            urls=(config.source_path,),
            checksum=config.checksum,
            checksum_type=config.checksum_type,
            result_key=StateKey.VM_PATH,
            extension="ova",
            target_path=config.target_path,
        ),
        StepImport(vm_name=config.vm_name, import_flags=tuple(config.import_flags)),
        StepAttachGuestAdditions(mode=config.guest_additions_mode),
        StepConfigureVRDP(
            bind_address=config.vrdp_bind_address,
            port_min=config.vrdp_port_min,
            port_max=config.vrdp_port_max,
        ),
        StepAttachFloppy(),
        StepForwardSSH(
            communicator=config.communicator,
            guest_port=config.ssh_port,
            host_port_min=config.ssh_host_port_min,
            host_port_max=config.ssh_host_port_max,
            skip_nat_mapping=config.ssh_skip_nat_mapping,
        ),
        StepVBoxManage(commands=tuple(tuple(c) for c in config.vboxmanage)),
        StepRun(boot_wait=config.boot_wait_seconds, headless=config.headless),
        StepTypeBootCommand(boot_command=tuple(config.boot_command)),
        StepConnect(
            communicator=config.communicator,
            host=config.ssh_host,
            username=config.ssh_username,
            password=config.ssh_password,
            key_file=config.ssh_private_key_file,
            timeout=config.ssh_wait_timeout_seconds,
        ),
        StepUploadVersion(path=config.virtualbox_version_file or ""),
        StepUploadGuestAdditions(
            mode=config.guest_additions_mode,
            path=config.guest_additions_path,
        ),
        StepProvision(),
        StepShutdown(
            command=config.shutdown_command,
            timeout=config.shutdown_timeout_seconds,
            post_delay=config.post_shutdown_delay_seconds,
        ),
        StepRemoveDevices(),
        StepVBoxManage(commands=tuple(tuple(c) for c in config.vboxmanage_post)),
        StepExport(
            format=config.format,
            output_dir=config.output_directory,
            export_opts=tuple(config.export_opts),
            communicator=config.communicator,
            skip_nat_mapping=config.ssh_skip_nat_mapping,
        ),
    ]


def _debug_pause(ui: Ui) -> Callable[[Step, StateBag], Awaitable[None]]:
    async def pause(step: Step, state: StateBag) -> None:
        await asyncio.to_thread(
            ui.ask, f"Pausing before {step.name}. Press enter to continue.",
        )
    return pause


class Builder:
    """Prepares and runs one VirtualBox OVF build.

    Args:
        driver_factory: Creates the VirtualBox driver at the start of
            :meth:`run`.  Defaults to :func:`ovfbuilder.driver.new_driver`.
        client: HTTP client used to fetch checksum manifests in
            :meth:`prepare`.
    """

    def __init__(
        self,
        *,
        driver_factory: DriverFactory = new_driver,
        client: httpx.Client | None = None,
    ) -> None:
        self._driver_factory = driver_factory
        self._client = client
        self._config: BuildConfig | None = None
        self._runner: PipelineRunner | None = None
        self._cancel_requested = False

    @property
    def config(self) -> BuildConfig | None:
        return self._config

    def prepare(self, raw: Any) -> list[str]:
        """Decode and validate *raw*, resolving the source checksum.

        Returns:
            Warnings for the user.

        Raises:
            ConfigError: With every configuration problem found.
        """
        config, warnings = load_config(raw, client=self._client)
        self._config = config
        for warning in warnings:
            logger.debug("Config warning: %s", warning)
        return warnings

    async def run(
        self,
        ui: Ui,
        hook: Hook | None = None,
        cache: Path | None = None,
    ) -> RunOutcome:
        """Run the build.

        Args:
            ui: Where progress goes.
            hook: Provisioning hook; does nothing when omitted.
            cache: Download cache directory.

        Returns:
            The outcome: succeeded (with the artifact), errored, cancelled
            or halted.

        Raises:
            RuntimeError: If :meth:`prepare` has not been called.
            DriverError: If VirtualBox is not usable.  No step runs.
        """
        config = self._config
        if config is None:
            raise RuntimeError("prepare() must be called before run()")

        driver = await self._driver_factory()

        state = StateBag()
        state.put(StateKey.CONFIG, config)
        state.put(StateKey.DEBUG, config.debug)
        state.put(StateKey.DRIVER, driver)
        state.put(StateKey.UI, ui)
        state.put(StateKey.HOOK, hook if hook is not None else NoopHook())
        if cache is not None:
            state.put(StateKey.CACHE, cache)

        def make_artifact(_state: StateBag) -> Artifact:
            return Artifact.from_output_dir(config.output_directory, config.format)

        runner = PipelineRunner(
            build_steps(config),
            artifact_factory=make_artifact,
            pause_fn=_debug_pause(ui) if config.debug else None,
        )
        self._runner = runner
        if self._cancel_requested:
            runner.cancel()

        logger.info("Starting build %s (%d steps)", config.build_name, len(runner))
        return await runner.run(state)

    def cancel(self) -> None:
        """Stop the build before its next step.  Safe from signal handlers."""
        self._cancel_requested = True
        if self._runner is not None:
            self._runner.cancel()

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Async driver for VirtualBox's ``VBoxManage`` command.

Every VirtualBox operation a build needs goes through :class:`Driver`.
:class:`VBoxManageDriver` implements it by running ``VBoxManage`` as a
subprocess; tests substitute their own implementation.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shutil
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# VBoxManage sometimes exits 0 but still reports an error on stderr
_ERROR_RE = re.compile(r"VBoxManage(?:\.exe)?: error:", re.IGNORECASE)
_VERSION_RE = re.compile(r"(\d+\.\d+[^_r\s]*)")
_RUNNING_STATES = ("running", "paused", "stopping")


class DriverError(Exception):
    """Error from VBoxManage."""

    def __init__(self, message: str, returncode: int | None = None):
        super().__init__(message)
        self.returncode = returncode


@runtime_checkable
class Driver(Protocol):
    """Operations the build steps perform on VirtualBox."""

    async def vboxmanage(self, *args: str) -> str:
        """Run an arbitrary VBoxManage command and return its stdout."""
        ...

    async def import_appliance(self, path: str, name: str, flags: list[str]) -> None: ...

    async def delete(self, name: str) -> None: ...

    async def is_running(self, name: str) -> bool: ...

    async def stop(self, name: str) -> None: ...

    async def suppress_messages(self) -> None: ...

    async def version(self) -> str: ...


class VBoxManageDriver:
    """:class:`Driver` backed by the ``VBoxManage`` executable."""

    def __init__(self, executable: str):
        self._executable = executable

    @property
    def executable(self) -> str:
        return self._executable

    async def vboxmanage(self, *args: str) -> str:
        """Run ``VBoxManage`` with *args*.

        Returns:
            Captured stdout.

        Raises:
            DriverError: On a non-zero exit status or an error on stderr.
        """
        logger.debug("Executing VBoxManage: %s", list(args))
        proc = await asyncio.create_subprocess_exec(
            self._executable,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        raw_out, raw_err = await proc.communicate()
        stdout = raw_out.decode(errors="replace").strip()
        stderr = raw_err.decode(errors="replace").strip()
        logger.debug("stdout: %s", stdout)
        logger.debug("stderr: %s", stderr)

        if proc.returncode != 0:
            raise DriverError(
                f"VBoxManage error: {stderr or stdout or f'exit status {proc.returncode}'}",
                proc.returncode,
            )
        if _ERROR_RE.search(stderr):
            raise DriverError(f"VBoxManage error: {stderr}", proc.returncode)

        return stdout

    async def import_appliance(self, path: str, name: str, flags: list[str]) -> None:
        """Import the appliance at *path* as VM *name*."""
        await self.vboxmanage(
            "import", path,
            "--vsys", "0",
            "--vmname", name,
            *flags,
        )

    async def delete(self, name: str) -> None:
        """Unregister VM *name* and delete its files."""
        await self.vboxmanage("unregistervm", name, "--delete")

    async def is_running(self, name: str) -> bool:
        output = await self.vboxmanage("showvminfo", name, "--machinereadable")
        for line in output.splitlines():
            if line.startswith("VMState="):
                state = line.split("=", 1)[1].strip().strip('"')
                return state in _RUNNING_STATES
        return False

    async def stop(self, name: str) -> None:
        """Power off VM *name* (hard stop)."""
        await self.vboxmanage("controlvm", name, "poweroff")

    async def suppress_messages(self) -> None:
        """Turn off the GUI notification bubbles VirtualBox shows."""
        await self.vboxmanage("setextradata", "global", "GUI/SuppressMessages", "all")

    async def version(self) -> str:
        """VirtualBox version, e.g. ``"7.0.12"``.

        Raises:
            DriverError: If the version cannot be determined.
        """
        output = await self.vboxmanage("--version")
        match = _VERSION_RE.search(output)
        if match is None:
            raise DriverError(f"No VirtualBox version found in: {output!r}")
        return match.group(1)


def find_vboxmanage() -> str | None:
    """Locate ``VBoxManage`` via ``VBOX_INSTALL_PATH`` or ``PATH``."""
    install_path = os.environ.get("VBOX_INSTALL_PATH") or os.environ.get("VBOX_MSI_INSTALL_PATH")
    if install_path:
        for directory in install_path.split(os.pathsep):
            for name in ("VBoxManage", "VBoxManage.exe"):
                candidate = os.path.join(directory, name)
                if os.path.isfile(candidate):
                    return candidate
    return shutil.which("VBoxManage")


async def new_driver() -> VBoxManageDriver:
    """Create a driver and make sure VirtualBox answers.

    Raises:
        DriverError: If VBoxManage cannot be found or does not run.
    """
    executable = find_vboxmanage()
    if executable is None:
        raise DriverError("VBoxManage not found. Is VirtualBox installed?")

    driver = VBoxManageDriver(executable)
    try:
        version = await driver.version()
    except OSError as e:
        raise DriverError(f"Could not run {executable}: {e}") from e
    logger.info("Using VirtualBox %s (%s)", version, executable)
    return driver

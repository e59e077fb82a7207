# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Build configuration: decoding, validation and checksum resolution.

A build template is a flat JSON object.  Turning it into a usable
:class:`BuildConfig` happens in two phases:

1. :func:`decode_config` checks the *shape*: unknown keys and values of
   the wrong type are rejected by the pydantic model.
2. :func:`prepare_config` checks the *meaning*: each concern (source and
   checksum, export, floppy, HTTP, output, run, shutdown, SSH, VBoxManage
   commands, version file) has its own small validator.  They always run
   in the same order, errors from all of them are collected into one
   :class:`ConfigError`, and warnings are returned separately.  Defaults
   are filled in along the way, so the model is modified in place.

Checksum resolution
-------------------
A source appliance is usually several gigabytes, so its checksum must be
known before the download starts.  It can be given inline (``checksum``)
or through ``checksum_url``, a manifest that is fetched and searched
during :func:`prepare_config`; see :mod:`ovfbuilder.checksum` for the
manifest formats.  An inline checksum always wins.  A ``checksum_type``
of ``none`` turns verification off, with a warning.

Adding a new option
-------------------
1. Add a field to :class:`BuildConfig`.
2. Validate or default it in the matching ``_prepare_*`` function.
3. Hand it to the step that needs it in :mod:`ovfbuilder.builder`.
"""

from __future__ import annotations

import logging
import os
import re
import time
from typing import Any, Callable
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from .checksum import ChecksumError, fetch_checksum, hash_for_type
from .download import downloadable_url
from .floppy import is_glob

logger = logging.getLogger(__name__)

GUEST_ADDITIONS_MODE_DISABLE = "disable"
GUEST_ADDITIONS_MODE_ATTACH = "attach"
GUEST_ADDITIONS_MODE_UPLOAD = "upload"
GUEST_ADDITIONS_MODES = (
    GUEST_ADDITIONS_MODE_DISABLE,
    GUEST_ADDITIONS_MODE_ATTACH,
    GUEST_ADDITIONS_MODE_UPLOAD,
)

EXPORT_FORMATS = ("ovf", "ova")
COMMUNICATORS = ("ssh", "none")

DEFAULT_BUILD_NAME = "virtualbox-ovf"
DEFAULT_GUEST_ADDITIONS_PATH = "VBoxGuestAdditions.iso"
DEFAULT_VERSION_FILE = ".vbox_version"


class ConfigError(Exception):
    """One or more configuration problems.

    Attributes:
        errors: Every problem found, in validator order.
        warnings: Advisory messages collected before the failure.
    """

    def __init__(self, errors: list[str], warnings: list[str] | None = None):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        super().__init__(self._format())

    def _format(self) -> str:
        noun = "error" if len(self.errors) == 1 else "errors"
        lines = "\n".join(f"* {e}" for e in self.errors)
        return f"{len(self.errors)} {noun} occurred:\n\n{lines}"


class BuildConfig(BaseModel):
    """Flat configuration of one build.

    Field names are the template keys.  Empty strings mean "not set";
    :func:`prepare_config` replaces them with defaults.
    """

    model_config = ConfigDict(extra="forbid")

    # Build
    build_name: str = DEFAULT_BUILD_NAME
    force: bool = False
    debug: bool = False

    # Source appliance
    source_path: str = ""
    checksum: str = ""
    checksum_url: str = ""
    checksum_type: str = ""
    target_path: str = ""

    # Import
    vm_name: str = ""
    import_opts: str = ""
    import_flags: list[str] = []

    # Floppy
    floppy_files: list[str] = []
    floppy_directories: list[str] = []

    # HTTP server
    http_directory: str = ""
    http_port_min: int = 8000
    http_port_max: int = 9000

    # Export
    format: str = ""
    export_opts: list[str] = []
    output_directory: str = ""

    # Run
    headless: bool = False
    boot_wait: str = ""
    boot_command: list[str] = []
    vrdp_bind_address: str = ""
    vrdp_port_min: int = 5900
    vrdp_port_max: int = 6000

    # Shutdown
    shutdown_command: str = ""
    shutdown_timeout: str = ""
    post_shutdown_delay: str = ""

    # Communicator
    communicator: str = "ssh"
    ssh_host: str = "127.0.0.1"
    ssh_port: int = 22
    ssh_username: str = ""
    ssh_password: str = ""
    ssh_private_key_file: str = ""
    ssh_wait_timeout: str = ""
    ssh_host_port_min: int = 2222
    ssh_host_port_max: int = 4444
    ssh_skip_nat_mapping: bool = False

    # VBoxManage
    vboxmanage: list[list[str]] = []
    vboxmanage_post: list[list[str]] = []
    virtualbox_version_file: str | None = None

    # Guest additions
    guest_additions_mode: str = ""
    guest_additions_path: str = ""
    guest_additions_url: str = ""
    guest_additions_sha256: str = ""

    @property
    def boot_wait_seconds(self) -> float:
        return parse_duration(self.boot_wait or "0s")

    @property
    def shutdown_timeout_seconds(self) -> float:
        return parse_duration(self.shutdown_timeout or "0s")

    @property
    def post_shutdown_delay_seconds(self) -> float:
        return parse_duration(self.post_shutdown_delay or "0s")

    @property
    def ssh_wait_timeout_seconds(self) -> float:
        return parse_duration(self.ssh_wait_timeout or "0s")


# =============================================================================
# Durations
# =============================================================================

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: str) -> float:
    """Parse a Go-style duration (``"1h30m"``, ``"10s"``, ``"0"``) into seconds.

    Raises:
        ValueError: If *value* is not a duration.
    """
    text = value.strip()
    if text in ("0", "+0", "-0"):
        return 0.0

    sign = 1.0
    if text[:1] in ("+", "-"):
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    if not text:
        raise ValueError(f"invalid duration {value!r}")

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    return sign * total


# =============================================================================
# Decoding
# =============================================================================

def decode_config(raw: Any) -> BuildConfig:
    """Decode a raw template mapping into a :class:`BuildConfig`.

    Raises:
        ConfigError: With one message per unknown key or mistyped value.
    """
    if not isinstance(raw, dict):
        raise ConfigError([f"Template must be a JSON object, got {type(raw).__name__}"])

    try:
        return BuildConfig.model_validate(raw)
    except ValidationError as e:
        errors = []
        for err in e.errors():
            loc = ".".join(str(p) for p in err["loc"]) or "<root>"
            if err["type"] == "extra_forbidden":
                errors.append(f"Unknown configuration key: {loc}")
            else:
                errors.append(f"{loc}: {err['msg']}")
        raise ConfigError(errors) from e


# =============================================================================
# Source and checksum
# =============================================================================

def resolve_source(
    config: BuildConfig,
    *,
    client: httpx.Client | None = None,
) -> tuple[list[str], list[str]]:
    """Validate the source appliance and resolve its checksum in place.

    When ``checksum`` is empty and ``checksum_url`` is set, the manifest
    is fetched now (blocking) and searched for the source file name.
    A fetch failure, or a manifest without the file, stops resolution.

    Args:
        config: Configuration to update.
        client: HTTP client for fetching manifests (a default one is used
            when omitted).

    Returns:
        ``(warnings, errors)``.
    """
    warnings: list[str] = []
    errors: list[str] = []

    if not config.source_path:
        errors.append("The source_path must be specified.")

    if not config.checksum_type:
        errors.append("The checksum_type must be specified.")
    else:
        config.checksum_type = config.checksum_type.lower()
        if config.checksum_type != "none":
            checksum_url = config.checksum_url
            if urlparse(checksum_url).scheme == "":
                # No scheme: nothing we can fetch
                checksum_url = ""

            if not config.checksum and not checksum_url:
                errors.append("Due to large file sizes, a checksum is required")
                return warnings, errors

            if hash_for_type(config.checksum_type) is None:
                errors.append(f"Unsupported checksum type: {config.checksum_type}")
                return warnings, errors

            if not config.checksum:
                try:
                    config.checksum = fetch_checksum(
                        checksum_url,
                        config.source_path,
                        config.checksum_type,
                        client=client,
                    )
                except ChecksumError as e:
                    errors.append(str(e))
                    return warnings, errors
                logger.debug("Resolved checksum %s from %s", config.checksum, checksum_url)

    config.checksum = config.checksum.lower()

    if config.source_path:
        try:
            config.source_path = downloadable_url(config.source_path)
        except ValueError as e:
            errors.append(f"Failed to parse source_path: {e}")

    if config.checksum_type == "none":
        config.checksum = "none"
        warnings.append(
            "A checksum type of 'none' was specified. Since OVA files can be big,\n"
            "a checksum is highly recommended."
        )

    return warnings, errors


# =============================================================================
# Other sub-validators
# =============================================================================

def _prepare_export(config: BuildConfig) -> list[str]:
    if not config.format:
        config.format = "ovf"
    if config.format not in EXPORT_FORMATS:
        return ["invalid format, only 'ovf' or 'ova' are allowed"]
    return []


def _prepare_export_opts(config: BuildConfig) -> list[str]:
    errors = []
    for i, opt in enumerate(config.export_opts):
        if not opt.strip():
            errors.append(f"export_opts[{i}] must not be empty")
    return errors


def _prepare_floppy(config: BuildConfig) -> list[str]:
    # Glob patterns may legitimately match nothing yet
    errors = []
    for path in config.floppy_files:
        if not is_glob(path) and not os.path.isfile(path):
            errors.append(f"Bad Floppy disk file '{path}': no such file")
    for path in config.floppy_directories:
        if not os.path.isdir(path):
            errors.append(f"Bad Floppy disk directory '{path}': no such directory")
    return errors


def _check_port_range(name: str, low: int, high: int) -> list[str]:
    if low > high:
        return [f"{name}_port_min must be less than {name}_port_max"]
    return []


def _prepare_http(config: BuildConfig) -> list[str]:
    errors = _check_port_range("http", config.http_port_min, config.http_port_max)
    if config.http_directory and not os.path.isdir(config.http_directory):
        errors.append(f"http_directory does not exist: {config.http_directory}")
    return errors


def _prepare_output(config: BuildConfig) -> list[str]:
    if not config.output_directory:
        config.output_directory = f"output-{config.build_name}"
    if not config.force and os.path.exists(config.output_directory):
        return [
            f"Output directory '{config.output_directory}' already exists. "
            "It must not exist."
        ]
    return []


def _check_duration(name: str, value: str) -> list[str]:
    try:
        parse_duration(value)
    except ValueError as e:
        return [f"Failed parsing {name}: {e}"]
    return []


def _prepare_run(config: BuildConfig) -> list[str]:
    if not config.boot_wait:
        config.boot_wait = "10s"
    if not config.vrdp_bind_address:
        config.vrdp_bind_address = "127.0.0.1"

    errors = _check_duration("boot_wait", config.boot_wait)
    errors += _check_port_range("vrdp", config.vrdp_port_min, config.vrdp_port_max)
    return errors


def _prepare_shutdown(config: BuildConfig) -> list[str]:
    if not config.shutdown_timeout:
        config.shutdown_timeout = "5m"
    if not config.post_shutdown_delay:
        config.post_shutdown_delay = "0s"

    errors = _check_duration("shutdown_timeout", config.shutdown_timeout)
    errors += _check_duration("post_shutdown_delay", config.post_shutdown_delay)
    return errors


def _prepare_ssh(config: BuildConfig) -> list[str]:
    if not config.ssh_wait_timeout:
        config.ssh_wait_timeout = "5m"

    if config.communicator not in COMMUNICATORS:
        return [f"communicator must be one of: {', '.join(COMMUNICATORS)}"]

    errors = _check_port_range("ssh_host", config.ssh_host_port_min, config.ssh_host_port_max)
    errors += _check_duration("ssh_wait_timeout", config.ssh_wait_timeout)

    if config.communicator == "ssh":
        if not config.ssh_username:
            errors.append("An ssh_username must be specified")
        if config.ssh_private_key_file and not os.path.isfile(config.ssh_private_key_file):
            errors.append(f"ssh_private_key_file is invalid: {config.ssh_private_key_file}")
    return errors


def _check_commands(name: str, commands: list[list[str]]) -> list[str]:
    return [f"{name}[{i}] must not be empty" for i, cmd in enumerate(commands) if not cmd]


def _prepare_vboxmanage(config: BuildConfig) -> list[str]:
    return _check_commands("vboxmanage", config.vboxmanage)


def _prepare_vboxmanage_post(config: BuildConfig) -> list[str]:
    return _check_commands("vboxmanage_post", config.vboxmanage_post)


def _prepare_version(config: BuildConfig) -> list[str]:
    if config.virtualbox_version_file is None:
        config.virtualbox_version_file = DEFAULT_VERSION_FILE
    return []


_SUB_VALIDATORS: tuple[Callable[[BuildConfig], list[str]], ...] = (
    _prepare_export,
    _prepare_export_opts,
    _prepare_floppy,
    _prepare_http,
    _prepare_output,
    _prepare_run,
    _prepare_shutdown,
    _prepare_ssh,
    _prepare_vboxmanage,
    _prepare_vboxmanage_post,
    _prepare_version,
)


# =============================================================================
# Full preparation
# =============================================================================

def _prepare_builder(config: BuildConfig) -> tuple[list[str], list[str]]:
    """Builder-level defaults, guest additions mode and the shutdown warning."""
    warnings: list[str] = []
    errors: list[str] = []

    if not config.guest_additions_mode:
        config.guest_additions_mode = GUEST_ADDITIONS_MODE_UPLOAD
    if not config.guest_additions_path:
        config.guest_additions_path = DEFAULT_GUEST_ADDITIONS_PATH
    if not config.vm_name:
        config.vm_name = f"ovfbuilder-{config.build_name}-{int(time.time())}"

    if config.import_opts:
        config.import_flags = [*config.import_flags, "--options", config.import_opts]

    if config.guest_additions_mode not in GUEST_ADDITIONS_MODES:
        errors.append(
            "guest_additions_mode is invalid. Must be one of: "
            f"{', '.join(GUEST_ADDITIONS_MODES)}"
        )

    config.guest_additions_sha256 = config.guest_additions_sha256.lower()

    if not config.shutdown_command:
        warnings.append(
            "A shutdown_command was not specified. Without a shutdown command, the\n"
            "virtual machine will be forcibly halted, which may result in data loss."
        )

    return warnings, errors


def prepare_config(
    config: BuildConfig,
    *,
    client: httpx.Client | None = None,
) -> list[str]:
    """Validate *config*, fill in defaults and resolve the checksum.

    Args:
        config: Decoded configuration, updated in place.
        client: HTTP client for checksum manifests.

    Returns:
        Warnings for the user.  They never block a build.

    Raises:
        ConfigError: With every problem found; its ``warnings`` holds the
            warnings collected up to that point.
    """
    warnings, errors = resolve_source(config, client=client)

    for validator in _SUB_VALIDATORS:
        errors.extend(validator(config))

    builder_warnings, builder_errors = _prepare_builder(config)
    warnings.extend(builder_warnings)
    errors.extend(builder_errors)

    if errors:
        raise ConfigError(errors, warnings)
    return warnings


def load_config(
    raw: Any,
    *,
    client: httpx.Client | None = None,
) -> tuple[BuildConfig, list[str]]:
    """Decode and prepare a raw template in one go."""
    config = decode_config(raw)
    warnings = prepare_config(config, client=client)
    return config, warnings

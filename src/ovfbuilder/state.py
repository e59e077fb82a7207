# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Typed key/value scratchpad shared by every step of one build.

The bag is created when a build starts and thrown away when it ends.
Steps talk to each other, and to the runner, only through it: a step
that fails writes :attr:`StateKey.ERROR`, the runner records
:attr:`StateKey.CANCELLED` / :attr:`StateKey.HALTED`, and so on.

Every key is a member of :class:`StateKey` and declares the type of the
value stored under it, so a step that puts the wrong thing in the bag
fails at the ``put`` instead of three steps later.
"""

from __future__ import annotations

import enum
import functools
from typing import Any


class StateKey(str, enum.Enum):
    """The fixed vocabulary of state bag keys."""

    CONFIG = "config"
    DEBUG = "debug"
    DRIVER = "driver"
    UI = "ui"
    HOOK = "hook"
    CACHE = "cache"

    ERROR = "error"
    CANCELLED = "cancelled"
    HALTED = "halted"

    OUTPUT_DIR = "output_dir"
    HTTP_SERVER = "http_server"
    FLOPPY_PATH = "floppy_path"
    FLOPPY_ATTACHED = "floppy_attached"
    VM_NAME = "vm_name"
    VM_PATH = "vm_path"
    GUEST_ADDITIONS_PATH = "guest_additions_path"
    GUEST_ADDITIONS_ATTACHED = "guest_additions_attached"
    HTTP_PORT = "http_port"
    SSH_HOST_PORT = "ssh_host_port"
    VRDP_IP = "vrdp_ip"
    VRDP_PORT = "vrdp_port"
    COMMUNICATOR = "communicator"
    EXPORT_PATH = "export_path"


@functools.cache
def _value_types() -> dict[StateKey, type | tuple[type, ...]]:
    """Declared value type for each key.

    Built lazily so this module does not import the modules that import it.
    """
    from http.server import ThreadingHTTPServer
    from pathlib import Path

    from .communicator import Communicator
    from .config import BuildConfig
    from .driver import Driver
    from .hook import Hook
    from .ui import Ui

    return {
        StateKey.CONFIG: BuildConfig,
        StateKey.DEBUG: bool,
        StateKey.DRIVER: Driver,
        StateKey.UI: Ui,
        StateKey.HOOK: Hook,
        StateKey.CACHE: Path,
        StateKey.ERROR: BaseException,
        StateKey.CANCELLED: bool,
        StateKey.HALTED: bool,
        StateKey.OUTPUT_DIR: str,
        StateKey.HTTP_SERVER: ThreadingHTTPServer,
        StateKey.FLOPPY_PATH: str,
        StateKey.FLOPPY_ATTACHED: bool,
        StateKey.VM_NAME: str,
        StateKey.VM_PATH: str,
        StateKey.GUEST_ADDITIONS_PATH: str,
        StateKey.GUEST_ADDITIONS_ATTACHED: bool,
        StateKey.HTTP_PORT: int,
        StateKey.SSH_HOST_PORT: int,
        StateKey.VRDP_IP: str,
        StateKey.VRDP_PORT: int,
        StateKey.COMMUNICATOR: Communicator,
        StateKey.EXPORT_PATH: str,
    }


class StateBag:
    """Mutable mapping from :class:`StateKey` to a value of the declared type."""

    def __init__(self) -> None:
        self._values: dict[StateKey, Any] = {}

    def put(self, key: StateKey, value: Any) -> None:
        """Store *value* under *key*.

        Raises:
            TypeError: If *key* is not a :class:`StateKey` or *value* is
                not of the type declared for it.
        """
        if not isinstance(key, StateKey):
            raise TypeError(f"State key must be a StateKey, got {key!r}")
        expected = _value_types()[key]
        if not isinstance(value, expected):
            raise TypeError(
                f"State key '{key.value}' expects {_type_label(expected)}, "
                f"got {type(value).__name__}"
            )
        self._values[key] = value

    def get(self, key: StateKey) -> Any | None:
        """Return the value stored under *key*, or None when absent."""
        return self._values.get(key)

    def get_ok(self, key: StateKey) -> tuple[Any | None, bool]:
        """Return ``(value, present)`` for *key*."""
        if key in self._values:
            return self._values[key], True
        return None, False

    def delete(self, key: StateKey) -> None:
        self._values.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __repr__(self) -> str:
        keys = ", ".join(sorted(k.value for k in self._values))
        return f"StateBag([{keys}])"


def _type_label(expected: type | tuple[type, ...]) -> str:
    if isinstance(expected, tuple):
        return " | ".join(t.__name__ for t in expected)
    return expected.__name__

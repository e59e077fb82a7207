# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Accessors and small utilities used by the build steps."""

from __future__ import annotations

import random
import re
import socket
from typing import Any

from ..driver import Driver
from ..pipeline import StepAction, StepError
from ..state import StateBag, StateKey
from ..ui import Ui

_TEMPLATE_RE = re.compile(r"\{\{\s*\.(\w+)\s*\}\}")


def require(state: StateBag, key: StateKey) -> Any:
    value, ok = state.get_ok(key)
    if not ok:
        raise StepError(f"Missing state: {key.value}")
    return value


def get_ui(state: StateBag) -> Ui:
    return require(state, StateKey.UI)


def get_driver(state: StateBag) -> Driver:
    return require(state, StateKey.DRIVER)


def get_vm_name(state: StateBag) -> str:
    return require(state, StateKey.VM_NAME)


def halt(state: StateBag, message: str, cause: BaseException | None = None) -> StepAction:
    """Record a failure in the state bag, tell the user and halt.

    Args:
        state: The build's state bag.
        message: What went wrong, shown to the user.
        cause: Underlying exception, chained onto the recorded error.

    Returns:
        :attr:`StepAction.HALT`, so steps can ``return halt(...)``.
    """
    err = StepError(message)
    if cause is not None:
        err.__cause__ = cause
    state.put(StateKey.ERROR, err)
    ui = state.get(StateKey.UI)
    if ui is not None:
        ui.error(message)
    return StepAction.HALT


def render(template: str, **values: object) -> str:
    """Substitute ``{{ .Key }}`` placeholders in *template*.

    Raises:
        StepError: If the template names a key not in *values*.
    """
    def _sub(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in values:
            raise StepError(f"Unknown template variable '{key}' in: {template}")
        return str(values[key])

    return _TEMPLATE_RE.sub(_sub, template)


def find_free_port(host: str, low: int, high: int) -> int:
    """Pick a random port in ``[low, high]`` that *host* can bind.

    Raises:
        StepError: If every port in the range is taken.
    """
    ports = list(range(low, high + 1))
    random.shuffle(ports)
    for port in ports:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            try:
                sock.bind((host, port))
            except OSError:
                continue
        return port
    raise StepError(f"No free port on {host} between {low} and {high}")

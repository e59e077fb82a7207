# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Provisioning hooks run once the guest is reachable."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from .communicator import Communicator
from .ui import Ui

logger = logging.getLogger(__name__)

HOOK_PROVISION = "provision"


class HookError(Exception):
    """A provisioning hook failed."""


@runtime_checkable
class Hook(Protocol):
    async def run(self, name: str, ui: Ui, communicator: Communicator | None) -> None: ...


class NoopHook:
    """Hook that does nothing."""

    async def run(self, name: str, ui: Ui, communicator: Communicator | None) -> None:
        return None


class ShellHook:
    """Run shell commands in the guest on the provision hook.

    Commands run in order; the first non-zero exit status fails the hook.
    """

    def __init__(self, commands: list[str]):
        self.commands = list(commands)

    async def run(self, name: str, ui: Ui, communicator: Communicator | None) -> None:
        if name != HOOK_PROVISION or not self.commands:
            return
        if communicator is None:
            raise HookError("Cannot provision: no communicator available")

        for command in self.commands:
            ui.dim(f"Running: {command}")
            status = await communicator.run(command)
            if status != 0:
                raise HookError(f"Provisioning command exited with status {status}: {command}")
        logger.debug("Ran %d provisioning command(s)", len(self.commands))

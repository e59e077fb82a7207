# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ...driver import Driver, DriverError
from ...pipeline import Step, StepAction, StepError
from ...state import StateBag, StateKey
from ..constants import NAT_HOST_IP, SCANCODE_CHUNK_SIZE
from ..helpers import get_driver, get_ui, get_vm_name, halt, render
from .scancodes import KeyPress, Wait, translate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepTypeBootCommand(Step):
    """Type the boot command into the VM's console.

    ``{{ .HTTPIP }}``, ``{{ .HTTPPort }}`` and ``{{ .Name }}`` are
    expanded before the text is translated into scancodes.
    """

    boot_command: tuple[str, ...]

    async def run(self, state: StateBag) -> StepAction:
        if not self.boot_command:
            return StepAction.CONTINUE

        ui = get_ui(state)
        driver = get_driver(state)
        vm_name = get_vm_name(state)
        http_port = state.get(StateKey.HTTP_PORT) or 0

        ui.info("Typing the boot command...")
        for command in self.boot_command:
            try:
                text = render(command, HTTPIP=NAT_HOST_IP, HTTPPort=http_port, Name=vm_name)
                actions = translate(text)
            except (StepError, ValueError) as e:
                return halt(state, f"Error preparing boot command: {e}", e)

            for action in actions:
                if isinstance(action, Wait):
                    logger.debug("Boot command: waiting %gs", action.seconds)
                    await asyncio.sleep(action.seconds)
                    continue
                try:
                    await self._send(driver, vm_name, action)
                except DriverError as e:
                    return halt(state, f"Error sending boot command: {e}", e)
        return StepAction.CONTINUE

    @staticmethod
    async def _send(driver: Driver, vm_name: str, keys: KeyPress) -> None:
        codes = keys.codes
        for i in range(0, len(codes), SCANCODE_CHUNK_SIZE):
            chunk = codes[i:i + SCANCODE_CHUNK_SIZE]
            await driver.vboxmanage("controlvm", vm_name, "keyboardputscancode", *chunk)

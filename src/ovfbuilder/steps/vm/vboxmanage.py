# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass

from ...driver import DriverError
from ...pipeline import Step, StepAction, StepError
from ...state import StateBag
from ..helpers import get_driver, get_ui, get_vm_name, halt, render


@dataclass(frozen=True)
class StepVBoxManage(Step):
    """Run user-supplied VBoxManage commands.

    ``{{ .Name }}`` in any argument expands to the VM name.
    """

    commands: tuple[tuple[str, ...], ...]

    async def run(self, state: StateBag) -> StepAction:
        if not self.commands:
            return StepAction.CONTINUE

        ui = get_ui(state)
        driver = get_driver(state)
        vm_name = get_vm_name(state)

        ui.info("Executing custom VBoxManage commands...")
        for command in self.commands:
            try:
                args = [render(arg, Name=vm_name) for arg in command]
            except StepError as e:
                return halt(state, f"Error preparing VBoxManage command: {e}", e)

            ui.dim(f"Executing: {' '.join(args)}")
            try:
                await driver.vboxmanage(*args)
            except DriverError as e:
                return halt(state, f"Error executing command: {e}", e)
        return StepAction.CONTINUE

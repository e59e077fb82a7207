# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass

from ...driver import DriverError
from ...pipeline import Step, StepAction
from ...state import StateBag, StateKey
from ..helpers import get_driver, get_ui, halt, require


@dataclass(frozen=True)
class StepImport(Step):
    """Import the downloaded appliance as a new VM.

    Cleanup unregisters the VM and deletes its disks, whatever the
    outcome: the build's product is the export, not the registered VM.
    """

    vm_name: str
    import_flags: tuple[str, ...] = ()

    async def run(self, state: StateBag) -> StepAction:
        vm_path = require(state, StateKey.VM_PATH)
        get_ui(state).info(f"Importing VM: {vm_path}")
        try:
            await get_driver(state).import_appliance(vm_path, self.vm_name, list(self.import_flags))
        except DriverError as e:
            return halt(state, f"Error importing VM: {e}", e)

        state.put(StateKey.VM_NAME, self.vm_name)
        return StepAction.CONTINUE

    async def cleanup(self, state: StateBag) -> None:
        vm_name = state.get(StateKey.VM_NAME)
        if vm_name is None:
            return

        ui = get_ui(state)
        ui.info("Unregistering and deleting imported VM...")
        try:
            await get_driver(state).delete(vm_name)
        except DriverError as e:
            ui.error(f"Error deleting VM: {e}")

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Attaching the floppy image to the VM, and detaching it."""

from __future__ import annotations

from dataclasses import dataclass

from ...driver import Driver, DriverError
from ...pipeline import Step, StepAction
from ...state import StateBag, StateKey
from ..constants import FLOPPY_CONTROLLER, floppy_storage_args
from ..helpers import get_driver, get_ui, get_vm_name, halt


async def detach_floppy(driver: Driver, state: StateBag) -> None:
    """Eject the floppy if this build attached it.

    Raises:
        DriverError: If VBoxManage fails.
    """
    if not state.get(StateKey.FLOPPY_ATTACHED):
        return
    await driver.vboxmanage(*floppy_storage_args(get_vm_name(state), "none"))
    state.delete(StateKey.FLOPPY_ATTACHED)


@dataclass(frozen=True)
class StepAttachFloppy(Step):
    """Add a floppy controller and insert the image built earlier, if any."""

    async def run(self, state: StateBag) -> StepAction:
        image_path = state.get(StateKey.FLOPPY_PATH)
        if image_path is None:
            return StepAction.CONTINUE

        vm_name = get_vm_name(state)
        driver = get_driver(state)
        get_ui(state).info("Attaching floppy disk...")
        try:
            await driver.vboxmanage(
                "storagectl", vm_name,
                "--name", FLOPPY_CONTROLLER,
                "--add", "floppy",
            )
            await driver.vboxmanage(*floppy_storage_args(vm_name, image_path))
        except DriverError as e:
            return halt(state, f"Error attaching floppy: {e}", e)

        state.put(StateKey.FLOPPY_ATTACHED, True)
        return StepAction.CONTINUE

    async def cleanup(self, state: StateBag) -> None:
        try:
            await detach_floppy(get_driver(state), state)
        except DriverError as e:
            get_ui(state).error(f"Error detaching floppy: {e}")

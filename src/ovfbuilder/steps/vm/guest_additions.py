# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Attaching the guest additions ISO as a virtual DVD, and detaching it."""

from __future__ import annotations

from dataclasses import dataclass

from ...config import GUEST_ADDITIONS_MODE_ATTACH
from ...driver import Driver, DriverError
from ...pipeline import Step, StepAction
from ...state import StateBag, StateKey
from ..constants import guest_additions_storage_args
from ..helpers import get_driver, get_ui, get_vm_name, halt, require


async def detach_guest_additions(driver: Driver, state: StateBag) -> None:
    """Empty the guest additions drive if this build attached it.

    Raises:
        DriverError: If VBoxManage fails.
    """
    if not state.get(StateKey.GUEST_ADDITIONS_ATTACHED):
        return
    await driver.vboxmanage(*guest_additions_storage_args(get_vm_name(state), "none"))
    state.delete(StateKey.GUEST_ADDITIONS_ATTACHED)


@dataclass(frozen=True)
class StepAttachGuestAdditions(Step):
    """Insert the guest additions ISO when the mode is ``attach``."""

    mode: str

    async def run(self, state: StateBag) -> StepAction:
        if self.mode != GUEST_ADDITIONS_MODE_ATTACH:
            return StepAction.CONTINUE

        iso_path = require(state, StateKey.GUEST_ADDITIONS_PATH)
        vm_name = get_vm_name(state)

        get_ui(state).info("Attaching guest additions ISO onto IDE controller...")
        try:
            await get_driver(state).vboxmanage(*guest_additions_storage_args(vm_name, iso_path))
        except DriverError as e:
            return halt(state, f"Error attaching guest additions: {e}", e)

        state.put(StateKey.GUEST_ADDITIONS_ATTACHED, True)
        return StepAction.CONTINUE

    async def cleanup(self, state: StateBag) -> None:
        try:
            await detach_guest_additions(get_driver(state), state)
        except DriverError as e:
            get_ui(state).error(f"Error detaching guest additions: {e}")

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass

from ...driver import DriverError
from ...pipeline import Step, StepAction
from ...state import StateBag, StateKey
from ..helpers import get_driver, get_ui, halt
from ..vm import detach_floppy, detach_guest_additions


@dataclass(frozen=True)
class StepRemoveDevices(Step):
    """Detach build-time media so the exported appliance does not reference them."""

    async def run(self, state: StateBag) -> StepAction:
        ui = get_ui(state)
        driver = get_driver(state)

        if state.get(StateKey.FLOPPY_ATTACHED):
            ui.dim("Removing floppy drive...")
            try:
                await detach_floppy(driver, state)
            except DriverError as e:
                return halt(state, f"Error removing floppy: {e}", e)

        if state.get(StateKey.GUEST_ADDITIONS_ATTACHED):
            ui.dim("Detaching guest additions ISO...")
            try:
                await detach_guest_additions(driver, state)
            except DriverError as e:
                return halt(state, f"Error detaching guest additions ISO: {e}", e)
        return StepAction.CONTINUE

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass

from ...driver import DriverError
from ...pipeline import Step, StepAction
from ...state import StateBag
from ..helpers import get_driver, get_ui, halt


@dataclass(frozen=True)
class StepSuppressMessages(Step):
    """Stop VirtualBox from popping up notification bubbles in the VM window."""

    async def run(self, state: StateBag) -> StepAction:
        get_ui(state).dim("Suppressing annoying messages from VirtualBox")
        try:
            await get_driver(state).suppress_messages()
        except DriverError as e:
            return halt(state, f"Error configuring VirtualBox to suppress messages: {e}", e)
        return StepAction.CONTINUE

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass

from ...communicator import CommunicatorError
from ...hook import HOOK_PROVISION, HookError
from ...pipeline import Step, StepAction
from ...state import StateBag, StateKey
from ..helpers import get_ui, halt


@dataclass(frozen=True)
class StepProvision(Step):
    """Run the provision hook against the connected guest."""

    async def run(self, state: StateBag) -> StepAction:
        hook = state.get(StateKey.HOOK)
        if hook is None:
            return StepAction.CONTINUE

        ui = get_ui(state)
        ui.info("Provisioning...")
        try:
            await hook.run(HOOK_PROVISION, ui, state.get(StateKey.COMMUNICATOR))
        except (HookError, CommunicatorError) as e:
            return halt(state, f"Error provisioning: {e}", e)
        return StepAction.CONTINUE

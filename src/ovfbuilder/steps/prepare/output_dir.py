# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Create the output directory, and remove it again if the build fails."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from dataclasses import dataclass

from ...pipeline import Step, StepAction
from ...state import StateBag, StateKey
from ..helpers import get_ui, halt

logger = logging.getLogger(__name__)

_REMOVE_ATTEMPTS = 5
_REMOVE_RETRY_DELAY = 2.0


@dataclass(frozen=True)
class StepOutputDir(Step):
    """Prepare an empty output directory.

    An existing directory is only replaced when *force* is set.  If the
    build does not complete, cleanup deletes the directory, but only when
    this step created it.
    """

    path: str
    force: bool = False

    async def run(self, state: StateBag) -> StepAction:
        ui = get_ui(state)
        ui.info("Preparing output directory...")

        if os.path.exists(self.path):
            if not self.force:
                return halt(state, f"Output directory exists: {self.path}\n"
                                   "Use the force flag to delete it prior to building.")
            ui.dim(f"Deleting previous output directory: {self.path}")
            try:
                await asyncio.to_thread(shutil.rmtree, self.path)
            except OSError as e:
                return halt(state, f"Error deleting output directory: {e}", e)

        try:
            os.makedirs(self.path)
        except OSError as e:
            return halt(state, f"Error creating output directory: {e}", e)

        state.put(StateKey.OUTPUT_DIR, self.path)
        return StepAction.CONTINUE

    async def cleanup(self, state: StateBag) -> None:
        path = state.get(StateKey.OUTPUT_DIR)
        if path is None:
            return

        failed = StateKey.ERROR in state or state.get(StateKey.CANCELLED) or state.get(StateKey.HALTED)
        if not failed:
            return

        get_ui(state).info("Deleting output directory...")
        for attempt in range(1, _REMOVE_ATTEMPTS + 1):
            try:
                await asyncio.to_thread(shutil.rmtree, path)
                break
            except FileNotFoundError:
                break
            except OSError as e:
                # VirtualBox may still hold files open right after a poweroff
                logger.debug("Removing %s failed (attempt %d): %s", path, attempt, e)
                if attempt == _REMOVE_ATTEMPTS:
                    raise
                await asyncio.sleep(_REMOVE_RETRY_DELAY)
        state.delete(StateKey.OUTPUT_DIR)

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import asyncio
import os
import shutil
import tempfile
from dataclasses import dataclass, field

from ...floppy import FloppyAssembler, FloppyError, MtoolsFloppyAssembler
from ...pipeline import Step, StepAction
from ...state import StateBag, StateKey
from ..helpers import get_ui, halt


@dataclass(frozen=True)
class StepCreateFloppy(Step):
    """Build a floppy image from *files* and *directories*.

    Does nothing when both are empty.  The image lives in a temporary
    directory that cleanup removes whatever the outcome.
    """

    files: tuple[str, ...] = ()
    directories: tuple[str, ...] = ()
    assembler: FloppyAssembler = field(
        default_factory=MtoolsFloppyAssembler, repr=False, compare=False,
    )

    async def run(self, state: StateBag) -> StepAction:
        if not self.files and not self.directories:
            return StepAction.CONTINUE

        get_ui(state).info("Creating floppy disk...")
        tmpdir = tempfile.mkdtemp(prefix="ovfbuilder-floppy-")
        image_path = os.path.join(tmpdir, "floppy.img")
        try:
            await self.assembler.create(image_path, list(self.files), list(self.directories))
        except FloppyError as e:
            await asyncio.to_thread(shutil.rmtree, tmpdir)
            return halt(state, f"Error creating floppy: {e}", e)

        state.put(StateKey.FLOPPY_PATH, image_path)
        return StepAction.CONTINUE

    async def cleanup(self, state: StateBag) -> None:
        image_path = state.get(StateKey.FLOPPY_PATH)
        if image_path is None:
            return
        await asyncio.to_thread(shutil.rmtree, os.path.dirname(image_path))
        state.delete(StateKey.FLOPPY_PATH)

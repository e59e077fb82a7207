# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Files copied into the guest before provisioning."""

from __future__ import annotations

from dataclasses import dataclass

from ...communicator import CommunicatorError
from ...config import GUEST_ADDITIONS_MODE_UPLOAD
from ...driver import DriverError
from ...pipeline import Step, StepAction, StepError
from ...state import StateBag, StateKey
from ..helpers import get_driver, get_ui, halt, render, require


@dataclass(frozen=True)
class StepUploadVersion(Step):
    """Write the host's VirtualBox version to *path* in the guest.

    An empty *path* turns this off.
    """

    path: str

    async def run(self, state: StateBag) -> StepAction:
        comm = state.get(StateKey.COMMUNICATOR)
        if not self.path or comm is None:
            return StepAction.CONTINUE

        ui = get_ui(state)
        try:
            version = await get_driver(state).version()
        except DriverError as e:
            return halt(state, f"Error reading VirtualBox version: {e}", e)

        ui.info(f"Uploading VirtualBox version info ({version})")
        try:
            await comm.upload_data(self.path, version.encode())
        except CommunicatorError as e:
            return halt(state, f"Error uploading VirtualBox version: {e}", e)
        return StepAction.CONTINUE


@dataclass(frozen=True)
class StepUploadGuestAdditions(Step):
    """Copy the guest additions ISO into the guest when the mode is ``upload``.

    ``{{ .Version }}`` in *path* expands to the VirtualBox version.
    """

    mode: str
    path: str

    async def run(self, state: StateBag) -> StepAction:
        comm = state.get(StateKey.COMMUNICATOR)
        if self.mode != GUEST_ADDITIONS_MODE_UPLOAD or comm is None:
            return StepAction.CONTINUE

        ui = get_ui(state)
        local_path = require(state, StateKey.GUEST_ADDITIONS_PATH)
        try:
            version = await get_driver(state).version()
            remote_path = render(self.path, Version=version)
        except (DriverError, StepError) as e:
            return halt(state, f"Error preparing guest additions upload: {e}", e)

        ui.info("Uploading VirtualBox guest additions ISO...")
        try:
            await comm.upload(remote_path, local_path)
        except CommunicatorError as e:
            return halt(state, f"Error uploading guest additions: {e}", e)
        return StepAction.CONTINUE

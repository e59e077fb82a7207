# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

from ...communicator import CommunicatorError
from ...driver import DriverError
from ...pipeline import Step, StepAction
from ...state import StateBag, StateKey
from ..helpers import get_driver, get_ui, get_vm_name, halt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepShutdown(Step):
    """Shut the VM down, gracefully when possible.

    With a *command* and a connected guest, the command is started and
    the VM is polled until it stops or *timeout* expires.  Otherwise it
    is powered off.  *post_delay* seconds are waited afterwards either
    way.
    """

    command: str
    timeout: float
    post_delay: float = 0.0
    poll_interval: float = 1.0

    async def run(self, state: StateBag) -> StepAction:
        ui = get_ui(state)
        driver = get_driver(state)
        vm_name = get_vm_name(state)
        comm = state.get(StateKey.COMMUNICATOR)

        if self.command and comm is not None:
            ui.info("Gracefully halting virtual machine...")
            try:
                await comm.start(self.command)
            except CommunicatorError as e:
                return halt(state, f"Failed to send shutdown command: {e}", e)

            deadline = time.monotonic() + self.timeout
            try:
                while await driver.is_running(vm_name):
                    if time.monotonic() >= deadline:
                        return halt(state, "Timeout while waiting for machine to shut down.")
                    await asyncio.sleep(self.poll_interval)
            except DriverError as e:
                return halt(state, f"Error checking VM state: {e}", e)
        else:
            ui.info("Halting the virtual machine...")
            try:
                if await driver.is_running(vm_name):
                    await driver.stop(vm_name)
            except DriverError as e:
                return halt(state, f"Error stopping VM: {e}", e)

        if self.post_delay > 0:
            ui.dim(f"Waiting {self.post_delay:g}s after shutdown...")
            await asyncio.sleep(self.post_delay)

        logger.debug("VM %s shut down", vm_name)
        ui.dim("VM shut down.")
        return StepAction.CONTINUE

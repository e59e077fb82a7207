# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from ...driver import DriverError
from ...pipeline import Step, StepAction
from ...state import StateBag, StateKey
from ..helpers import get_driver, get_ui, get_vm_name, halt


@dataclass(frozen=True)
class StepRun(Step):
    """Start the VM and wait *boot_wait* seconds.

    Cleanup powers the VM off if it is still running, so a failed build
    never leaves a machine behind.
    """

    boot_wait: float
    headless: bool = False

    async def run(self, state: StateBag) -> StepAction:
        ui = get_ui(state)
        vm_name = get_vm_name(state)

        ui.info("Starting the virtual machine...")
        vm_type = "gui"
        if self.headless:
            vm_type = "headless"
            vrdp_port = state.get(StateKey.VRDP_PORT)
            if vrdp_port:
                ui.dim(
                    "The VM will be run headless, without a GUI. If you want to\n"
                    "view the screen of the VM, connect via VRDP without a password to\n"
                    f"rdp://{state.get(StateKey.VRDP_IP)}:{vrdp_port}"
                )

        try:
            await get_driver(state).vboxmanage("startvm", vm_name, "--type", vm_type)
        except DriverError as e:
            return halt(state, f"Error starting VM: {e}", e)

        if self.boot_wait > 0:
            ui.dim(f"Waiting {self.boot_wait:g}s for boot...")
            await asyncio.sleep(self.boot_wait)
        return StepAction.CONTINUE

    async def cleanup(self, state: StateBag) -> None:
        vm_name = state.get(StateKey.VM_NAME)
        if vm_name is None:
            return

        driver = get_driver(state)
        try:
            if await driver.is_running(vm_name):
                get_ui(state).dim("Powering off the virtual machine...")
                await driver.stop(vm_name)
        except DriverError as e:
            get_ui(state).error(f"Error shutting down VM: {e}")

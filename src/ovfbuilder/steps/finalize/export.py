# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import os
from dataclasses import dataclass

from ...driver import DriverError
from ...pipeline import Step, StepAction
from ...state import StateBag, StateKey
from ..constants import SSH_NAT_RULE
from ..helpers import get_driver, get_ui, get_vm_name, halt


@dataclass(frozen=True)
class StepExport(Step):
    """Export the VM to ``<output_dir>/<vm_name>.<format>``.

    The communicator's port forward is removed first so it does not end
    up in the appliance.
    """

    format: str
    output_dir: str
    export_opts: tuple[str, ...] = ()
    communicator: str = "ssh"
    skip_nat_mapping: bool = False

    async def run(self, state: StateBag) -> StepAction:
        ui = get_ui(state)
        driver = get_driver(state)
        vm_name = get_vm_name(state)

        if self.communicator != "none" and not self.skip_nat_mapping:
            ui.dim("Deleting forwarded port mapping for the communicator (SSH)")
            try:
                await driver.vboxmanage("modifyvm", vm_name, "--natpf1", "delete", SSH_NAT_RULE)
            except DriverError as e:
                return halt(state, f"Error deleting port forwarding rule: {e}", e)

        output_path = os.path.join(self.output_dir, f"{vm_name}.{self.format}")
        args = ["export", vm_name, "--output", output_path, *self.export_opts]

        ui.info("Exporting virtual machine...")
        ui.dim(f"Executing: {' '.join(args)}")
        try:
            await driver.vboxmanage(*args)
        except DriverError as e:
            return halt(state, f"Error exporting virtual machine: {e}", e)

        state.put(StateKey.EXPORT_PATH, output_path)
        return StepAction.CONTINUE

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Host ports for the VM: VRDP console and the communicator's NAT forward."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ...driver import DriverError
from ...pipeline import Step, StepAction, StepError
from ...state import StateBag, StateKey
from ..constants import SSH_NAT_RULE
from ..helpers import find_free_port, get_driver, get_ui, get_vm_name, halt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepConfigureVRDP(Step):
    """Enable the VRDP server on a free host port."""

    bind_address: str
    port_min: int
    port_max: int

    async def run(self, state: StateBag) -> StepAction:
        vm_name = get_vm_name(state)
        try:
            port = find_free_port(self.bind_address, self.port_min, self.port_max)
        except StepError as e:
            return halt(state, f"Error finding VRDP port: {e}", e)

        get_ui(state).dim(f"Configuring VRDP on {self.bind_address}:{port}")
        try:
            await get_driver(state).vboxmanage(
                "modifyvm", vm_name,
                "--vrde", "on",
                "--vrdeaddress", self.bind_address,
                "--vrdeport", str(port),
            )
        except DriverError as e:
            return halt(state, f"Error enabling VRDP: {e}", e)

        state.put(StateKey.VRDP_IP, self.bind_address)
        state.put(StateKey.VRDP_PORT, port)
        return StepAction.CONTINUE


@dataclass(frozen=True)
class StepForwardSSH(Step):
    """Forward a free host port to the guest's SSH port through NAT.

    With *skip_nat_mapping* the guest port is used as-is, for setups where
    the guest is reachable directly.
    """

    communicator: str
    guest_port: int
    host_port_min: int
    host_port_max: int
    skip_nat_mapping: bool = False

    async def run(self, state: StateBag) -> StepAction:
        if self.communicator == "none":
            return StepAction.CONTINUE

        if self.skip_nat_mapping:
            state.put(StateKey.SSH_HOST_PORT, self.guest_port)
            return StepAction.CONTINUE

        vm_name = get_vm_name(state)
        driver = get_driver(state)
        try:
            host_port = find_free_port("127.0.0.1", self.host_port_min, self.host_port_max)
        except StepError as e:
            return halt(state, f"Error finding port for SSH forwarding: {e}", e)

        # A rule left over from an earlier build of the same appliance
        try:
            await driver.vboxmanage("modifyvm", vm_name, "--natpf1", "delete", SSH_NAT_RULE)
        except DriverError:
            logger.debug("No existing %s rule on %s", SSH_NAT_RULE, vm_name)

        get_ui(state).dim(f"Creating forwarded port mapping for communicator (SSH) ({host_port})")
        rule = f"{SSH_NAT_RULE},tcp,127.0.0.1,{host_port},,{self.guest_port}"
        try:
            await driver.vboxmanage("modifyvm", vm_name, "--natpf1", rule)
        except DriverError as e:
            return halt(state, f"Error creating port forwarding rule: {e}", e)

        state.put(StateKey.SSH_HOST_PORT, host_port)
        return StepAction.CONTINUE

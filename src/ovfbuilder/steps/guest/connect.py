# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from ...communicator import Communicator, CommunicatorError, SSHCommunicator
from ...pipeline import Step, StepAction
from ...state import StateBag, StateKey
from ..helpers import get_ui, halt, require

logger = logging.getLogger(__name__)

ConnectFn = Callable[..., Awaitable[Communicator]]


@dataclass(frozen=True)
class StepConnect(Step):
    """Wait for SSH to come up in the guest and open a session.

    Retries every *retry_interval* seconds until *timeout* runs out.
    Cleanup closes the session.
    """

    communicator: str
    host: str
    username: str
    password: str = ""
    key_file: str = ""
    timeout: float = 300.0
    retry_interval: float = 5.0
    connect: ConnectFn = field(default=SSHCommunicator.connect, repr=False, compare=False)

    async def run(self, state: StateBag) -> StepAction:
        if self.communicator == "none":
            return StepAction.CONTINUE

        ui = get_ui(state)
        port = require(state, StateKey.SSH_HOST_PORT)

        ui.info("Waiting for SSH to become available...")
        deadline = time.monotonic() + self.timeout
        while True:
            try:
                comm = await self.connect(
                    self.host,
                    port,
                    username=self.username,
                    password=self.password,
                    key_file=self.key_file,
                )
                break
            except CommunicatorError as e:
                logger.debug("SSH not ready: %s", e)
                if time.monotonic() >= deadline:
                    return halt(state, "Timeout waiting for SSH.", e)
                await asyncio.sleep(self.retry_interval)

        ui.dim("Connected to SSH!")
        state.put(StateKey.COMMUNICATOR, comm)
        return StepAction.CONTINUE

    async def cleanup(self, state: StateBag) -> None:
        comm = state.get(StateKey.COMMUNICATOR)
        if comm is None:
            return
        await comm.close()
        state.delete(StateKey.COMMUNICATOR)

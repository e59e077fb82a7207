# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Serve a directory to the guest over HTTP while it boots.

Boot commands usually point the installer at a preseed or kickstart
file; ``{{ .HTTPIP }}:{{ .HTTPPort }}`` in a boot command expands to
this server.
"""

from __future__ import annotations

import functools
import logging
import random
import threading
from dataclasses import dataclass
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer

from ...pipeline import Step, StepAction
from ...state import StateBag, StateKey
from ..helpers import get_ui, halt

logger = logging.getLogger(__name__)


class _QuietHandler(SimpleHTTPRequestHandler):
    def log_message(self, format: str, *args: object) -> None:
        logger.debug("http: " + format, *args)


@dataclass(frozen=True)
class StepHTTPServer(Step):
    """Start a static file server on the first free port in range.

    With no *directory* the step only records port 0.
    """

    directory: str
    port_min: int
    port_max: int
    bind_address: str = "0.0.0.0"

    async def run(self, state: StateBag) -> StepAction:
        if not self.directory:
            state.put(StateKey.HTTP_PORT, 0)
            return StepAction.CONTINUE

        ui = get_ui(state)
        handler = functools.partial(_QuietHandler, directory=self.directory)

        ports = list(range(self.port_min, self.port_max + 1))
        random.shuffle(ports)
        server = None
        for port in ports:
            try:
                server = ThreadingHTTPServer((self.bind_address, port), handler)
                break
            except OSError:
                continue
        if server is None:
            return halt(
                state,
                f"Error finding port for HTTP server between {self.port_min} and {self.port_max}",
            )

        port = server.server_address[1]
        thread = threading.Thread(target=server.serve_forever, name="http-server", daemon=True)
        thread.start()

        ui.info(f"Starting HTTP server on port {port}")
        state.put(StateKey.HTTP_SERVER, server)
        state.put(StateKey.HTTP_PORT, port)
        return StepAction.CONTINUE

    async def cleanup(self, state: StateBag) -> None:
        server = state.get(StateKey.HTTP_SERVER)
        if server is None:
            return
        server.shutdown()
        server.server_close()
        state.delete(StateKey.HTTP_SERVER)

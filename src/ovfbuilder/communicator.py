# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Running commands and copying files inside the guest.

paramiko is blocking, so every call is pushed to a worker thread with
:func:`asyncio.to_thread` to keep the pipeline's event loop free.
"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Protocol, runtime_checkable

import paramiko

logger = logging.getLogger(__name__)


class CommunicatorError(Exception):
    """The guest could not be reached or a transfer failed."""


@runtime_checkable
class Communicator(Protocol):
    """Connection to a running guest."""

    async def run(self, command: str) -> int:
        """Run *command* in the guest and return its exit status."""
        ...

    async def start(self, command: str) -> None:
        """Start *command* in the guest without waiting for it to finish."""
        ...

    async def upload(self, remote_path: str, local_path: str) -> None: ...

    async def upload_data(self, remote_path: str, data: bytes) -> None: ...

    async def close(self) -> None: ...


class SSHCommunicator:
    """:class:`Communicator` over SSH."""

    def __init__(self, client: paramiko.SSHClient):
        self._client = client

    @classmethod
    async def connect(
        cls,
        host: str,
        port: int,
        *,
        username: str,
        password: str = "",
        key_file: str = "",
        timeout: float = 10.0,
    ) -> SSHCommunicator:
        """Open an SSH session.

        Raises:
            CommunicatorError: If the handshake or authentication fails.
        """
        def _connect() -> paramiko.SSHClient:
            client = paramiko.SSHClient()
            # Freshly booted guests have throwaway host keys
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
            client.connect(
                hostname=host,
                port=port,
                username=username,
                password=password or None,
                key_filename=key_file or None,
                timeout=timeout,
                banner_timeout=timeout,
                auth_timeout=timeout,
                allow_agent=False,
                look_for_keys=False,
            )
            return client

        try:
            client = await asyncio.to_thread(_connect)
        except (paramiko.SSHException, OSError) as e:
            raise CommunicatorError(f"SSH connection to {host}:{port} failed: {e}") from e
        return cls(client)

    async def run(self, command: str) -> int:
        def _run() -> int:
            _stdin, stdout, stderr = self._client.exec_command(command)
            for line in stdout:
                logger.info("[guest] %s", line.rstrip())
            for line in stderr:
                logger.warning("[guest] %s", line.rstrip())
            return stdout.channel.recv_exit_status()

        logger.debug("Running in guest: %s", command)
        try:
            return await asyncio.to_thread(_run)
        except (paramiko.SSHException, OSError) as e:
            raise CommunicatorError(f"Command failed: {command}: {e}") from e

    async def start(self, command: str) -> None:
        # Used for commands like shutdown that drop the connection
        logger.debug("Starting in guest: %s", command)
        try:
            await asyncio.to_thread(self._client.exec_command, command)
        except (paramiko.SSHException, OSError) as e:
            raise CommunicatorError(f"Command failed: {command}: {e}") from e

    async def upload(self, remote_path: str, local_path: str) -> None:
        def _put() -> None:
            with self._client.open_sftp() as sftp:
                sftp.put(local_path, remote_path)

        try:
            await asyncio.to_thread(_put)
        except (paramiko.SSHException, OSError) as e:
            raise CommunicatorError(f"Upload of {local_path} to {remote_path} failed: {e}") from e

    async def upload_data(self, remote_path: str, data: bytes) -> None:
        def _put() -> None:
            with self._client.open_sftp() as sftp:
                sftp.putfo(io.BytesIO(data), remote_path)

        try:
            await asyncio.to_thread(_put)
        except (paramiko.SSHException, OSError) as e:
            raise CommunicatorError(f"Upload to {remote_path} failed: {e}") from e

    async def close(self) -> None:
        self._client.close()

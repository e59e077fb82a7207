# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Floppy image assembly.

Files and directories listed in ``floppy_files`` / ``floppy_directories``
are handed to the guest on a virtual 1.44 MB floppy.  The image is built
with mtools (``mformat`` and ``mcopy``), which need neither root nor loop
devices.
"""

from __future__ import annotations

import asyncio
import glob
import logging
import os
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

FLOPPY_SIZE_KB = "1440"

_GLOB_CHARS = "*?["


class FloppyError(Exception):
    """The floppy image could not be built."""


@runtime_checkable
class FloppyAssembler(Protocol):
    """Builds a floppy image from host files."""

    async def create(self, image_path: str, files: list[str], directories: list[str]) -> None:
        """Write a new image at *image_path* holding *files* and *directories*."""
        ...


def is_glob(path: str) -> bool:
    return any(c in path for c in _GLOB_CHARS)


def expand_floppy_files(patterns: list[str]) -> list[str]:
    """Expand glob patterns; plain paths are kept as they are."""
    paths: list[str] = []
    for pattern in patterns:
        if is_glob(pattern):
            paths.extend(sorted(p for p in glob.glob(pattern) if os.path.isfile(p)))
        else:
            paths.append(pattern)
    return paths


class MtoolsFloppyAssembler:
    """:class:`FloppyAssembler` using ``mformat`` and ``mcopy``."""

    def __init__(self, mformat: str = "mformat", mcopy: str = "mcopy"):
        self._mformat = mformat
        self._mcopy = mcopy

    async def create(self, image_path: str, files: list[str], directories: list[str]) -> None:
        """Format a blank image and copy everything onto its root.

        Directories keep their own name on the floppy.

        Raises:
            FloppyError: If an mtools command is missing or fails.
        """
        await self._exec(self._mformat, "-C", "-f", FLOPPY_SIZE_KB, "-i", image_path, "::")
        for path in expand_floppy_files(files):
            logger.debug("Adding %s to floppy", path)
            await self._exec(self._mcopy, "-i", image_path, path, "::/")
        for directory in directories:
            logger.debug("Adding directory %s to floppy", directory)
            await self._exec(self._mcopy, "-s", "-i", image_path, directory, "::/")

    async def _exec(self, *args: str) -> None:
        logger.debug("Executing: %s", list(args))
        # Skip the drive geometry sanity check, which image files fail
        env = {**os.environ, "MTOOLS_SKIP_CHECK": "1"}
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as e:
            raise FloppyError(f"Could not run {args[0]}: {e}. Is mtools installed?") from e

        _out, raw_err = await proc.communicate()
        if proc.returncode != 0:
            stderr = raw_err.decode(errors="replace").strip()
            raise FloppyError(f"{args[0]} failed: {stderr or f'exit status {proc.returncode}'}")

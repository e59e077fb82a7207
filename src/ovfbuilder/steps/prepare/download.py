# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Fetch the source appliance and the guest additions ISO."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from ...checksum import ChecksumError, fetch_checksum
from ...config import GUEST_ADDITIONS_MODE_DISABLE
from ...download import DownloadError, cache_path, fetch
from ...driver import DriverError
from ...pipeline import Step, StepAction
from ...state import StateBag, StateKey
from ..constants import (
    DEFAULT_CACHE_DIR,
    GUEST_ADDITIONS_ISO_NAME,
    GUEST_ADDITIONS_SUMS_URL,
    GUEST_ADDITIONS_URL,
)
from ..helpers import get_driver, get_ui, halt, render

logger = logging.getLogger(__name__)


def _cache_dir(state: StateBag) -> Path:
    cache = state.get(StateKey.CACHE)
    return cache if cache is not None else Path(DEFAULT_CACHE_DIR)


@dataclass(frozen=True)
class StepDownload(Step):
    """Make a file available locally and verify its checksum.

    Each URL is tried in turn until one succeeds.  The local path goes
    into the state under *result_key*.
    """

    description: str
    urls: tuple[str, ...]
    checksum: str
    checksum_type: str
    result_key: StateKey
    extension: str = ""
    target_path: str = ""

    async def run(self, state: StateBag) -> StepAction:
        ui = get_ui(state)
        ui.info(f"Retrieving {self.description}...")
        cache = _cache_dir(state)

        last_error: DownloadError | None = None
        for url in self.urls:
            target = Path(self.target_path) if self.target_path else cache_path(
                cache, url, self.extension,
            )
            ui.dim(f"Trying {url}")
            try:
                path = await asyncio.to_thread(
                    fetch,
                    url,
                    target,
                    checksum_type=self.checksum_type,
                    checksum=self.checksum,
                )
            except DownloadError as e:
                ui.warning(f"Download of {url} failed: {e}")
                last_error = e
                continue

            logger.debug("%s available at %s", self.description, path)
            state.put(self.result_key, path)
            return StepAction.CONTINUE

        return halt(state, f"Error downloading {self.description}: {last_error}", last_error)


@dataclass(frozen=True)
class StepDownloadGuestAdditions(Step):
    """Fetch the guest additions ISO matching the host's VirtualBox.

    Without an explicit URL the ISO comes from download.virtualbox.org and
    its SHA-256 is looked up in the ``SHA256SUMS`` file published next to
    it.  A custom URL without a checksum is not verified.
    """

    mode: str
    url: str = ""
    sha256: str = ""

    async def run(self, state: StateBag) -> StepAction:
        if self.mode == GUEST_ADDITIONS_MODE_DISABLE:
            return StepAction.CONTINUE

        ui = get_ui(state)
        try:
            version = await get_driver(state).version()
        except DriverError as e:
            return halt(state, f"Error reading VirtualBox version: {e}", e)

        checksum_type = "sha256"
        checksum = self.sha256
        if self.url:
            url = render(self.url, Version=version)
            if not checksum:
                checksum_type = "none"
        else:
            url = GUEST_ADDITIONS_URL.format(version=version)
            if not checksum:
                sums_url = GUEST_ADDITIONS_SUMS_URL.format(version=version)
                ui.dim(f"Fetching guest additions checksum from {sums_url}")
                try:
                    checksum = await asyncio.to_thread(
                        fetch_checksum,
                        sums_url,
                        GUEST_ADDITIONS_ISO_NAME.format(version=version),
                        checksum_type,
                    )
                except ChecksumError as e:
                    return halt(state, f"Error getting guest additions checksum: {e}", e)

        download = StepDownload(
            description=f"VirtualBox {version} guest additions",
            urls=(url,),
            checksum=checksum.lower(),
            checksum_type=checksum_type,
            result_key=StateKey.GUEST_ADDITIONS_PATH,
            extension="iso",
        )
        return await download.run(state)

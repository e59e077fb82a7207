# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Downloadable references: normalization and fetching.

A *downloadable reference* is either a local filesystem path or a
``file``, ``http`` or ``https`` URL.  :func:`downloadable_url` turns any
of those into a URL; :func:`fetch` turns the URL into a verified local
file.
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx

from .checksum import ChecksumError, verify_file

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMES = ("file", "http", "https")


class DownloadError(Exception):
    """A file could not be fetched."""


def downloadable_url(original: str) -> str:
    """Normalize a local path or URL into a downloadable URL.

    Local paths become absolute ``file://`` URLs.  The file does not have
    to exist yet.

    Raises:
        ValueError: If the reference is empty or uses an unsupported scheme.
    """
    if not original:
        raise ValueError("empty path or URL")

    parsed = urlparse(original)

    # "C:\path" parses with scheme "c"
    if parsed.scheme == "" or len(parsed.scheme) == 1:
        return Path(os.path.abspath(original)).as_uri()

    scheme = parsed.scheme.lower()
    if scheme not in SUPPORTED_SCHEMES:
        raise ValueError(f"Unsupported URL scheme: {parsed.scheme}")

    if scheme == "file" and not parsed.path:
        raise ValueError(f"No path in file URL: {original}")

    return original


def local_path(url: str) -> str | None:
    """Filesystem path of a ``file://`` URL, or None for remote URLs."""
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return unquote(parsed.path)
    if parsed.scheme == "" or len(parsed.scheme) == 1:
        return url
    return None


def cache_path(cache_dir: Path, url: str, extension: str) -> Path:
    """Stable location in *cache_dir* for the download of *url*."""
    digest = hashlib.sha1(url.encode()).hexdigest()
    return cache_dir / f"{digest}.{extension}" if extension else cache_dir / digest


def fetch(
    url: str,
    target: Path,
    *,
    checksum_type: str = "none",
    checksum: str = "",
    client: httpx.Client | None = None,
) -> str:
    """Make the file at *url* available locally and verify it.

    Local files are verified in place and their own path is returned.
    Remote files are streamed to *target*; an existing *target* that
    already matches the checksum is reused.

    Returns:
        Path of the verified local file.

    Raises:
        DownloadError: If the transfer fails or the checksum does not match.
    """
    path = local_path(url)
    if path is not None:
        if not os.path.isfile(path):
            raise DownloadError(f"File not found: {path}")
        _verify(path, checksum_type, checksum)
        return path

    if target.is_file() and checksum_type != "none":
        try:
            verify_file(str(target), checksum_type, checksum)
            logger.info("Using cached download %s", target)
            return str(target)
        except ChecksumError:
            logger.info("Cached download %s is stale, fetching again", target)

    target.parent.mkdir(parents=True, exist_ok=True)
    partial = target.with_name(target.name + ".part")
    try:
        _stream_to(url, partial, client)
        _verify(str(partial), checksum_type, checksum)
        shutil.move(str(partial), str(target))
    finally:
        partial.unlink(missing_ok=True)

    return str(target)


def _stream_to(url: str, dest: Path, client: httpx.Client | None) -> None:
    logger.info("Downloading %s", url)
    owned = client is None
    http = client or httpx.Client(follow_redirects=True, timeout=httpx.Timeout(30.0, read=None))
    try:
        with http.stream("GET", url) as response:
            response.raise_for_status()
            with open(dest, "wb") as fh:
                for chunk in response.iter_bytes():
                    fh.write(chunk)
    except httpx.HTTPError as e:
        raise DownloadError(f"Error downloading {url}: {e}") from e
    finally:
        if owned:
            http.close()


def _verify(path: str, checksum_type: str, checksum: str) -> None:
    try:
        verify_file(path, checksum_type, checksum)
    except ChecksumError as e:
        raise DownloadError(str(e)) from e

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Checksum types, checksum manifests and file verification.

Two manifest dialects are understood, one entry per line:

BSD (``md5 -r`` / ``shasum --tag``)::

    MD5 (the-OS.ova) = 3b5d5c3712955042212316173ccf37be

GNU (``md5sum`` / ``sha256sum``), optionally with the ``*`` binary marker::

    3b5d5c3712955042212316173ccf37be  the-OS.ova
    3b5d5c3712955042212316173ccf37be *the-OS.ova
"""

from __future__ import annotations

import hashlib
import logging
import os
import posixpath
from collections.abc import Iterable
from urllib.parse import unquote, urlparse

import httpx

logger = logging.getLogger(__name__)

SUPPORTED_CHECKSUM_TYPES = ("md5", "sha1", "sha224", "sha256", "sha384", "sha512")

_CHUNK_SIZE = 1024 * 1024


class ChecksumError(Exception):
    """A checksum could not be obtained or did not match."""


class ChecksumNotFoundError(ChecksumError):
    """A manifest has no entry for the requested file."""


def hash_for_type(checksum_type: str) -> hashlib._Hash | None:
    """Return a fresh hash object for *checksum_type*, or None if unsupported."""
    if checksum_type.lower() not in SUPPORTED_CHECKSUM_TYPES:
        return None
    return hashlib.new(checksum_type.lower())


def source_basename(source: str) -> str:
    """Base file name of a path or URL (query and fragment ignored)."""
    parsed = urlparse(source)
    if parsed.scheme in ("http", "https", "file"):
        return posixpath.basename(unquote(parsed.path))
    return os.path.basename(source)


def find_checksum(
    lines: Iterable[str],
    filename: str,
    checksum_type: str,
    *,
    source: str = "<manifest>",
) -> str:
    """Find the checksum for *filename* in a manifest.

    Args:
        lines: The manifest, line by line (a text file object works).
            A last line without a newline is fine.
        filename: Path or URL of the file whose checksum is wanted; only
            its base name is matched, case-sensitively.
        checksum_type: Algorithm name, matched case-insensitively against
            the BSD ``TYPE`` token.
        source: Where the manifest came from, for the error message.

    Returns:
        The hash exactly as written in the manifest.

    Raises:
        ChecksumNotFoundError: If no line matches.
    """
    basename = source_basename(filename)
    wanted_type = checksum_type.lower()

    for line in lines:
        parts = line.split()
        if len(parts) < 2:
            continue

        if parts[0].lower() == wanted_type:
            # BSD style
            if parts[1] == f"({basename})" and len(parts) >= 4:
                return parts[3]
            continue

        # GNU style
        name = parts[1][1:] if parts[1].startswith("*") else parts[1]
        if name == basename:
            return parts[0]

    raise ChecksumNotFoundError(f"No checksum for '{basename}' found at: {source}")


def fetch_checksum(
    checksum_url: str,
    filename: str,
    checksum_type: str,
    *,
    client: httpx.Client | None = None,
) -> str:
    """Download or open a checksum manifest and look up *filename* in it.

    ``http``/``https`` URLs are fetched with httpx, ``file`` URLs are
    opened from disk.

    Raises:
        ChecksumError: On any fetch failure, unsupported scheme or a
            manifest without an entry for *filename*.
    """
    parsed = urlparse(checksum_url)

    if parsed.scheme in ("http", "https"):
        logger.debug("Fetching checksum manifest %s", checksum_url)
        try:
            if client is None:
                response = httpx.get(checksum_url, follow_redirects=True, timeout=30.0)
            else:
                response = client.get(checksum_url, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ChecksumError(f"Error getting checksum from url: {checksum_url}: {e}") from e
        return find_checksum(
            response.text.splitlines(), filename, checksum_type, source=checksum_url,
        )

    if parsed.scheme == "file":
        path = unquote(parsed.path)
        try:
            with open(path, encoding="utf-8") as fh:
                return find_checksum(fh, filename, checksum_type, source=checksum_url)
        except OSError as e:
            raise ChecksumError(f"Error reading checksum file {path}: {e}") from e

    raise ChecksumError(
        f"Error parsing checksum url: {checksum_url}, scheme not supported: {parsed.scheme}"
    )


def file_checksum(path: str, checksum_type: str) -> str:
    """Hex digest of the file at *path*."""
    h = hash_for_type(checksum_type)
    if h is None:
        raise ChecksumError(f"Unsupported checksum type: {checksum_type}")
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()


def verify_file(path: str, checksum_type: str, expected: str) -> None:
    """Check the file at *path* against *expected*.

    A *checksum_type* of ``none`` skips the check.

    Raises:
        ChecksumError: On mismatch.
    """
    if checksum_type == "none":
        return
    actual = file_checksum(path, checksum_type)
    if actual != expected.lower():
        raise ChecksumError(
            f"Checksum did not match for {path}: expected {expected.lower()}, got {actual}"
        )

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""MtoolsFloppyAssembler against shell scripts standing in for mtools."""

from __future__ import annotations

import asyncio
import stat
import sys
from pathlib import Path

import pytest

from ovfbuilder.floppy import FloppyError, MtoolsFloppyAssembler, expand_floppy_files

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")


def _tool(tmp_path: Path, name: str, log: Path, exit_code: int = 0) -> str:
    path = tmp_path / name
    path.write_text(f'#!/bin/sh\necho "{name} $*" >> "{log}"\necho "{name} broke" >&2\nexit {exit_code}\n')
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return str(path)


def test_formats_then_copies(tmp_path):
    log = tmp_path / "log"
    (tmp_path / "a.cfg").write_text("a")
    (tmp_path / "b.cfg").write_text("b")
    assembler = MtoolsFloppyAssembler(
        mformat=_tool(tmp_path, "mformat", log), mcopy=_tool(tmp_path, "mcopy", log),
    )

    asyncio.run(assembler.create("/img", [str(tmp_path / "*.cfg")], ["/scripts"]))

    assert log.read_text().splitlines() == [
        "mformat -C -f 1440 -i /img ::",
        f"mcopy -i /img {tmp_path / 'a.cfg'} ::/",
        f"mcopy -i /img {tmp_path / 'b.cfg'} ::/",
        "mcopy -s -i /img /scripts ::/",
    ]


def test_failing_tool(tmp_path):
    log = tmp_path / "log"
    assembler = MtoolsFloppyAssembler(mformat=_tool(tmp_path, "mformat", log, exit_code=1))
    with pytest.raises(FloppyError, match="mformat broke"):
        asyncio.run(assembler.create("/img", ["ks.cfg"], []))


def test_missing_tool(tmp_path):
    assembler = MtoolsFloppyAssembler(mformat=str(tmp_path / "no-mformat"))
    with pytest.raises(FloppyError, match="Is mtools installed"):
        asyncio.run(assembler.create("/img", ["ks.cfg"], []))


def test_expand_floppy_files(tmp_path):
    (tmp_path / "x.sh").write_text("")
    (tmp_path / "dir.sh").mkdir()
    assert expand_floppy_files(["plain.cfg", str(tmp_path / "*.sh")]) == [
        "plain.cfg",
        str(tmp_path / "x.sh"),
    ]

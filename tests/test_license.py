# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

from pathlib import Path

import pytest

import ovfbuilder

PACKAGE_DIR = Path(ovfbuilder.__file__).parent
SOURCES = sorted(p for p in PACKAGE_DIR.rglob("*.py") if p.read_text().strip())


@pytest.mark.parametrize("path", SOURCES, ids=lambda p: str(p.relative_to(PACKAGE_DIR)))
def test_source_has_spdx_header(path):
    head = path.read_text().splitlines()[:5]
    assert "# SPDX-License-Identifier: GPL-3.0-or-later" in head
    assert any(line.startswith("# SPDX-FileCopyrightText:") for line in head)


def test_driver_is_covered():
    assert PACKAGE_DIR / "driver.py" in SOURCES

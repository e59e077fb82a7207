# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pytest configuration for ovfbuilder integration tests.

These tests drive a real VirtualBox and need a small source appliance:

    OVFBUILDER_TEST_OVA=/path/to/tiny.ova pytest tests/integration
"""

from __future__ import annotations

import os

import pytest

from ovfbuilder.driver import find_vboxmanage

# ---------------------------------------------------------------------------
# Test appliance configuration
# ---------------------------------------------------------------------------

TEST_OVA = os.environ.get("OVFBUILDER_TEST_OVA", "")
TEST_OVA_CHECKSUM_TYPE = os.environ.get("OVFBUILDER_TEST_OVA_CHECKSUM_TYPE", "none")
TEST_OVA_CHECKSUM = os.environ.get("OVFBUILDER_TEST_OVA_CHECKSUM", "")


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture
def vboxmanage() -> str:
    """Path to VBoxManage; skips the test when VirtualBox is not installed."""
    path = find_vboxmanage()
    if path is None:
        pytest.skip("VirtualBox (VBoxManage) not installed")
    return path


@pytest.fixture
def source_ova(vboxmanage: str) -> dict[str, str]:
    """Template source keys for a real build; skips when none is configured."""
    if not TEST_OVA or not os.path.isfile(TEST_OVA):
        pytest.skip("Set OVFBUILDER_TEST_OVA to a small appliance to run build tests")
    return {
        "source_path": TEST_OVA,
        "checksum_type": TEST_OVA_CHECKSUM_TYPE,
        "checksum": TEST_OVA_CHECKSUM,
    }

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Shared fixtures for the unit tests."""

from __future__ import annotations

import pytest

from fakes import FakeDriver, RecordingUi
from ovfbuilder.state import StateBag, StateKey


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def ui() -> RecordingUi:
    return RecordingUi()


@pytest.fixture
def state(driver: FakeDriver, ui: RecordingUi) -> StateBag:
    bag = StateBag()
    bag.put(StateKey.DRIVER, driver)
    bag.put(StateKey.UI, ui)
    return bag

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import pytest

from ovfbuilder.steps.vm.scancodes import KeyPress, Wait, char_scancodes, translate


@pytest.mark.parametrize(
    ("char", "codes"),
    [
        ("1", ["02", "82"]),
        ("q", ["10", "90"]),
        ("a", ["1e", "9e"]),
        ("z", ["2c", "ac"]),
        ("/", ["35", "b5"]),
        (" ", ["39", "b9"]),
        ("A", ["2a", "1e", "9e", "aa"]),
        ("!", ["2a", "02", "82", "aa"]),
        (":", ["2a", "27", "a7", "aa"]),
    ],
)
def test_char_scancodes(char, codes):
    assert char_scancodes(char) == codes


def test_unknown_character():
    with pytest.raises(ValueError):
        char_scancodes("é")


def test_special_keys():
    assert translate("<enter>") == [KeyPress(("1c", "9c"))]
    assert translate("<ESC>") == [KeyPress(("01", "81"))]
    assert translate("<up>") == [KeyPress(("e0", "48", "e0", "c8"))]


def test_modifier_on_off():
    assert translate("<leftAltOn>x<leftAltOff>") == [
        KeyPress(("38", "2d", "ad", "b8")),
    ]


def test_waits_split_key_presses():
    assert translate("a<wait>b<wait5><wait10>c<wait1m30s>") == [
        KeyPress(("1e", "9e")),
        Wait(1.0),
        KeyPress(("30", "b0")),
        Wait(5.0),
        Wait(10.0),
        KeyPress(("2e", "ae")),
        Wait(90.0),
    ]


def test_unknown_token_is_typed_literally():
    actions = translate("<nope>")
    assert len(actions) == 1
    # '<', 'n', 'o', 'p', 'e', '>': two shifted characters
    assert len(actions[0].codes) == 6 * 2 + 2 * 2


def test_empty_command():
    assert translate("") == []

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Translate boot command text into PC keyboard scancodes.

A boot command is plain text mixed with special keys in angle brackets::

    <esc><wait>linux ks=http://{{ .HTTPIP }}:{{ .HTTPPort }}/ks.cfg<enter>

Printable characters become make/break scancode pairs (wrapped in
left shift where needed).  ``<enter>``, ``<f1>`` and friends are named
keys; ``<leftAltOn>`` / ``<leftAltOff>`` press or release a modifier
without the other half.  ``<wait>``, ``<wait5>``, ``<wait10>`` and
``<wait1m30s>`` pause for one second, five, ten, or the given duration.

Anything in angle brackets that is not a known key is typed literally.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ...config import parse_duration

_SHIFT_MAKE = "2a"
_SHIFT_BREAK = "aa"

# Each row starts at the scancode of its first key
_ROWS: tuple[tuple[str, int], ...] = (
    ("1234567890-=", 0x02),
    ("!@#$%^&*()_+", 0x02),
    ("qwertyuiop[]", 0x10),
    ("QWERTYUIOP{}", 0x10),
    ("asdfghjkl;'`", 0x1E),
    ('ASDFGHJKL:"~', 0x1E),
    ("\\zxcvbnm,./", 0x2B),
    ("|ZXCVBNM<>?", 0x2B),
    (" ", 0x39),
)
_SHIFTED = frozenset("~!@#$%^&*()_+{}|:\"<>?ABCDEFGHIJKLMNOPQRSTUVWXYZ")

_SPECIAL: dict[str, str] = {
    "bs": "0e",
    "del": "e053",
    "enter": "1c",
    "return": "1c",
    "esc": "01",
    "tab": "0f",
    "spacebar": "39",
    "insert": "e052",
    "home": "e047",
    "end": "e04f",
    "pageup": "e049",
    "pagedown": "e051",
    "up": "e048",
    "down": "e050",
    "left": "e04b",
    "right": "e04d",
    "leftalt": "38",
    "leftctrl": "1d",
    "leftshift": "2a",
    "rightalt": "e038",
    "rightctrl": "e01d",
    "rightshift": "36",
    "leftsuper": "e05b",
    "rightsuper": "e05c",
    "f1": "3b",
    "f2": "3c",
    "f3": "3d",
    "f4": "3e",
    "f5": "3f",
    "f6": "40",
    "f7": "41",
    "f8": "42",
    "f9": "43",
    "f10": "44",
    "f11": "57",
    "f12": "58",
}

_TOKEN_RE = re.compile(r"<([A-Za-z0-9.]+)>")
_WAIT_RE = re.compile(r"wait(.*)", re.IGNORECASE)


@dataclass(frozen=True)
class KeyPress:
    """Scancodes to send in one go, as two-digit hex strings."""

    codes: tuple[str, ...]


@dataclass(frozen=True)
class Wait:
    seconds: float


def _split(code: str) -> list[str]:
    return [code[i:i + 2] for i in range(0, len(code), 2)]


def _break(code: str) -> list[str]:
    parts = _split(code)
    parts[-1] = f"{int(parts[-1], 16) + 0x80:02x}"
    return parts


def char_scancodes(char: str) -> list[str]:
    """Make and break codes that type *char*.

    Raises:
        ValueError: If *char* has no scancode.
    """
    for row, base in _ROWS:
        index = row.find(char)
        if index >= 0:
            code = f"{base + index:02x}"
            codes = _split(code) + _break(code)
            if char in _SHIFTED:
                codes = [_SHIFT_MAKE, *codes, _SHIFT_BREAK]
            return codes
    raise ValueError(f"No scancode for character {char!r}")


def _special(token: str) -> list[str] | None:
    name = token.lower()
    if name.endswith("on") and name[:-2] in _SPECIAL:
        return _split(_SPECIAL[name[:-2]])
    if name.endswith("off") and name[:-3] in _SPECIAL:
        return _break(_SPECIAL[name[:-3]])
    if name in _SPECIAL:
        code = _SPECIAL[name]
        return _split(code) + _break(code)
    return None


def _wait(token: str) -> float | None:
    match = _WAIT_RE.fullmatch(token)
    if match is None:
        return None
    arg = match.group(1)
    if not arg:
        return 1.0
    if arg.isdigit():
        return float(arg)
    try:
        return parse_duration(arg)
    except ValueError:
        return None


def translate(command: str) -> list[KeyPress | Wait]:
    """Turn a rendered boot command into key presses and pauses.

    Consecutive keys are merged into a single :class:`KeyPress`.

    Raises:
        ValueError: If the command contains a character with no scancode.
    """
    actions: list[KeyPress | Wait] = []
    pending: list[str] = []

    def flush() -> None:
        if pending:
            actions.append(KeyPress(tuple(pending)))
            pending.clear()

    pos = 0
    while pos < len(command):
        match = _TOKEN_RE.match(command, pos)
        if match is not None:
            token = match.group(1)
            seconds = _wait(token)
            if seconds is not None:
                flush()
                actions.append(Wait(seconds))
                pos = match.end()
                continue
            codes = _special(token)
            if codes is not None:
                pending.extend(codes)
                pos = match.end()
                continue

        pending.extend(char_scancodes(command[pos]))
        pos += 1

    flush()
    return actions

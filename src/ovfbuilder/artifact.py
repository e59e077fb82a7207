# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Descriptor of a successfully exported appliance."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

BUILDER_ID = "ovfbuilder.virtualbox-ovf"


@dataclass(frozen=True)
class Artifact:
    """Output directory of a build, its export format and the files in it."""

    output_dir: str
    format: str
    files: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_output_dir(cls, output_dir: str, fmt: str) -> Artifact:
        """Describe everything the build left in *output_dir*.

        Raises:
            OSError: If the directory cannot be listed.
        """
        files: list[str] = []
        for root, _dirs, names in os.walk(output_dir, onerror=_raise):
            files.extend(os.path.join(root, n) for n in names)
        return cls(output_dir=output_dir, format=fmt, files=tuple(sorted(files)))

    @property
    def builder_id(self) -> str:
        return BUILDER_ID

    def __str__(self) -> str:
        return f"VM files in directory: {self.output_dir}"


def _raise(err: OSError) -> None:
    raise err

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Steps that talk to the running guest."""

from .connect import StepConnect
from .provision import StepProvision
from .shutdown import StepShutdown
from .upload import StepUploadGuestAdditions, StepUploadVersion

__all__ = [
    "StepConnect",
    "StepProvision",
    "StepShutdown",
    "StepUploadGuestAdditions",
    "StepUploadVersion",
]

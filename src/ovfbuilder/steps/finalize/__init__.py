# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Steps that turn the stopped VM into the exported appliance."""

from .export import StepExport
from .remove_devices import StepRemoveDevices

__all__ = ["StepExport", "StepRemoveDevices"]

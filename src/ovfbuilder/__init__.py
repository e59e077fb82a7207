# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Build VirtualBox appliances from an existing OVF/OVA."""

__version__ = "0.1.0"

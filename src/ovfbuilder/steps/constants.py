# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Constants shared across the build steps."""

from __future__ import annotations

# Name of the NAT port-forwarding rule for the communicator
SSH_NAT_RULE = "ovfbuildercomm"

# Host address as seen from a guest on VirtualBox's default NAT network
NAT_HOST_IP = "10.0.2.2"

# Where the guest additions ISO goes when attached
GUEST_ADDITIONS_CONTROLLER = "IDE Controller"
GUEST_ADDITIONS_PORT = "1"
GUEST_ADDITIONS_DEVICE = "0"

FLOPPY_CONTROLLER = "Floppy Controller"

GUEST_ADDITIONS_URL = (
    "https://download.virtualbox.org/virtualbox/{version}/VBoxGuestAdditions_{version}.iso"
)
GUEST_ADDITIONS_SUMS_URL = "https://download.virtualbox.org/virtualbox/{version}/SHA256SUMS"
GUEST_ADDITIONS_ISO_NAME = "VBoxGuestAdditions_{version}.iso"

DEFAULT_CACHE_DIR = ".ovfbuilder_cache"

# Boot commands are sent in chunks so a single VBoxManage call stays short
SCANCODE_CHUNK_SIZE = 64


def guest_additions_storage_args(vm_name: str, medium: str) -> list[str]:
    """``storageattach`` arguments that put *medium* in the guest additions drive."""
    return [
        "storageattach", vm_name,
        "--storagectl", GUEST_ADDITIONS_CONTROLLER,
        "--port", GUEST_ADDITIONS_PORT,
        "--device", GUEST_ADDITIONS_DEVICE,
        "--type", "dvddrive",
        "--medium", medium,
    ]


def floppy_storage_args(vm_name: str, medium: str) -> list[str]:
    """``storageattach`` arguments that put *medium* in the floppy drive."""
    return [
        "storageattach", vm_name,
        "--storagectl", FLOPPY_CONTROLLER,
        "--port", "0",
        "--device", "0",
        "--type", "fdd",
        "--medium", medium,
    ]

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Steps that create, configure and boot the VM."""

from .boot_command import StepTypeBootCommand
from .floppy import StepAttachFloppy, detach_floppy
from .guest_additions import StepAttachGuestAdditions, detach_guest_additions
from .import_vm import StepImport
from .network import StepConfigureVRDP, StepForwardSSH
from .run_vm import StepRun
from .vboxmanage import StepVBoxManage

__all__ = [
    "StepAttachFloppy",
    "StepAttachGuestAdditions",
    "StepConfigureVRDP",
    "StepForwardSSH",
    "StepImport",
    "StepRun",
    "StepTypeBootCommand",
    "StepVBoxManage",
    "detach_floppy",
    "detach_guest_additions",
]

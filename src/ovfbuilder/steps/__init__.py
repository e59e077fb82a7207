# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""The step kinds a build is made of.

Each step is a frozen dataclass holding only the settings it was built
with; everything produced while running goes through the state bag.
:func:`ovfbuilder.builder.build_steps` puts them in build order.
"""

from .finalize import StepExport, StepRemoveDevices
from .guest import (
    StepConnect,
    StepProvision,
    StepShutdown,
    StepUploadGuestAdditions,
    StepUploadVersion,
)
from .prepare import (
    StepCreateFloppy,
    StepDownload,
    StepDownloadGuestAdditions,
    StepHTTPServer,
    StepOutputDir,
    StepSuppressMessages,
)
from .vm import (
    StepAttachFloppy,
    StepAttachGuestAdditions,
    StepConfigureVRDP,
    StepForwardSSH,
    StepImport,
    StepRun,
    StepTypeBootCommand,
    StepVBoxManage,
)

__all__ = [
    "StepAttachFloppy",
    "StepAttachGuestAdditions",
    "StepConfigureVRDP",
    "StepConnect",
    "StepCreateFloppy",
    "StepDownload",
    "StepDownloadGuestAdditions",
    "StepExport",
    "StepForwardSSH",
    "StepHTTPServer",
    "StepImport",
    "StepOutputDir",
    "StepProvision",
    "StepRemoveDevices",
    "StepRun",
    "StepShutdown",
    "StepSuppressMessages",
    "StepTypeBootCommand",
    "StepUploadGuestAdditions",
    "StepUploadVersion",
    "StepVBoxManage",
]

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Host-side preparation: output directory, floppy image, HTTP server and downloads."""

from .download import StepDownload, StepDownloadGuestAdditions
from .floppy import StepCreateFloppy
from .http_server import StepHTTPServer
from .output_dir import StepOutputDir
from .suppress_messages import StepSuppressMessages

__all__ = [
    "StepCreateFloppy",
    "StepDownload",
    "StepDownloadGuestAdditions",
    "StepHTTPServer",
    "StepOutputDir",
    "StepSuppressMessages",
]

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Decorators for CLI commands."""

from functools import wraps
from typing import Callable, Coroutine, TypeVar

import typer

from ..config import ConfigError
from ..driver import DriverError
from ..ui import out

R = TypeVar("R")


def handle_build_errors(func: Callable[..., Coroutine[None, None, R]]) -> Callable[..., Coroutine[None, None, R]]:
    """Decorator that reports ConfigError and DriverError and exits with 1."""
    @wraps(func)
    async def wrapper(*args: object, **kwargs: object) -> R:
        try:
            return await func(*args, **kwargs)
        except ConfigError as e:
            for warning in e.warnings:
                out.warning(warning)
            out.error(str(e))
            raise typer.Exit(1)
        except DriverError as e:
            out.error(str(e))
            out.hint("Is VirtualBox installed? Set [bold]VBOX_INSTALL_PATH[/bold] if VBoxManage is not on PATH.")
            raise typer.Exit(1)
    return wrapper

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Typer app that accepts ``async def`` commands."""

from __future__ import annotations

import asyncio
import functools
import inspect
from typing import Any, Callable

import typer


class AsyncTyper(typer.Typer):
    """:class:`typer.Typer` whose commands may be coroutine functions.

    Each coroutine command runs in its own event loop via :func:`asyncio.run`.
    """

    def command(self, *args: Any, **kwargs: Any) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        decorator = super().command(*args, **kwargs)

        def wrapper(func: Callable[..., Any]) -> Callable[..., Any]:
            if inspect.iscoroutinefunction(func):
                @functools.wraps(func)
                def run_sync(*a: Any, **kw: Any) -> Any:
                    return asyncio.run(func(*a, **kw))

                decorator(run_sync)
                return func
            return decorator(func)

        return wrapper

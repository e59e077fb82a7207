# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""User-facing progress output."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from rich.console import Console
from rich.markup import escape


@runtime_checkable
class Ui(Protocol):
    """What steps and the CLI use to talk to the user."""

    def info(self, msg: str) -> None: ...

    def dim(self, msg: str) -> None: ...

    def warning(self, msg: str) -> None: ...

    def error(self, msg: str) -> None: ...

    def success(self, msg: str) -> None: ...

    def ask(self, prompt: str) -> str: ...


class ConsoleUi:
    """:class:`Ui` printing to the terminal with rich."""

    def __init__(self, console: Console | None = None, err_console: Console | None = None):
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)

    def info(self, msg: str) -> None:
        self.console.print(f"[bold]==>[/bold] {escape(msg)}")

    def dim(self, msg: str) -> None:
        self.console.print(f"    [dim]{escape(msg)}[/dim]")

    def warning(self, msg: str) -> None:
        self.err_console.print(f"[yellow]Warning:[/yellow] {escape(msg)}")

    def error(self, msg: str) -> None:
        self.err_console.print(f"[bold red]Error:[/bold red] {escape(msg)}")

    def success(self, msg: str) -> None:
        self.console.print(f"[green]==>[/green] {escape(msg)}")

    def hint(self, msg: str) -> None:
        self.err_console.print(f"  {msg}")

    def ask(self, prompt: str) -> str:
        return self.console.input(f"[bold cyan]{escape(prompt)}[/bold cyan] ")


out = ConsoleUi()

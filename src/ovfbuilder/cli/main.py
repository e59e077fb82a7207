#!/usr/bin/env python3
# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""
ovfbuilder CLI - Main entry point.

Usage:
    ovfbuilder [OPTIONS] COMMAND [ARGS]...

Builds VirtualBox appliances from an existing OVF/OVA: import it, boot
it, provision it over SSH and export the result.
"""

import asyncio
import json
import logging
import os
import signal
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .. import __version__
from ..builder import Builder
from ..config import BuildConfig
from ..hook import ShellHook
from ..pipeline import Cancelled, Errored, Halted, Succeeded
from ..ui import out
from .async_typer import AsyncTyper
from .decorators import handle_build_errors

logger = logging.getLogger(__name__)

# Create the main Typer app
app = AsyncTyper(
    name="ovfbuilder",
    help="Build VirtualBox appliances from an existing OVF/OVA",
    add_completion=True,
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        out.info(f"ovfbuilder version {__version__}")
        raise typer.Exit()


def _setup_logging(verbose: bool) -> None:
    level = "DEBUG" if verbose else os.environ.get("OVFBUILDER_LOG", "WARNING").upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log debug output (including every VBoxManage call) to stderr.",
    ),
) -> None:
    """
    ovfbuilder - VirtualBox OVF/OVA builder.

    Templates are JSON objects; run `validate --show` to see the resolved keys.
    """
    _setup_logging(verbose)


def _load_template(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as fh:
            raw = json.load(fh)
    except OSError as e:
        out.error(f"Cannot read template {path}: {e}")
        raise typer.Exit(1)
    except json.JSONDecodeError as e:
        out.error(f"Template {path} is not valid JSON: {e}")
        raise typer.Exit(1)

    if not isinstance(raw, dict):
        out.error(f"Template {path} must contain a JSON object")
        raise typer.Exit(1)
    return raw


def _print_warnings(warnings: list[str]) -> None:
    for warning in warnings:
        out.warning(warning)


def _summary_table(config: BuildConfig) -> Table:
    table = Table(show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("source_path", config.source_path)
    table.add_row("checksum", f"{config.checksum_type}:{config.checksum}")
    table.add_row("vm_name", config.vm_name)
    table.add_row("output_directory", config.output_directory)
    table.add_row("format", config.format)
    table.add_row("guest_additions_mode", config.guest_additions_mode)
    table.add_row("communicator", config.communicator)
    return table


TemplateArg = typer.Argument(
    ...,
    help="Path to the JSON build template",
    exists=True,
    dir_okay=False,
    readable=True,
)


@app.command()
@handle_build_errors
async def validate(
    template: Path = TemplateArg,
    show: bool = typer.Option(
        False,
        "--show",
        "-s",
        help="Print the resolved settings.",
    ),
) -> None:
    """Check a template without building anything.

    The checksum manifest (checksum_url) is fetched, so this needs network
    access when the manifest is remote.
    """
    builder = Builder()
    warnings = builder.prepare(_load_template(template))
    _print_warnings(warnings)

    if show and builder.config is not None:
        out.console.print(_summary_table(builder.config))
    out.success("Template validated successfully.")


@app.command()
@handle_build_errors
async def build(
    template: Path = TemplateArg,
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Delete an existing output directory before building.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Pause before each step.",
    ),
    provision_command: Optional[List[str]] = typer.Option(
        None,
        "--provision-command",
        "-p",
        help="Shell command to run in the guest once it is up (repeatable).",
    ),
    cache_dir: Optional[Path] = typer.Option(
        None,
        "--cache-dir",
        envvar="OVFBUILDER_CACHE_DIR",
        help="Where downloads are cached (default: ./.ovfbuilder_cache).",
    ),
) -> None:
    """Build an appliance from TEMPLATE.

    Ctrl+C stops the build after the current step; everything created so
    far (VM, output directory) is cleaned up.
    """
    raw = _load_template(template)
    if force:
        raw["force"] = True
    if debug:
        raw["debug"] = True

    builder = Builder()
    warnings = builder.prepare(raw)
    _print_warnings(warnings)
    assert builder.config is not None
    name = builder.config.build_name

    hook = ShellHook(provision_command) if provision_command else None

    # Handle interrupt signals
    loop = asyncio.get_running_loop()
    signals = (signal.SIGINT, signal.SIGTERM)

    def handle_signal() -> None:
        out.warning("Interrupt received. Stopping after the current step...")
        builder.cancel()

    for sig in signals:
        loop.add_signal_handler(sig, handle_signal)
    try:
        outcome = await builder.run(out, hook=hook, cache=cache_dir)
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)

    if isinstance(outcome, Succeeded):
        out.success(f"Build '{name}' finished.")
        out.dim(str(outcome.artifact))
        for path in outcome.artifact.files:
            out.dim(path)
        return

    if isinstance(outcome, Errored):
        out.error(f"Build '{name}' errored: {outcome.error}")
    elif isinstance(outcome, Cancelled):
        out.error(f"Build '{name}' was cancelled.")
    elif isinstance(outcome, Halted):
        out.error(f"Build '{name}' was halted.")
    raise typer.Exit(1)


def cli() -> None:
    """CLI entry point for setuptools."""
    prog_name = os.environ.get("OVFBUILDER_PROG_NAME", "ovfbuilder")
    app(prog_name=prog_name)


if __name__ == "__main__":
    cli()

#!/usr/bin/env python3
"""nixhelp CLI - templates and modules for NixOS configuration repositories."""
import dataclasses

import typer
from rich.console import Console

from nixhelp.cli_module_commands import register_module_commands
from nixhelp.cli_support import handle_cli_error, print_warning
from nixhelp.cli_template_commands import register_template_commands
from nixhelp.core.config import NixhelpConfig
from nixhelp.core.errors import NixhelpError
from nixhelp.core.logger import get_logger, set_console_level, setup_file_logging

app = typer.Typer(
    name="nixhelp",
    help="""nixhelp - NixOS configuration helper

Quick start:
  nixhelp template install                      # Install default templates
  nixhelp template list --deps                  # Browse templates
  nixhelp template apply base host-config ./hosts/box --var hostname=box
  nixhelp module create services backup         # Scaffold a module
""",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging and tracebacks on error"),
):
    """Load configuration and set up logging for every command."""
    try:
        config = NixhelpConfig.from_env()
    except NixhelpError as e:
        handle_cli_error(e, console, verbose)

    if verbose:
        config = dataclasses.replace(config, verbose=True)

    set_console_level(config.verbose)
    try:
        config.ensure_directories()
    except OSError as e:
        print_warning(console, f"Cannot create nixhelp directories: {e}")
    try:
        setup_file_logging(config.log_file, verbose=config.verbose)
    except OSError as e:
        print_warning(console, f"File logging disabled: {e}")

    ctx.obj = config


# Attach modular subcommands
register_template_commands(app, console)
register_module_commands(app, console)

if __name__ == "__main__":
    app()

"""Shared utilities for nixhelp CLI modules."""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.markup import escape

from nixhelp.core.config import NixhelpConfig
from nixhelp.core.errors import ValidationError


def get_config(ctx: Optional[typer.Context]) -> NixhelpConfig:
    """Return the config built by the root callback, or build one from the environment."""
    if ctx is not None and isinstance(ctx.obj, NixhelpConfig):
        return ctx.obj
    return NixhelpConfig.from_env()


def parse_variables(variables_json: Optional[str], pairs: Optional[List[str]] = None) -> Dict[str, Any]:
    """Merge a JSON object argument and repeated --var key=value options.

    --var values win over keys in the JSON object.

    Raises:
        ValidationError: JSON is not an object, or a --var has no '='
    """
    variables: Dict[str, Any] = {}

    if variables_json:
        try:
            parsed = json.loads(variables_json)
        except json.JSONDecodeError as e:
            raise ValidationError(
                f"Variables must be a JSON object: {e}",
                reason="invalid-variables",
                field="variables",
            ) from e
        if not isinstance(parsed, dict):
            raise ValidationError(
                f"Variables must be a JSON object, got {type(parsed).__name__}",
                reason="invalid-variables",
                field="variables",
            )
        variables.update(parsed)

    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValidationError(
                f"Invalid --var '{pair}' (expected key=value)",
                reason="invalid-variables",
                field="variables",
            )
        variables[key.strip()] = value

    return variables


def confirm_action(message: str, yes_flag: bool = False) -> bool:
    """Prompt user for confirmation unless --yes.

    Args:
        message: Confirmation message to display
        yes_flag: Skip prompt if True (from --yes flag)

    Returns:
        True if confirmed, False otherwise
    """
    if yes_flag:
        return True
    return typer.confirm(message)


def handle_cli_error(
    e: Exception,
    console: Console,
    verbose: bool = False,
    exit_code: int = 1
) -> None:
    """Print ``Error: <kind>: <message>`` and exit.

    Args:
        e: Exception to handle
        console: Rich console for output
        verbose: Show exception traceback if True
        exit_code: Exit code to use
    """
    kind = getattr(e, "kind", type(e).__name__)
    console.print(f"[red]Error:[/red] {kind}: {escape(str(e))}")
    if verbose:
        console.print_exception()
    raise typer.Exit(exit_code)


def print_success(console: Console, message: str, prefix: str = "✓") -> None:
    console.print(f"[green]{prefix}[/green] {message}")


def print_warning(console: Console, message: str, prefix: str = "⚠") -> None:
    console.print(f"[yellow]{prefix}[/yellow] {message}")


def print_info(console: Console, message: str, prefix: str = "ℹ") -> None:
    console.print(f"[cyan]{prefix}[/cyan] {message}")

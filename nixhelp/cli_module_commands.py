"""Module scaffolding CLI commands."""
import typer
from rich.console import Console
from rich.markup import escape

from nixhelp.cli_support import get_config, handle_cli_error, print_success
from nixhelp.core.errors import NixhelpError
from nixhelp.modules import MODULE_CATEGORIES, ModuleScaffolder

# Module-level console instance (will be set by register function)
console: Console = Console()

ModuleApp = typer.Typer(help="Create NixOS and home-manager modules")


@ModuleApp.command("create")
def create_command(
    ctx: typer.Context,
    category: str = typer.Argument(..., help=f"Module category ({', '.join(MODULE_CATEGORIES)})"),
    name: str = typer.Argument(..., help="Module name"),
    module_type: str = typer.Option("nixos", "--type", "-t", help="Module type: nixos|home-manager"),
):
    """Create modules/CATEGORY/NAME from the base module template.

    Examples:
        nixhelp module create services backup
        nixhelp module create editor neovim --type home-manager
    """
    config = get_config(ctx)
    try:
        module_path = ModuleScaffolder(config).create_module(category, name, module_type)
    except NixhelpError as e:
        handle_cli_error(e, console, config.verbose)

    print_success(console, f"Module created at {escape(str(module_path))}")
    console.print(f"[dim]Enable it with modules.{escape(category)}.{escape(name)}.enable = true;[/dim]")


def register_module_commands(app: typer.Typer, shared_console: Console) -> None:
    """Attach the module command group to the main CLI."""
    global console
    console = shared_console
    app.add_typer(ModuleApp, name="module")

"""Template CLI commands - install, list, show, validate, apply, add, remove, update."""
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape

from nixhelp.cli_support import (
    confirm_action,
    get_config,
    handle_cli_error,
    parse_variables,
    print_info,
    print_success,
    print_warning,
)
from nixhelp.core.config import CATEGORY_LABELS
from nixhelp.core.errors import NixhelpError, TemplateNotFoundError, ValidationError
from nixhelp.templates.manager import TemplateManager
from nixhelp.templates.metadata import MetadataStore

# Module-level console instance (will be set by register function)
console: Console = Console()

TemplateApp = typer.Typer(help="Manage and apply configuration templates")


@TemplateApp.command("install")
def install_command(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite installed default templates"),
):
    """Install the default templates into the template directory."""
    config = get_config(ctx)
    try:
        installed = TemplateManager(config).installer.install_defaults(force=force)
    except NixhelpError as e:
        handle_cli_error(e, console, config.verbose)

    for key in installed:
        print_success(console, f"Installed {key}")
    if not installed:
        print_info(console, "Default templates already installed (use --force to reinstall)")
    console.print(f"[dim]Templates: {escape(str(config.template_dir))}[/dim]")


@TemplateApp.command("list")
def list_command(
    ctx: typer.Context,
    category: str = typer.Argument("all", help="Category to list (base, configs, development, custom, all)"),
    deps: bool = typer.Option(False, "--deps", "-d", help="Show dependencies"),
):
    """List available templates.

    Examples:
        nixhelp template list
        nixhelp template list configs --deps
    """
    config = get_config(ctx)
    try:
        listing = TemplateManager(config).registry.list_templates(category)
    except NixhelpError as e:
        handle_cli_error(e, console, config.verbose)

    for cat, summaries in listing.items():
        console.print(f"\n[bold cyan]{CATEGORY_LABELS[cat]}[/bold cyan] ({cat})")
        if not summaries:
            console.print("  [dim]none[/dim]")
            continue
        for summary in summaries:
            console.print(
                f"  [cyan]{escape(summary.name)}[/cyan] {summary.version} "
                f"[dim]{summary.type}[/dim] - {escape(summary.description)}"
            )
            if deps:
                for dep in summary.dependencies:
                    console.print(f"      requires {escape(dep.name)} {dep.version}")


@TemplateApp.command("show")
def show_command(
    ctx: typer.Context,
    category: str = typer.Argument(..., help="Template category"),
    name: str = typer.Argument(..., help="Template name (e.g. editor/vim)"),
):
    """Show a template's metadata."""
    config = get_config(ctx)
    try:
        template = TemplateManager(config).registry.get(category, name)
    except NixhelpError as e:
        handle_cli_error(e, console, config.verbose)

    meta = template.metadata
    console.print(f"[bold cyan]{escape(template.key)}[/bold cyan] {meta.version}")
    console.print(f"  Name:        {escape(meta.name)}")
    console.print(f"  Type:        {meta.type.value}")
    console.print(f"  Description: {escape(meta.description)}")
    console.print(f"  Path:        {escape(str(template.path))}")
    if meta.compatibility:
        console.print(f"  Systems:     {', '.join(meta.compatibility)}")

    if meta.dependencies:
        console.print("  Dependencies:")
        for dep in meta.dependencies:
            console.print(f"    - {escape(dep.name)} {dep.version}")

    if meta.variables:
        console.print("  Variables:")
        for var_name, spec in meta.variables.items():
            default = "[dim](required)[/dim]" if spec.default in (None, "") else f"= {escape(str(spec.default))}"
            console.print(f"    - {escape(var_name)} {default} {escape(spec.description)}")


@TemplateApp.command("validate")
def validate_command(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Template directory or template.json"),
):
    """Validate template metadata."""
    config = get_config(ctx)
    try:
        metadata = MetadataStore().load(path)
    except NixhelpError as e:
        handle_cli_error(e, console, config.verbose)

    print_success(console, f"Valid template: {escape(metadata.name)} {metadata.version}")


@TemplateApp.command("apply")
def apply_command(
    ctx: typer.Context,
    category: str = typer.Argument(..., help="Template category"),
    name: str = typer.Argument(..., help="Template name (e.g. editor/vim)"),
    target: Path = typer.Argument(..., help="Directory to write into"),
    variables_json: Optional[str] = typer.Argument(None, help='Variables as a JSON object, e.g. \'{"hostname": "box"}\''),
    var: Optional[List[str]] = typer.Option(None, "--var", help="Variable as key=value (repeatable)"),
    system: Optional[str] = typer.Option(None, "--system", "-s", help="Target system tag to check compatibility against"),
):
    """Apply a template and its dependencies to a directory.

    Examples:
        nixhelp template apply configs editor/vim ./home --var extraConfig="set number"
        nixhelp template apply base host-config ./hosts/box '{"hostname": "box"}'
    """
    config = get_config(ctx)
    try:
        variables = parse_variables(variables_json, var)
        result = TemplateManager(config).apply(category, name, target, variables, system)
    except NixhelpError as e:
        handle_cli_error(e, console, config.verbose)

    for key in result.templates:
        print_success(console, f"Applied {escape(key)}")
    console.print(f"[dim]{len(result.files)} file(s) written to {escape(str(result.target))}[/dim]")


@TemplateApp.command("add")
def add_command(
    ctx: typer.Context,
    category: str = typer.Argument(..., help="Template category"),
    name: str = typer.Argument(..., help="Template name"),
    source: Path = typer.Argument(..., help="Template directory containing template.json"),
    force: bool = typer.Option(False, "--force", "-f", help="Replace an existing template"),
):
    """Add a template from a local directory."""
    config = get_config(ctx)
    try:
        path = TemplateManager(config).add_template(category, name, source, force=force)
    except NixhelpError as e:
        handle_cli_error(e, console, config.verbose)

    print_success(console, f"Added template {escape(category)}/{escape(name)} at {escape(str(path))}")


@TemplateApp.command("remove")
def remove_command(
    ctx: typer.Context,
    category: str = typer.Argument(..., help="Template category"),
    name: str = typer.Argument(..., help="Template name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Remove an installed template."""
    config = get_config(ctx)
    try:
        manager = TemplateManager(config)
        if manager.registry.find(category, name) is None:
            raise TemplateNotFoundError(category, name)

        if not confirm_action(f"Remove template {category}/{name}?", yes):
            print_warning(console, "Cancelled")
            return

        manager.remove_template(category, name)
    except NixhelpError as e:
        handle_cli_error(e, console, config.verbose)

    print_success(console, f"Removed template {escape(category)}/{escape(name)}")


@TemplateApp.command("update")
def update_command(
    ctx: typer.Context,
    category: Optional[str] = typer.Argument(None, help="Template category (omit to refresh all defaults)"),
    name: Optional[str] = typer.Argument(None, help="Template name"),
    source: Optional[Path] = typer.Option(None, "--source", help="Directory to update the template from"),
    force: bool = typer.Option(False, "--force", "-f", help="When refreshing defaults, also install missing ones"),
):
    """Update templates, backing up the current version first.

    Examples:
        nixhelp template update                               # refresh installed defaults
        nixhelp template update custom mytpl --source ./mytpl
    """
    config = get_config(ctx)
    manager = TemplateManager(config)

    if category is None:
        try:
            refreshed = manager.update_defaults(install_missing=force)
        except NixhelpError as e:
            handle_cli_error(e, console, config.verbose)
        for key in refreshed:
            print_success(console, f"Updated {key}")
        if not refreshed:
            print_info(console, "No installed default templates to update")
        return

    try:
        if name is None:
            raise ValidationError(
                "Both CATEGORY and NAME are required to update one template",
                reason="missing-field",
                field="name",
            )
        backup_id = manager.update_template(category, name, source)
    except NixhelpError as e:
        handle_cli_error(e, console, config.verbose)

    print_success(console, f"Updated template {escape(category)}/{escape(name)}")
    console.print(f"[dim]Previous version backed up as {escape(backup_id)}[/dim]")


def register_template_commands(app: typer.Typer, shared_console: Console) -> None:
    """Attach the template command group to the main CLI."""
    global console
    console = shared_console
    app.add_typer(TemplateApp, name="template")

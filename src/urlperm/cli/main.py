"""CLI entry point for urlperm.

Invoked as::

    urlperm [OPTIONS] COMMAND [ARGS]...

or during development::

    python -m urlperm.cli.main

Commands
--------
- allows      Check whether granted permissions cover requested ones
- may-grant   Check whether a grantor may grant a permission
- may-revoke  Check whether a grantor may revoke a permission
- validate    Validate permission strings
- unwind      Expand multi-valued attributes into single-valued permissions
- privileges  Show the active privilege configuration
- version     Show version information

``allows``, ``may-grant`` and ``may-revoke`` exit with status 0 when the
answer is yes, 1 when it is no and 2 when an argument cannot be parsed.
"""
from __future__ import annotations

import sys
from pathlib import Path

import click
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from urlperm.config import ConfigLoader, PrivilegeConfig, get_config
from urlperm.exceptions import UrlPermissionError
from urlperm.permission import Permission
from urlperm.permission_set import PermissionSet, unwind
from urlperm.validate import validate

console = Console()
err_console = Console(stderr=True)

_config_option = click.option(
    "--config",
    "-c",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="Path to a privilege configuration YAML file.",
)


def _load(config_path: str | None) -> PrivilegeConfig:
    if config_path is None:
        return get_config()
    try:
        return ConfigLoader().load(Path(config_path))
    except UrlPermissionError as exc:
        err_console.print(f"[red]Invalid config:[/red] {escape(str(exc))}")
        sys.exit(2)


def _verdict(allowed: bool, title: str) -> None:
    status_str = "[green]ALLOWED[/green]" if allowed else "[red]DENIED[/red]"
    console.print(Panel(status_str, title=title, border_style="blue"))
    sys.exit(0 if allowed else 1)


# ---------------------------------------------------------------------------
# Root command group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="urlperm")
def cli() -> None:
    """URL permission tools: authorization, delegation and validation checks."""


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from urlperm import __version__

    console.print(
        Panel(
            f"[bold]urlperm[/bold]  v[cyan]{__version__}[/cyan]\n"
            "URL permission strings with glob paths, attributes and privileges.",
            title="Version",
            border_style="blue",
        )
    )


# ---------------------------------------------------------------------------
# allows
# ---------------------------------------------------------------------------


@cli.command(name="allows")
@click.option(
    "--granted",
    "-g",
    "granted",
    multiple=True,
    required=True,
    help="A permission held by the subject. Repeat for several.",
)
@click.argument("requested", nargs=-1, required=True)
@_config_option
def allows_command(
    granted: tuple[str, ...], requested: tuple[str, ...], config_path: str | None
) -> None:
    """Check whether the granted permissions cover every REQUESTED permission."""
    config = _load(config_path)
    try:
        allowed = PermissionSet(*granted, config=config).allows(
            *[Permission.parse(r, config) for r in requested]
        )
    except UrlPermissionError as exc:
        err_console.print(f"[red]Invalid permission:[/red] {escape(str(exc))}")
        sys.exit(2)
    _verdict(allowed, "Authorization Check")


# ---------------------------------------------------------------------------
# may-grant / may-revoke
# ---------------------------------------------------------------------------


def _delegation_check(
    operation: str,
    grantor: tuple[str, ...],
    permission: str,
    grantee: tuple[str, ...],
    config_path: str | None,
) -> None:
    config = _load(config_path)
    try:
        held = PermissionSet(*grantor, config=config)
        new_permission = Permission.parse(permission, config)
        existing = [Permission.parse(g, config) for g in grantee]
        if operation == "grant":
            allowed = held.may_grant(new_permission, existing)
        else:
            allowed = held.may_revoke(new_permission, existing)
    except UrlPermissionError as exc:
        err_console.print(f"[red]Invalid permission:[/red] {escape(str(exc))}")
        sys.exit(2)
    _verdict(allowed, f"{operation.capitalize()} Check")


@cli.command(name="may-grant")
@click.option("--grantor", "-g", multiple=True, required=True, help="A permission held by the grantor.")
@click.option("--grantee", "-e", multiple=True, help="A permission the grantee already holds.")
@click.argument("permission")
@_config_option
def may_grant_command(
    grantor: tuple[str, ...],
    grantee: tuple[str, ...],
    permission: str,
    config_path: str | None,
) -> None:
    """Check whether the grantor may grant PERMISSION."""
    _delegation_check("grant", grantor, permission, grantee, config_path)


@cli.command(name="may-revoke")
@click.option("--grantor", "-g", multiple=True, required=True, help="A permission held by the grantor.")
@click.option("--grantee", "-e", multiple=True, help="A permission the grantee already holds.")
@click.argument("permission")
@_config_option
def may_revoke_command(
    grantor: tuple[str, ...],
    grantee: tuple[str, ...],
    permission: str,
    config_path: str | None,
) -> None:
    """Check whether the grantor may revoke PERMISSION."""
    _delegation_check("revoke", grantor, permission, grantee, config_path)


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


@cli.command(name="validate")
@click.argument("permissions", nargs=-1, required=True)
@_config_option
def validate_command(permissions: tuple[str, ...], config_path: str | None) -> None:
    """Validate one or more permission strings."""
    config = _load(config_path)

    table = Table(title="Permission Validation", box=box.SIMPLE)
    table.add_column("Permission", style="cyan")
    table.add_column("Valid")

    all_valid = True
    for text in permissions:
        valid = validate(text, config)
        all_valid = all_valid and valid
        table.add_row(escape(text), "[green]yes[/green]" if valid else "[red]no[/red]")

    console.print(table)
    sys.exit(0 if all_valid else 1)


# ---------------------------------------------------------------------------
# unwind
# ---------------------------------------------------------------------------


@cli.command(name="unwind")
@click.argument("permission")
@_config_option
def unwind_command(permission: str, config_path: str | None) -> None:
    """Expand PERMISSION into one permission per attribute combination."""
    config = _load(config_path)
    try:
        atoms = unwind(permission, config)
    except UrlPermissionError as exc:
        err_console.print(f"[red]Invalid permission:[/red] {escape(str(exc))}")
        sys.exit(2)
    for atom in atoms:
        click.echo(str(atom))


# ---------------------------------------------------------------------------
# privileges
# ---------------------------------------------------------------------------


@cli.command(name="privileges")
@_config_option
def privileges_command(config_path: str | None) -> None:
    """Show the privilege configuration."""
    config = _load(config_path)

    table = Table(title="Privileges", box=box.SIMPLE)
    table.add_column("Identifier", style="cyan")
    table.add_column("Name", style="magenta")
    table.add_column("Bit", justify="right")
    table.add_column("May grant")

    for definition in config.definitions:
        grantable = config.grant_masks.get(definition.bit, 0)
        table.add_row(
            escape(definition.identifier or "-"),
            escape(definition.name),
            str(definition.bit),
            escape(", ".join(d.label for d in config.definitions_in(grantable)) or "-"),
        )
    console.print(table)

    if config.aliases:
        console.print("  Aliases:")
        for alias, mask in config.aliases.items():
            labels = ", ".join(d.label for d in config.definitions_in(mask))
            console.print(f"    [cyan]{escape(alias)}[/cyan] = {escape(labels)}")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    cli()

"""
SSH config CLI commands
"""
from pathlib import Path
from typing import List, Optional

import typer
from rich.table import Table

from ...core.exceptions import ConfigError, SSHConfigError
from ...core.logging import get_logger, get_stdout_console, get_stderr_console
from ...core.utils import resolve_ssh_config_path
from ...domain.ssh import SSHConfig, SSHValues, compute_ssh_properties, parse_ssh_config_lines
from .context import get_config_file, load_settings

logger = get_logger(__name__)
stdout_console = get_stdout_console()
stderr_console = get_stderr_console()


def register_ssh_config_app(app: typer.Typer) -> None:
    """Register ssh-config subcommand app"""
    ssh_config_app = typer.Typer(
        name="ssh-config",
        help="Inspect and update the managed SSH config block",
        add_completion=False,
        no_args_is_help=True,
    )

    ssh_config_app.command(name="inspect")(ssh_config_inspect)
    ssh_config_app.command(name="update")(ssh_config_update)

    app.add_typer(ssh_config_app, name="ssh-config")


def _config_path(ctx: typer.Context, file: Optional[Path]) -> Path:
    if file is not None:
        return file.expanduser()
    try:
        settings = load_settings(get_config_file(ctx))
    except ConfigError as e:
        stderr_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    return resolve_ssh_config_path(settings.ssh_config_file)


def ssh_config_inspect(
    ctx: typer.Context,
    host: str = typer.Argument(..., help="Concrete host name, e.g. coder-vscode.dev.example.com--alice--box"),
    file: Optional[Path] = typer.Option(
        None,
        "--file",
        "-f",
        help="SSH config file (default: configured ssh_config_file)",
    ),
):
    """
    Show the options ssh applies to a host (first match wins)
    """
    path = _config_path(ctx, file)
    ssh_config = SSHConfig(path)
    try:
        text = ssh_config.load()
    except OSError as e:
        stderr_console.print(f"[red]Error:[/red] Failed to read {path}: {e}")
        raise typer.Exit(1)

    properties = compute_ssh_properties(host, text)
    if not properties:
        stdout_console.print(f"[yellow]No options apply to[/yellow] {host}")
        return

    table = Table(title=f"{host} ({path})")
    table.add_column("Option", style="cyan")
    table.add_column("Value")
    for key, value in properties.items():
        table.add_row(key, value)
    stdout_console.print(table)


def ssh_config_update(
    ctx: typer.Context,
    label: str = typer.Argument(..., help="Deployment label, empty string for the unlabeled block"),
    host_pattern: str = typer.Option(..., "--host", help="Host pattern, e.g. coder-vscode.dev.example.com--*"),
    proxy_command: str = typer.Option(..., "--proxy-command", help="ProxyCommand value"),
    option: List[str] = typer.Option(
        [],
        "--option",
        "-o",
        help='Override "Key value" (repeatable, empty value removes the key)',
    ),
    check_host: Optional[str] = typer.Option(
        None,
        "--check-host",
        help="Host to verify after writing",
    ),
    file: Optional[Path] = typer.Option(
        None,
        "--file",
        "-f",
        help="SSH config file (default: configured ssh_config_file)",
    ),
):
    """
    Write the managed block for a label and report shadowed options

    Examples:
        coder-remote ssh-config update dev.example.com \\
            --host 'coder-vscode.dev.example.com--*' \\
            --proxy-command 'coder ssh --stdio %h' \\
            -o 'LogLevel DEBUG' --check-host coder-vscode.dev.example.com--alice--box
    """
    path = _config_path(ctx, file)
    overrides = parse_ssh_config_lines(option)
    # "Key" with no value means delete
    for line in option:
        stripped = line.strip()
        if stripped and " " not in stripped and "=" not in stripped:
            overrides[stripped] = ""

    ssh_config = SSHConfig(path)
    try:
        ssh_config.load()
        written = ssh_config.update(label, SSHValues(Host=host_pattern, ProxyCommand=proxy_command), overrides)
    except (SSHConfigError, OSError) as e:
        stderr_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    stdout_console.print(f"[green]✓[/green] Updated block [cyan]{label or '(unlabeled)'}[/cyan] in {path}")

    if check_host:
        conflicts = ssh_config.verify(check_host, written)
        if conflicts:
            for conflict in conflicts:
                stderr_console.print(
                    f"[red]✗[/red] {conflict.key}: expected [cyan]{conflict.expected}[/cyan], "
                    f"ssh uses [yellow]{conflict.actual}[/yellow] for {conflict.host}"
                )
            raise typer.Exit(1)
        stdout_console.print(f"[green]✓[/green] No conflicting options for {check_host}")

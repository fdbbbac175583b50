"""
Connection CLI commands
"""
import signal
import threading
from typing import Optional

import typer
from rich.table import Table

from ...core.exceptions import ConfigError, ConnectionAborted, RemoteError
from ...core.logging import get_logger, get_stdout_console, get_stderr_console
from ...core.paths import PathResolver
from ...core.utils import to_safe_host
from ...domain.authority import host_prefix, parse_remote_authority
from ...infrastructure.state.secrets_store import FileSecretsStore
from .context import build_remote_setup, get_config_file, load_settings, store_credentials
from .prompts import RichPromptProvider

logger = get_logger(__name__)
stdout_console = get_stdout_console()
stderr_console = get_stderr_console()


def register_remote_commands(app: typer.Typer) -> None:
    """Register connect, parse and login on the root app"""
    app.command(name="connect")(connect)
    app.command(name="parse")(parse)
    app.command(name="login")(login)


def connect(
    ctx: typer.Context,
    authority: str = typer.Argument(..., help="Remote authority, e.g. ssh-remote+coder-vscode.<host>--<owner>--<workspace>"),
    first_connect: bool = typer.Option(
        False,
        "--first-connect",
        help="Start a stopped workspace without asking",
    ),
    wait: bool = typer.Option(
        True,
        "--wait/--no-wait",
        help="Keep monitoring the connection until Ctrl+C",
    ),
    non_interactive: bool = typer.Option(
        False,
        "--non-interactive",
        help="Never prompt; dismiss every dialog",
    ),
):
    """
    Prepare a workspace for SSH

    Starts the workspace if needed, waits for its agent, and writes the
    managed block to your SSH config.

    Examples:
        coder-remote connect ssh-remote+coder-vscode.dev.example.com--alice--box
        coder-remote connect coder-vscode--alice--box.main --first-connect
    """
    config_file = get_config_file(ctx)
    try:
        settings = load_settings(config_file)
    except ConfigError as e:
        stderr_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    setup = build_remote_setup(settings, config_file=config_file, interactive=not non_interactive)

    try:
        details = setup.setup(authority, first_connect)
    except ConnectionAborted as e:
        stderr_console.print(f"[red]Connection aborted:[/red] {e}")
        if e.reload:
            stderr_console.print("[yellow]Fix the problem and run the command again.[/yellow]")
        raise typer.Exit(1)
    except RemoteError as e:
        stderr_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        setup.cancel()
        stderr_console.print("[yellow]Cancelled[/yellow]")
        raise typer.Exit(130)

    if details is None:
        stderr_console.print(f"[yellow]Not a Coder authority:[/yellow] {authority}")
        raise typer.Exit(2)

    parts = parse_remote_authority(authority)
    stdout_console.print(f"[green]✓[/green] Workspace [cyan]{parts.workspace_name}[/cyan] is ready")
    stdout_console.print(f"  Deployment: [cyan]{details.url}[/cyan]")
    stdout_console.print(f"  SSH host: [cyan]{parts.ssh_host}[/cyan]")
    stdout_console.print(f"  Connect with: [cyan]ssh {parts.ssh_host}[/cyan]")

    if not wait:
        details.dispose()
        return

    stdout_console.print("[dim]Monitoring connection, press Ctrl+C to stop[/dim]")
    stopped = threading.Event()
    previous = signal.signal(signal.SIGTERM, lambda *_: stopped.set())
    try:
        while not stopped.wait(1.0):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        signal.signal(signal.SIGTERM, previous)
        details.dispose()
    stdout_console.print("[green]✓[/green] Stopped")


def parse(
    authority: str = typer.Argument(..., help="Remote authority to parse"),
):
    """
    Show the parts of a remote authority
    """
    try:
        parts = parse_remote_authority(authority)
    except RemoteError as e:
        stderr_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if parts is None:
        stderr_console.print(f"[yellow]Not a Coder authority:[/yellow] {authority}")
        raise typer.Exit(2)

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Owner", parts.username)
    table.add_row("Workspace", parts.workspace)
    table.add_row("Agent", parts.agent or "-")
    table.add_row("Label", parts.label or "-")
    table.add_row("SSH host", parts.ssh_host)
    table.add_row("Host prefix", host_prefix(parts.label))
    if parts.container_name_hex:
        table.add_row("Container", parts.container_name_hex)
    stdout_console.print(table)


def login(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Deployment URL"),
    token: Optional[str] = typer.Option(
        None,
        "--token",
        "-t",
        help="Session token (prompted when omitted)",
    ),
    label: Optional[str] = typer.Option(
        None,
        "--label",
        help="Deployment label (default: the URL's host)",
    ),
):
    """
    Store a session token for a deployment
    """
    try:
        settings = load_settings(get_config_file(ctx))
        deployment_label = label if label is not None else to_safe_host(url)
    except ConfigError as e:
        stderr_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    prompts = RichPromptProvider()
    if token is None and settings.needs_token:
        prompts.info(f"Get a session token from {url.rstrip('/')}/cli-auth")
        token = prompts.prompt("Session token", password=True).strip()

    secrets = FileSecretsStore(PathResolver(settings.data_path))
    if not store_credentials(settings, secrets, url, token or "", deployment_label, prompts):
        raise typer.Exit(1)

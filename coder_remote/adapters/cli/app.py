"""
Main CLI application
"""
import typer
from pathlib import Path
from typing import Optional

from ...core.logging import setup_logging, get_logger
from .remote import register_remote_commands
from .ssh_config import register_ssh_config_app

logger = get_logger(__name__)

# Create main app
app = typer.Typer(
    name="coder-remote",
    add_completion=False,
    help="Connect to Coder workspaces over SSH",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

register_remote_commands(app)
register_ssh_config_app(app)


@app.callback()
def main(
    ctx: typer.Context,
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        "-l",
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Log file path",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="TOML configuration file (default: ~/.config/coder-remote/config.toml)",
    ),
):
    """
    Coder Remote - prepare Coder workspaces for SSH

    Use subcommands to perform different operations:
    - connect: Start a workspace, wait for its agent and write the SSH config
    - login: Store a session token for a deployment
    - parse: Show the parts of a remote authority
    - ssh-config: Inspect and update the managed SSH config block
    """
    setup_logging(level=log_level, log_file=log_file)
    ctx.obj = {"config_file": config.expanduser() if config else None}


def run():
    """CLI entry point"""
    app()


if __name__ == "__main__":
    run()

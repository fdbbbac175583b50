"""
ProxyCommand synthesis
"""
from pathlib import Path
from typing import List, Optional, Sequence

from ...core.logging import get_logger
from ...core.paths import PathResolver
from ...core.utils import escape_command_arg
from ..version import FeatureSet

logger = get_logger(__name__)


def build_global_flags(
    configured: Sequence[str],
    header_command: str = "",
    global_config_dir: Optional[Path] = None,
) -> List[str]:
    """
    Flags placed between the binary and the subcommand.

    ``--header-command`` and ``--global-config`` computed here replace any
    configured flag of the same name.
    """
    flags = list(configured)
    header_args: List[str] = []
    if header_command.strip():
        header_args = ["--header-command", escape_command_arg(header_command)]
        flags = [f for f in flags if not f.startswith("--header-command")]

    config_args: List[str] = []
    if global_config_dir is not None:
        config_args = ["--global-config", escape_command_arg(str(global_config_dir))]
        flags = [f for f in flags if not f.startswith("--global-config")]

    return flags + header_args + config_args


def format_log_arg(log_dir: Optional[Path]) -> str:
    """`` --log-dir <dir> -v`` after creating the directory, or ""."""
    if log_dir is None:
        return ""
    log_dir.mkdir(parents=True, exist_ok=True)
    logger.info(f"SSH proxy diagnostics are being written to {log_dir}")
    return f" --log-dir {escape_command_arg(str(log_dir))} -v"


def build_proxy_command(
    binary: Path,
    label: str,
    host_prefix: str,
    feature_set: FeatureSet,
    paths: PathResolver,
    global_flags: Sequence[str] = (),
    log_dir: Optional[Path] = None,
) -> str:
    """
    Build the ProxyCommand for the managed Host entry.

    Args:
        binary: CLI binary
        label: Deployment label
        host_prefix: e.g. "coder-vscode.dev.example.com--"
        feature_set: Negotiated capabilities
        paths: Deployment file layout
        global_flags: Output of ``build_global_flags``
        log_dir: Proxy diagnostics directory; ignored when unsupported

    Returns:
        Wildcard ``ssh`` form when supported, else the legacy ``vscodessh`` form
    """
    flags = f" {' '.join(global_flags)}" if global_flags else ""
    log_arg = format_log_arg(log_dir) if feature_set.proxy_log_directory else ""
    network_dir = escape_command_arg(str(paths.network_info_dir()))
    command = f"{escape_command_arg(str(binary))}{flags}"

    if feature_set.wildcard_ssh:
        return (
            f"{command} ssh --stdio --usage-app=vscode --disable-autostart "
            f"--network-info-dir {network_dir}{log_arg} --ssh-host-prefix {host_prefix} %h"
        )

    return (
        f"{command} vscodessh --network-info-dir {network_dir}{log_arg} "
        f"--session-token-file {escape_command_arg(str(paths.session_token_path(label)))} "
        f"--url-file {escape_command_arg(str(paths.url_path(label)))} %h"
    )

"""
Remote authority parser

Handles identifiers in these shapes:
- ssh-remote+coder-vscode.<label>--<owner>--<workspace>[--<agent>]
- ssh-remote+coder-vscode--<owner>--<workspace>[--<agent>]
- ssh-remote+coder-vscode.<label>--<owner>--<workspace>.<agent>
- attached-container+<hex>@ssh-remote+<any of the above>
- the bare host without the ssh-remote+ scheme
"""
from typing import Optional

from ...core.constants import AUTHORITY_PREFIX, DEV_CONTAINER_SCHEME, SSH_REMOTE_SCHEME
from ...core.exceptions import AuthorityFormatError
from ...core.utils import to_safe_host
from .models import RemoteAuthorityParts

SEPARATOR = "--"


def _split_container(authority: str) -> Optional[tuple]:
    """Return (ssh_authority, container_name_hex) or None for foreign shapes"""
    pieces = authority.split("@")
    if len(pieces) == 1:
        return pieces[0], None
    if len(pieces) == 2 and DEV_CONTAINER_SCHEME in pieces[0]:
        return pieces[1], pieces[0].split("+", 1)[1]
    return None


def _strip_scheme(ssh_authority: str) -> str:
    if ssh_authority.startswith(SSH_REMOTE_SCHEME):
        return ssh_authority[len(SSH_REMOTE_SCHEME):]
    return ssh_authority


def is_own_prefix(segment: str) -> bool:
    """True if the first host segment carries this tool's namespace"""
    return segment == AUTHORITY_PREFIX or segment.startswith(f"{AUTHORITY_PREFIX}.")


def parse_remote_authority(authority: str) -> Optional[RemoteAuthorityParts]:
    """
    Parse a remote authority into its parts.

    Args:
        authority: Raw identifier

    Returns:
        RemoteAuthorityParts, or None if the identifier belongs to something else

    Raises:
        AuthorityFormatError: If the identifier has this tool's prefix but is malformed

    Examples:
        parse_remote_authority("ssh-remote+coder-vscode.dev.example.com--alice--box")
            -> label="dev.example.com", username="alice", workspace="box", agent=None
        parse_remote_authority("ssh-remote+myhost") -> None
    """
    split = _split_container(authority)
    if split is None:
        return None
    ssh_authority, container_name_hex = split

    host = _strip_scheme(ssh_authority)
    parts = host.split(SEPARATOR)
    if len(parts) <= 1 or not is_own_prefix(parts[0]):
        return None

    segments = parts[1:]
    if len(segments) not in (2, 3) or any(not p for p in segments):
        raise AuthorityFormatError(
            "Invalid Coder SSH authority. Must be: <username>--<workspace>(--|.)<agent?>"
        )

    username = segments[0]
    workspace = segments[1]
    agent: Optional[str] = None
    if len(segments) == 3:
        agent = segments[2]
    else:
        dotted = workspace.split(".")
        if len(dotted) == 2 and all(dotted):
            workspace, agent = dotted

    label = parts[0][len(AUTHORITY_PREFIX):].lstrip(".")

    return RemoteAuthorityParts(
        username=username,
        workspace=workspace,
        agent=agent,
        label=label,
        ssh_host=host,
        container_name_hex=container_name_hex,
    )


def host_prefix(label: str) -> str:
    """SSH host prefix shared by every workspace of a deployment"""
    if label:
        return f"{AUTHORITY_PREFIX}.{label}{SEPARATOR}"
    return f"{AUTHORITY_PREFIX}{SEPARATOR}"


def to_remote_authority(
    base_url: str,
    owner: str,
    workspace: str,
    agent: Optional[str] = None,
) -> str:
    """Build the authority the remote transport is asked to open"""
    authority = f"{SSH_REMOTE_SCHEME}{host_prefix(to_safe_host(base_url))}{owner}{SEPARATOR}{workspace}"
    if agent:
        authority += f".{agent}"
    return authority

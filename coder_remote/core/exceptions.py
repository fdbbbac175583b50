"""
Unified exception definitions
"""
from typing import Optional


class RemoteError(Exception):
    """Base exception class"""
    pass


class ConfigError(RemoteError):
    """Configuration error"""
    pass


class AuthorityFormatError(RemoteError):
    """Malformed remote authority"""
    pass


class AuthenticationRequired(RemoteError):
    """Missing or expired deployment credentials"""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class ApiError(RemoteError):
    """Deployment API error"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class WorkspaceNotFound(RemoteError):
    """Workspace does not exist on the deployment"""
    pass


class WorkspaceUnavailable(RemoteError):
    """Workspace is deleted, canceled or failed"""
    pass


class WorkspaceStartDeclined(RemoteError):
    """Workspace start was declined or the start did not take"""

    def __init__(self, message: str, start_failed: bool = False):
        super().__init__(message)
        self.start_failed = start_failed


class IncompatibleServerError(RemoteError):
    """Server is too old for the legacy SSH proxy command"""
    pass


class AgentSelectionError(RemoteError):
    """No agent (or more than one) matched and none was chosen"""
    pass


class AgentTimeoutError(RemoteError):
    """Agent failed to connect"""

    def __init__(self, message: str, agent_name: str = "", status: str = ""):
        super().__init__(message)
        self.agent_name = agent_name
        self.status = status


class BinaryNotFoundError(RemoteError):
    """CLI binary could not be located"""
    pass


class SSHConfigError(RemoteError):
    """SSH config error"""
    pass


class SSHConfigBadFormat(SSHConfigError):
    """Managed block markers are unbalanced or out of order"""
    pass


class SSHConfigConflictError(SSHConfigError):
    """Another rule in the SSH config shadows a managed value"""

    def __init__(self, key: str, host: str, actual: Optional[str], expected: str):
        super().__init__(
            f'Your SSH config is overriding the "{key}" property to "{actual}" '
            f'when it expected "{expected}" for the "{host}" host. '
            f"Please fix this and try again!"
        )
        self.key = key
        self.host = host
        self.actual = actual
        self.expected = expected


class ConnectionAborted(RemoteError):
    """User declined to proceed; the remote session should close"""

    def __init__(self, message: str = "Connection aborted", close_remote: bool = True, reload: bool = False):
        super().__init__(message)
        self.close_remote = close_remote
        self.reload = reload

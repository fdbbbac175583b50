"""
Core interfaces for dependency injection

The connection flow only talks to these; concrete adapters live under
``infrastructure`` and ``adapters``.
"""
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.connection.models import DeploymentCredentials
    from ..domain.workspace.models import WorkspaceSnapshot


class WorkspaceApi(ABC):
    """Deployment REST API"""

    @property
    @abstractmethod
    def base_url(self) -> str:
        """Deployment URL"""
        pass

    @abstractmethod
    def get_workspace_by_owner_and_name(self, owner: str, name: str) -> "WorkspaceSnapshot":
        """Fetch a workspace; raises ApiError (404 when missing, 401 when unauthorized)"""
        pass

    @abstractmethod
    def get_workspace(self, workspace_id: str) -> "WorkspaceSnapshot":
        """Fetch a workspace by id"""
        pass

    @abstractmethod
    def start_workspace(self, workspace_id: str, version_id: str) -> None:
        """Request a start build targeting the given template version"""
        pass

    @abstractmethod
    def get_build_info(self) -> Dict[str, Any]:
        """Server build information (contains ``version``)"""
        pass

    @abstractmethod
    def get_deployment_ssh_config(self) -> Dict[str, str]:
        """Deployment-level SSH config options"""
        pass

    @abstractmethod
    def stream_build_logs(
        self,
        build_id: str,
        on_line: Callable[[str], None],
        stop: threading.Event,
    ) -> None:
        """Block while following build logs until the build ends or ``stop`` is set"""
        pass

    def close(self) -> None:
        """Release network resources"""
        pass


class BinaryProvider(ABC):
    """Locates the CLI binary for a deployment"""

    @abstractmethod
    def fetch_binary(self, client: WorkspaceApi, label: str) -> Path:
        """Return a local path to a usable binary"""
        pass


class SecretsStore(ABC):
    """Per-deployment URL and session token storage"""

    @abstractmethod
    def get_session_auth(self, label: str) -> Optional["DeploymentCredentials"]:
        pass

    @abstractmethod
    def set_session_auth(self, label: str, url: str, token: str) -> None:
        pass

    @abstractmethod
    def on_change(self, label: str, callback: Callable[[Optional["DeploymentCredentials"]], None]) -> Callable[[], None]:
        """Subscribe to credential changes; returns an unsubscribe callable"""
        pass


class PromptProvider(ABC):
    """User prompt interface"""

    @abstractmethod
    def prompt(self, message: str, default: Optional[str] = None, password: bool = False) -> str:
        """Prompt user for input"""
        pass

    @abstractmethod
    def confirm(self, message: str, default: bool = False) -> bool:
        """Prompt user for confirmation"""
        pass

    @abstractmethod
    def show_message(
        self,
        message: str,
        detail: str = "",
        actions: Sequence[str] = (),
        error: bool = False,
    ) -> Optional[str]:
        """Modal message; returns the chosen action or None when dismissed"""
        pass

    @abstractmethod
    def choose(self, message: str, options: Sequence[str]) -> Optional[str]:
        """Pick one option or None"""
        pass


class ProgressReporter(ABC):
    """Progress surface"""

    @abstractmethod
    def report(self, message: str) -> None:
        """Replace the current progress message"""
        pass

    @abstractmethod
    def log(self, line: str) -> None:
        """Append an output line (build logs)"""
        pass

"""
File-based credential storage
"""
import os
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ...core.interfaces import SecretsStore
from ...core.logging import get_logger, register_secret
from ...core.paths import PathResolver
from ...domain.connection.models import DeploymentCredentials

logger = get_logger(__name__)

ChangeCallback = Callable[[Optional[DeploymentCredentials]], None]


class FileSecretsStore(SecretsStore):
    """
    Stores credentials the way the CLI reads them.

    Each label has its own directory under the data directory:
    - {data_dir}/{label}/url - Deployment URL
    - {data_dir}/{label}/session - Session token

    The same files are passed to the legacy ``vscodessh`` proxy command.
    """

    def __init__(self, paths: PathResolver):
        """
        Initialize file secrets store.

        Args:
            paths: Deployment file layout
        """
        self.paths = paths
        self._listeners: Dict[str, List[ChangeCallback]] = {}
        self._lock = threading.Lock()

    def get_session_auth(self, label: str) -> Optional[DeploymentCredentials]:
        """Read url and token; None when no URL is stored"""
        url = self._read(self.paths.url_path(label))
        if not url:
            return None
        token = self._read(self.paths.session_token_path(label)) or ""
        register_secret(token)
        return DeploymentCredentials(url=url, token=token, label=label)

    def set_session_auth(self, label: str, url: str, token: str) -> None:
        """Write url and token (owner-only) and notify listeners"""
        register_secret(token)
        self._write(self.paths.url_path(label), url)
        self._write(self.paths.session_token_path(label), token)
        logger.debug(f"Stored credentials for {label or 'default deployment'}")
        self._notify(label, DeploymentCredentials(url=url, token=token, label=label))

    def clear_session_auth(self, label: str) -> None:
        """Remove the stored token and notify listeners"""
        try:
            self.paths.session_token_path(label).unlink()
        except FileNotFoundError:
            pass
        self._notify(label, self.get_session_auth(label))

    def on_change(self, label: str, callback: ChangeCallback) -> Callable[[], None]:
        with self._lock:
            self._listeners.setdefault(label, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(label, [])
                if callback in listeners:
                    listeners.remove(callback)

        return unsubscribe

    def _notify(self, label: str, credentials: Optional[DeploymentCredentials]) -> None:
        with self._lock:
            listeners = list(self._listeners.get(label, []))
        for callback in listeners:
            callback(credentials)

    @staticmethod
    def _read(path: Path) -> Optional[str]:
        try:
            return path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None

    @staticmethod
    def _write(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)

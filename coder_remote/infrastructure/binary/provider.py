"""
CLI binary lookup
"""
import os
import shutil
from pathlib import Path
from typing import List, Optional

from ...core.exceptions import BinaryNotFoundError
from ...core.interfaces import BinaryProvider, WorkspaceApi
from ...core.logging import get_logger
from ...core.paths import PathResolver

logger = get_logger(__name__)

BINARY_NAME = "coder"


class LocalBinaryProvider(BinaryProvider):
    """
    Finds an already installed CLI binary.

    Search order: the per-deployment cache directory, then PATH.
    """

    def __init__(self, paths: PathResolver, binary_name: str = BINARY_NAME):
        self.paths = paths
        self.binary_name = binary_name

    def candidates(self, label: str) -> List[Path]:
        cache_dir = self.paths.binary_cache_dir(label)
        names = [self.binary_name]
        if os.name == "nt":
            names.append(f"{self.binary_name}.exe")
        return [cache_dir / name for name in names]

    def fetch_binary(self, client: WorkspaceApi, label: str) -> Path:
        """
        Return a usable binary for the deployment.

        Raises:
            BinaryNotFoundError: If no executable binary is found
        """
        for candidate in self.candidates(label):
            if candidate.is_file() and os.access(candidate, os.X_OK):
                logger.debug(f"Using cached binary {candidate}")
                return candidate

        found: Optional[str] = shutil.which(self.binary_name)
        if found:
            logger.debug(f"Using binary from PATH {found}")
            return Path(found)

        raise BinaryNotFoundError(
            f"Unable to find the {self.binary_name} CLI for {client.base_url}. "
            f"Install it from {client.base_url.rstrip('/')}/bin or place it in "
            f"{self.paths.binary_cache_dir(label)}"
        )

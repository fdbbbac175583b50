"""
Filesystem layout for per-deployment state
"""
from pathlib import Path


class PathResolver:
    """
    Resolves where deployment state lives under the data directory.

    An empty label selects the deployment-unaware layout used by older
    versions (files directly in the data directory).
    """

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)

    def global_config_dir(self, label: str) -> Path:
        return self.base_path / label if label else self.base_path

    def binary_cache_dir(self, label: str) -> Path:
        return self.global_config_dir(label) / "bin"

    def session_token_path(self, label: str) -> Path:
        return self.global_config_dir(label) / "session"

    def legacy_session_token_path(self, label: str) -> Path:
        return self.global_config_dir(label) / "session_token"

    def url_path(self, label: str) -> Path:
        return self.global_config_dir(label) / "url"

    def network_info_dir(self) -> Path:
        """The CLI writes one <pid>.json file here per SSH process"""
        return self.base_path / "net"

    def log_dir(self) -> Path:
        return self.base_path / "log"

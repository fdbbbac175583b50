"""
Runtime settings
"""
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .constants import (
    DEFAULT_DATA_DIR,
    DEFAULT_SETTINGS_FILE,
    DEFAULT_WATCH_INTERVAL,
    SSH_CONFIG_PATH,
)
from .exceptions import ConfigError
from .utils import expand_path


@dataclass
class RemoteSettings:
    """
    Settings consumed by the connection flow.

    Attributes:
        data_dir: Root for per-deployment config (url, session, binaries)
        ssh_config_file: SSH config file to manage
        settings_file: Editor settings JSON (remote platform, connect timeout)
        ssh_config: User SSH option lines ("Key value" or "Key=value")
        proxy_log_directory: Directory for proxy diagnostics, empty to disable
        global_flags: Extra CLI flags placed before the subcommand
        header_command: Command whose output supplies extra request headers
        binary_path: Explicit CLI binary path
        insecure: Skip TLS certificate verification
        tls_cert_file: Client certificate for mutual TLS
        tls_key_file: Client key for mutual TLS; with a certificate, no token is needed
        watch_interval: Seconds between workspace polls
        development: Prefer a binary at <tmpdir>/coder when present
    """
    data_dir: str = DEFAULT_DATA_DIR
    ssh_config_file: str = SSH_CONFIG_PATH
    settings_file: str = DEFAULT_SETTINGS_FILE
    ssh_config: List[str] = field(default_factory=list)
    proxy_log_directory: str = ""
    global_flags: List[str] = field(default_factory=list)
    header_command: str = ""
    binary_path: str = ""
    insecure: bool = False
    tls_cert_file: str = ""
    tls_key_file: str = ""
    watch_interval: float = DEFAULT_WATCH_INTERVAL
    development: bool = False

    @property
    def data_path(self) -> Path:
        return Path(expand_path(self.data_dir))

    @property
    def settings_path(self) -> Path:
        return Path(expand_path(self.settings_file))

    @property
    def needs_token(self) -> bool:
        return not (self.tls_cert_file and self.tls_key_file)

    def client_cert(self) -> Optional[Tuple[str, str]]:
        """(cert, key) for mutual TLS or None"""
        if self.tls_cert_file and self.tls_key_file:
            return (expand_path(self.tls_cert_file), expand_path(self.tls_key_file))
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RemoteSettings":
        """
        Build settings from a merged configuration dictionary.

        Unknown keys are ignored so one TOML file can hold other sections.

        Raises:
            ConfigError: If a list option is not a list
        """
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and v is not None}

        for name in ("ssh_config", "global_flags"):
            value = values.get(name)
            if isinstance(value, str):
                values[name] = [value]
            elif value is not None and not isinstance(value, list):
                raise ConfigError(f"'{name}' must be a list of strings")

        if "watch_interval" in values:
            try:
                values["watch_interval"] = float(values["watch_interval"])
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid watch_interval: {values['watch_interval']}") from e

        return cls(**values)

    def proxy_log_dir(self) -> Optional[Path]:
        """Expanded proxy log directory or None when unset"""
        value = str(self.proxy_log_directory or "").strip()
        if not value:
            return None
        return Path(expand_path(value))

"""
Configuration loader with priority: env > CLI > TOML > defaults
"""
import os
import tomllib
from pathlib import Path
from typing import Dict, Any, Optional

from ...core.exceptions import ConfigError
from ...core.settings import RemoteSettings
from ...core.utils import expand_path

DEFAULT_CONFIG_FILE = "~/.config/coder-remote/config.toml"

# Options that hold a list; their env values are comma separated
_LIST_KEYS = ("ssh_config", "global_flags")


class ConfigLoader:
    """Configuration loader with priority support"""

    def __init__(self, env_prefix: str = "CODER_REMOTE_"):
        self._env_prefix = env_prefix

    def load_toml(self, path: Path) -> Dict[str, Any]:
        """
        Load TOML configuration file.

        Options may sit at the top level or in a ``[remote]`` table; the
        table wins when both set the same key.
        """
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            data = tomllib.loads(path.read_text(encoding='utf-8'))
        except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
            raise ConfigError(f"Failed to parse TOML configuration {path}: {e}") from e

        section = data.pop("remote", None)
        if isinstance(section, dict):
            data = self._deep_merge(data, section)
        return data

    def load_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables"""
        config = {}

        # Map environment variables to config keys
        env_mappings = {
            f"{self._env_prefix}DATA_DIR": "data_dir",
            f"{self._env_prefix}SSH_CONFIG_FILE": "ssh_config_file",
            f"{self._env_prefix}SETTINGS_FILE": "settings_file",
            f"{self._env_prefix}SSH_CONFIG": "ssh_config",
            f"{self._env_prefix}PROXY_LOG_DIRECTORY": "proxy_log_directory",
            f"{self._env_prefix}GLOBAL_FLAGS": "global_flags",
            f"{self._env_prefix}HEADER_COMMAND": "header_command",
            f"{self._env_prefix}BINARY_PATH": "binary_path",
            f"{self._env_prefix}INSECURE": "insecure",
            f"{self._env_prefix}TLS_CERT_FILE": "tls_cert_file",
            f"{self._env_prefix}TLS_KEY_FILE": "tls_key_file",
            f"{self._env_prefix}WATCH_INTERVAL": "watch_interval",
            f"{self._env_prefix}DEVELOPMENT": "development",
        }

        for env_key, config_key in env_mappings.items():
            value = os.getenv(env_key)
            if not value:
                continue
            if config_key in _LIST_KEYS:
                config[config_key] = [item.strip() for item in value.split(",") if item.strip()]
            elif config_key in ("insecure", "development", "watch_interval"):
                config[config_key] = self._convert_value(value)
            else:
                config[config_key] = value

        return config

    def _convert_value(self, value: str) -> Any:
        """Convert string value to appropriate type"""
        # Try boolean
        if value.lower() in ("true", "yes", "1"):
            return True
        if value.lower() in ("false", "no", "0"):
            return False

        # Try number
        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            pass

        # Return as string
        return value

    def merge_configs(self, *configs: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge multiple configurations with priority.
        Later configs override earlier ones.
        """
        result = {}

        for config in configs:
            result = self._deep_merge(result, config)

        return result

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def load(
        self,
        toml_path: Optional[Path] = None,
        cli_overrides: Optional[Dict[str, Any]] = None,
        use_env: bool = True,
    ) -> Dict[str, Any]:
        """
        Load configuration with priority: env > CLI > TOML > defaults

        Args:
            toml_path: Path to TOML configuration file
            cli_overrides: CLI parameter overrides (None values are ignored)
            use_env: Whether to load from environment variables

        Returns:
            Merged configuration dictionary
        """
        configs = []

        # 1. Load TOML if provided
        if toml_path:
            configs.append(self.load_toml(toml_path))

        # 2. Apply CLI overrides
        if cli_overrides:
            configs.append({k: v for k, v in cli_overrides.items() if v is not None})

        # 3. Load environment variables (highest priority)
        if use_env:
            env_config = self.load_env()
            if env_config:
                configs.append(env_config)

        # Merge all configs
        return self.merge_configs(*configs)

    def load_settings(
        self,
        toml_path: Optional[Path] = None,
        cli_overrides: Optional[Dict[str, Any]] = None,
        use_env: bool = True,
    ) -> RemoteSettings:
        """
        Load and validate settings.

        Without an explicit path the default config file is used when it exists.
        """
        if toml_path is None:
            default = default_config_path()
            if default.exists():
                toml_path = default
        return RemoteSettings.from_dict(self.load(toml_path, cli_overrides, use_env))


def default_config_path() -> Path:
    return Path(expand_path(DEFAULT_CONFIG_FILE))

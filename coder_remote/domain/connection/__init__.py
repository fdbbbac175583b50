"""
Connection domain module
"""
from .credentials import (
    migrate_session_token,
    negotiate_features,
    probe_binary_version,
    resolve_binary,
    resolve_credentials,
)
from .editor_settings import apply_remote_settings, update_editor_settings
from .models import DeploymentCredentials, RemoteDetails
from .monitors import FileChangeWatcher, NetworkStatus, NetworkStatusMonitor
from .proxy_command import build_global_flags, build_proxy_command
from .service import RemoteSetup

__all__ = [
    "DeploymentCredentials",
    "FileChangeWatcher",
    "NetworkStatus",
    "NetworkStatusMonitor",
    "RemoteDetails",
    "RemoteSetup",
    "apply_remote_settings",
    "build_global_flags",
    "build_proxy_command",
    "migrate_session_token",
    "negotiate_features",
    "probe_binary_version",
    "resolve_binary",
    "resolve_credentials",
    "update_editor_settings",
]

"""
SSH domain module
"""
from .config import (
    SSHConfig,
    end_marker,
    merge_overrides,
    merge_ssh_config_values,
    parse_ssh_config_lines,
    start_marker,
)
from .models import DELETE, SSHConfigConflict, SSHOptions, SSHValues
from .properties import compute_ssh_properties, host_pattern_regex, parse_host_sections
from .support import ssh_supports_setenv, ssh_version_supports_setenv

__all__ = [
    "DELETE",
    "SSHConfig",
    "SSHConfigConflict",
    "SSHOptions",
    "SSHValues",
    "compute_ssh_properties",
    "end_marker",
    "host_pattern_regex",
    "merge_overrides",
    "merge_ssh_config_values",
    "parse_host_sections",
    "parse_ssh_config_lines",
    "ssh_supports_setenv",
    "ssh_version_supports_setenv",
    "start_marker",
]

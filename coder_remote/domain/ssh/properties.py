"""
Effective SSH properties for a host

Replays how the ssh client resolves options: ``Host`` sections are
evaluated in file order and the first section that matches the host and
sets a key supplies that key's value. Later matching sections can only add
keys that are still unset.
"""
import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern

from .models import SSHOptions

# Key, then a run of whitespace or "=", then the value
LINE_PATTERN = re.compile(r"^(?P<key>[^\s=]+)(?:\s*=\s*|\s+)(?P<value>.*)$")


@dataclass
class HostSection:
    """One Host line and the options below it"""
    pattern: str
    options: SSHOptions = field(default_factory=SSHOptions)

    def matches(self, host: str) -> bool:
        return host_pattern_regex(self.pattern).match(host) is not None


def host_pattern_regex(pattern: str) -> Pattern[str]:
    """
    Compile an ssh host glob into an anchored regex.

    ``*`` matches any run of characters and ``?`` exactly one. The whole
    pattern string is one glob; space-separated alternatives are not split.
    """
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("^" + "".join(parts) + "$", re.DOTALL)


def parse_config_line(line: str) -> Optional[tuple]:
    """Split "Key value", "Key=value" or "Key = value"; None for blanks and comments"""
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    match = LINE_PATTERN.match(line)
    if not match:
        return None
    return match.group("key"), match.group("value")


def parse_host_sections(config_text: str) -> List[HostSection]:
    """Split config text into Host sections; options before the first Host are dropped"""
    sections: List[HostSection] = []
    current: Optional[HostSection] = None

    for line in config_text.splitlines():
        parsed = parse_config_line(line)
        if parsed is None:
            continue
        key, value = parsed
        if key.lower() == "host":
            current = HostSection(pattern=value)
            sections.append(current)
            continue
        if current is None:
            continue
        current.options[key] = value

    return sections


def compute_ssh_properties(host: str, config_text: str) -> SSHOptions:
    """
    Compute the options the ssh client applies to a host.

    Args:
        host: Concrete host name, e.g. "coder-vscode.dev.example.com--alice--box"
        config_text: Full SSH config file text

    Returns:
        Case-insensitive options, in the order they were first set
    """
    merged = SSHOptions()
    for section in parse_host_sections(config_text):
        if not section.matches(host):
            continue
        for key, value in section.options.items():
            merged.setdefault(key, value)
    return merged

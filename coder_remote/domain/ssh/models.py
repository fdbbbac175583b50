"""
SSH domain models
"""
from collections.abc import MutableMapping
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

# Override value that removes a key instead of replacing it
DELETE = ""


class SSHOptions(MutableMapping):
    """
    Ordered, case-insensitive mapping of SSH option names to values.

    SSH keywords are case-insensitive, so ``LogLevel`` and ``loglevel`` name
    the same option. The spelling used on first insertion is kept for output;
    assigning under another spelling replaces the value in place and adopts
    the new spelling.
    """

    def __init__(self, data: Union[Mapping[str, str], Iterable[Tuple[str, str]], None] = None):
        self._store: Dict[str, Tuple[str, str]] = {}
        if data is not None:
            self.update(data)

    def __setitem__(self, key: str, value: str) -> None:
        self._store[key.lower()] = (key, value)

    def __getitem__(self, key: str) -> str:
        return self._store[key.lower()][1]

    def __delitem__(self, key: str) -> None:
        del self._store[key.lower()]

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._store

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self.items()) == dict(other.items())
        return NotImplemented

    def __repr__(self) -> str:
        return f"SSHOptions({dict(self.items())!r})"

    def setdefault(self, key: str, default: str = "") -> str:
        """Set key only if absent (first value wins)"""
        if key not in self:
            self[key] = default
        return self[key]

    def copy(self) -> "SSHOptions":
        return SSHOptions(self.items())


@dataclass(frozen=True)
class SSHValues:
    """Values this tool writes for its Host entry, in output order"""
    Host: str
    ProxyCommand: str
    ConnectTimeout: str = "0"
    StrictHostKeyChecking: str = "no"
    UserKnownHostsFile: str = "/dev/null"
    LogLevel: str = "ERROR"
    SetEnv: Optional[str] = None

    def options(self) -> SSHOptions:
        """Every value except Host, in the fixed order; unset SetEnv is skipped"""
        options = SSHOptions()
        options["ProxyCommand"] = self.ProxyCommand
        options["ConnectTimeout"] = self.ConnectTimeout
        options["StrictHostKeyChecking"] = self.StrictHostKeyChecking
        options["UserKnownHostsFile"] = self.UserKnownHostsFile
        options["LogLevel"] = self.LogLevel
        if self.SetEnv is not None:
            options["SetEnv"] = self.SetEnv
        return options


@dataclass(frozen=True)
class SSHConfigConflict:
    """A managed value shadowed by an earlier rule"""
    key: str
    host: str
    actual: Optional[str]
    expected: str

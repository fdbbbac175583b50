"""
Managed SSH config block

Each deployment label owns exactly one block in the user's SSH config:

    # --- START CODER VSCODE dev.example.com ---
    Host coder-vscode.dev.example.com--*
      ProxyCommand ...
    # --- END CODER VSCODE dev.example.com ---

An empty label uses the unlabeled markers written by older versions.
Everything outside the block belonging to the label being updated is left
untouched, including blocks for other labels.
"""
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Mapping, Optional

from ...core.constants import (
    BLOCK_END_TEMPLATE,
    BLOCK_START_TEMPLATE,
    SSH_BLOCK_INDENT,
    SSH_CONFIG_DIR_MODE,
    SSH_CONFIG_MODE,
    SSH_VERIFIED_KEYS,
)
from ...core.exceptions import SSHConfigBadFormat, SSHConfigConflictError, SSHConfigError
from ...core.logging import get_logger
from ...core.utils import count_substring
from .models import DELETE, SSHConfigConflict, SSHOptions, SSHValues
from .properties import compute_ssh_properties, parse_config_line

logger = get_logger(__name__)

SETENV = "setenv"


# ============================================================
# Helper Functions
# ============================================================

def start_marker(label: str) -> str:
    return BLOCK_START_TEMPLATE.format(label=f" {label}" if label else "")


def end_marker(label: str) -> str:
    return BLOCK_END_TEMPLATE.format(label=f" {label}" if label else "")


def parse_ssh_config_lines(lines: Iterable[str]) -> SSHOptions:
    """
    Parse user-supplied option lines ("Key value" or "Key=value").

    SetEnv may appear several times; its values are joined with a space.
    Malformed lines are skipped.
    """
    options = SSHOptions()
    for line in lines:
        parsed = parse_config_line(line)
        if parsed is None:
            logger.debug(f"Ignoring malformed SSH option line: {line!r}")
            continue
        key, value = parsed
        if key.lower() == SETENV:
            if value == "":
                continue
            existing = options.get(key)
            options[key] = f"{existing} {value}" if existing else value
        else:
            options[key] = value
    return options


def merge_overrides(deployment: Mapping[str, str], user: Mapping[str, str]) -> SSHOptions:
    """
    Layer user overrides over deployment overrides.

    The user wins for every key, including the empty deletion sentinel.
    """
    merged = SSHOptions(deployment)
    for key, value in user.items():
        merged[key] = value
    return merged


def merge_ssh_config_values(config: Mapping[str, str], overrides: Optional[Mapping[str, str]] = None) -> SSHOptions:
    """
    Merge overrides into base values.

    Args:
        config: Base values in their output order
        overrides: Case-insensitive overrides; "" removes the key

    Returns:
        Base keys in their original order (overridden in place, deleted keys
        dropped), followed by the remaining overrides in case-insensitive
        sorted order. SetEnv overrides are appended to the base SetEnv.
    """
    remaining = SSHOptions(overrides or {})
    merged = SSHOptions()

    for key, value in config.items():
        if key not in remaining:
            if value != DELETE:
                merged[key] = value
            continue

        override_key = next(k for k in remaining if k.lower() == key.lower())
        override = remaining.pop(key)

        if key.lower() == SETENV:
            merged["SetEnv"] = f"{value} {override}" if override != DELETE else value
            continue

        if override != DELETE:
            merged[override_key] = override

    for key in sorted(remaining, key=str.lower):
        value = remaining[key]
        if value == DELETE:
            continue
        if key.lower() == SETENV and "SetEnv" in merged:
            merged["SetEnv"] = f"{merged['SetEnv']} {value}"
        else:
            merged[key] = value

    return merged


@dataclass
class Block:
    """Exact text span of a managed block"""
    start: int
    end: int


# ============================================================
# SSH Config Store
# ============================================================

class SSHConfig:
    """
    SSH config file with one managed block per deployment label.

    The file is treated as single-writer for the duration of ``update``;
    edits made by other programs between ``load`` and ``update`` are lost.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._raw: Optional[str] = None

    @property
    def raw(self) -> str:
        if self._raw is None:
            raise SSHConfigError("SSHConfig is not loaded. Call load() first")
        return self._raw

    def load(self) -> str:
        """Read the file; a missing file is empty content"""
        try:
            self._raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            self._raw = ""
        return self._raw

    def update(
        self,
        label: str,
        values: SSHValues,
        overrides: Optional[Mapping[str, str]] = None,
    ) -> SSHOptions:
        """
        Replace the block for ``label`` and persist the file.

        Args:
            label: Deployment label; "" selects the unlabeled block
            values: Values to write
            overrides: Deployment/user overrides

        Returns:
            The options that were written (without Host)

        Raises:
            SSHConfigBadFormat: If the markers for this label are malformed
        """
        options = merge_ssh_config_values(values.options(), overrides)
        rendered = self.build_block(label, values.Host, options)

        raw = self.raw
        block = self.find_block(label)
        if block is not None:
            raw = self._erase(raw, block)

        remaining = raw.rstrip()
        self._raw = f"{remaining}\n\n{rendered}" if remaining else rendered

        self.save()
        return options

    def find_block(self, label: str) -> Optional[Block]:
        """
        Locate the block for exactly this label.

        Raises:
            SSHConfigBadFormat: On unbalanced, duplicated or reversed markers
        """
        raw = self.raw
        start = start_marker(label)
        end = end_marker(label)
        described = f"{label} " if label else ""

        start_count = self._count_marker(start, raw)
        end_count = self._count_marker(end, raw)
        if start_count != end_count:
            raise SSHConfigBadFormat(
                f"Malformed config: {self.path} has an unterminated START CODER VSCODE {described}block. "
                f"Each START block must have an END block."
            )
        if start_count > 1:
            raise SSHConfigBadFormat(
                f"Malformed config: {self.path} has {start_count} START CODER VSCODE {described}sections. "
                f"Please remove all but one."
            )
        if start_count == 0:
            return None

        start_index = self._find_marker(start, raw)
        end_index = self._find_marker(end, raw)
        if end_index < start_index:
            raise SSHConfigBadFormat("Malformed config, end block is before start block")

        return Block(
            start=self._line_start(raw, start_index),
            end=self._line_end(raw, end_index + len(end)),
        )

    def build_block(self, label: str, host: str, options: Mapping[str, str]) -> str:
        """Render markers, Host line and one indented line per non-empty option"""
        lines = [start_marker(label), f"Host {host}"]
        for key, value in options.items():
            if value != DELETE:
                lines.append(f"{SSH_BLOCK_INDENT}{key} {value}")
        lines.append(end_marker(label))
        return "\n".join(lines)

    def verify(self, host: str, expected: Mapping[str, str]) -> List[SSHConfigConflict]:
        """
        Check that nothing earlier in the file shadows the managed values.

        Args:
            host: Concrete host name the transport will connect to
            expected: Options that were written

        Returns:
            Conflicts for each verified key whose effective value differs
        """
        effective = compute_ssh_properties(host, self.raw)
        conflicts = []
        for key in SSH_VERIFIED_KEYS:
            if key not in expected:
                continue
            wanted = expected[key]
            actual = effective.get(key)
            if actual != wanted:
                conflicts.append(SSHConfigConflict(key=key, host=host, actual=actual, expected=wanted))
        return conflicts

    def check_conflicts(self, host: str, expected: Mapping[str, str]) -> None:
        """Raise SSHConfigConflictError for the first conflict found"""
        conflicts = self.verify(host, expected)
        if conflicts:
            first = conflicts[0]
            raise SSHConfigConflictError(first.key, first.host, first.actual, first.expected)

    def save(self) -> None:
        """
        Write atomically, keeping the current file mode (0600 for new files)
        and creating the directory owner-only.
        """
        try:
            mode = self.path.stat().st_mode & 0o777
        except FileNotFoundError:
            mode = SSH_CONFIG_MODE

        directory = self.path.parent
        if not directory.exists():
            directory.mkdir(mode=SSH_CONFIG_DIR_MODE, parents=True, exist_ok=True)
            os.chmod(directory, SSH_CONFIG_DIR_MODE)

        fd, temp_name = tempfile.mkstemp(
            dir=str(directory),
            prefix=f".{self.path.name}.coder-remote-tmp.",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(self.raw)
            os.chmod(temp_name, mode)
        except OSError as e:
            self._discard(temp_name)
            raise SSHConfigError(
                f"Failed to write temporary SSH config file at {temp_name}: {e}. "
                f"Please check your disk space, permissions, and that the directory exists."
            ) from e

        try:
            os.replace(temp_name, self.path)
        except OSError as e:
            self._discard(temp_name)
            raise SSHConfigError(
                f"Failed to rename temporary SSH config file at {temp_name} to {self.path}: {e}. "
                f"Please check your disk space, permissions, and that the directory exists."
            ) from e

        logger.debug(f"[ssh] Updated {self.path}")

    # Markers match anywhere in the text; the unlabeled marker is never a
    # substring of a labeled one
    @staticmethod
    def _count_marker(marker: str, raw: str) -> int:
        return count_substring(marker, raw)

    @staticmethod
    def _find_marker(marker: str, raw: str) -> int:
        return raw.find(marker)

    @staticmethod
    def _line_start(raw: str, index: int) -> int:
        """Start of the line when only whitespace precedes ``index`` on it"""
        line_start = raw.rfind("\n", 0, index) + 1
        if raw[line_start:index].strip():
            return index
        return line_start

    @staticmethod
    def _line_end(raw: str, index: int) -> int:
        """End of the line holding ``index``, so stray text after an end marker goes too"""
        newline = raw.find("\n", index)
        return len(raw) if newline == -1 else newline

    @staticmethod
    def _erase(raw: str, block: Block) -> str:
        before = raw[:block.start].rstrip("\n")
        after = raw[block.end:].lstrip("\n")
        if before and after:
            return f"{before}\n\n{after}"
        return before or after

    @staticmethod
    def _discard(path: str) -> None:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass

"""
Post-connection monitors

Background pollers registered once the workspace is reachable. Each one is
a daemon thread stopped by ``dispose``.
"""
import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ...core.constants import NETWORK_INFO_INTERVAL
from ...core.logging import get_logger

logger = get_logger(__name__)


# ============================================================
# Network Status
# ============================================================

def format_bits(bytes_per_sec: float) -> str:
    """
    Format a byte rate as bits.

    Args:
        bytes_per_sec: Rate in bytes per second

    Returns:
        Formatted string like "800 b", "1.5 Mbit"
    """
    bits = bytes_per_sec * 8
    if bits < 1000:
        return f"{bits:.0f} b"
    elif bits < 1000 ** 2:
        return f"{bits / 1000:.1f} kbit"
    elif bits < 1000 ** 3:
        return f"{bits / 1000 ** 2:.1f} Mbit"
    else:
        return f"{bits / 1000 ** 3:.1f} Gbit"


@dataclass(frozen=True)
class NetworkStatus:
    """Contents of the ``<pid>.json`` file the CLI writes for each SSH process"""
    p2p: bool = False
    latency: float = 0.0
    preferred_derp: str = ""
    derp_latency: Dict[str, float] = field(default_factory=dict)
    upload_bytes_sec: float = 0.0
    download_bytes_sec: float = 0.0
    using_coder_connect: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetworkStatus":
        return cls(
            p2p=bool(data.get("p2p", False)),
            latency=float(data.get("latency", 0.0)),
            preferred_derp=data.get("preferred_derp", ""),
            derp_latency={k: float(v) for k, v in (data.get("derp_latency") or {}).items()},
            upload_bytes_sec=float(data.get("upload_bytes_sec", 0.0)),
            download_bytes_sec=float(data.get("download_bytes_sec", 0.0)),
            using_coder_connect=bool(data.get("using_coder_connect", False)),
        )

    @property
    def text(self) -> str:
        """One-line status"""
        if self.using_coder_connect:
            return "Coder Connect"
        route = "Direct" if self.p2p else self.preferred_derp
        return f"{route} ({self.latency:.2f}ms)"

    @property
    def details(self) -> str:
        """Multi-line breakdown of the route and throughput"""
        if self.using_coder_connect:
            return "You're connected using Coder Connect."

        if self.p2p:
            lines = ["You're connected peer-to-peer."]
        else:
            lines = [
                "You're connected through a relay.",
                "We'll switch over to peer-to-peer when available.",
            ]
        lines.append("")
        lines.append(
            f"Download {format_bits(self.download_bytes_sec)}/s | "
            f"Upload {format_bits(self.upload_bytes_sec)}/s"
        )

        if not self.p2p:
            derp = self.derp_latency.get(self.preferred_derp, 0.0)
            lines.append(
                f"You <-> {derp:.2f}ms <-> {self.preferred_derp} <-> "
                f"{self.latency - derp:.2f}ms <-> Workspace"
            )
            others = [r for r in self.derp_latency if r != self.preferred_derp]
            if others:
                lines.append("")
                lines.append("Other regions:")
                for region in others:
                    lines.append(f"{region}: {round(self.derp_latency[region] * 100) / 100}ms")

        return "\n".join(lines)


class NetworkStatusMonitor:
    """
    Polls the network info file of an SSH process.

    When no pid is given, the most recently written file in the directory
    is used.
    """

    def __init__(
        self,
        network_dir: Path,
        on_update: Callable[[NetworkStatus], None],
        pid: Optional[int] = None,
        interval: float = NETWORK_INFO_INTERVAL,
    ):
        self.network_dir = Path(network_dir)
        self.on_update = on_update
        self.pid = pid
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, daemon=True, name="NetworkStatusMonitor")
        self._thread.start()

    def dispose(self) -> None:
        self._stop.set()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)

    def info_file(self) -> Optional[Path]:
        if self.pid is not None:
            return self.network_dir / f"{self.pid}.json"
        try:
            candidates = [p for p in self.network_dir.glob("*.json") if p.is_file()]
        except OSError:
            return None
        if not candidates:
            return None
        return max(candidates, key=lambda p: p.stat().st_mtime)

    def poll(self) -> Optional[NetworkStatus]:
        """Read the current status once"""
        path = self.info_file()
        if path is None:
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return NetworkStatus.from_dict(data)
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.debug(f"Failed to read network info {path}: {e}")
            return None

    def _run(self) -> None:
        while not self._stop.is_set():
            status = self.poll()
            if status is not None and not self._stop.is_set():
                self.on_update(status)
            self._stop.wait(self.interval)


# ============================================================
# File Change Watcher
# ============================================================

class FileChangeWatcher:
    """Calls back when a file's modification time changes"""

    def __init__(self, path: Path, on_change: Callable[[Path], None], interval: float = 2.0):
        self.path = Path(path)
        self.on_change = on_change
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_mtime = self._mtime()

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name=f"FileChangeWatcher-{self.path.name}",
        )
        self._thread.start()

    def dispose(self) -> None:
        self._stop.set()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)

    def check(self) -> bool:
        """Compare against the last seen mtime; True (and callback) on change"""
        mtime = self._mtime()
        if mtime == self._last_mtime:
            return False
        self._last_mtime = mtime
        self.on_change(self.path)
        return True

    def _mtime(self) -> Optional[float]:
        try:
            return self.path.stat().st_mtime
        except OSError:
            return None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.check()

"""
Workspace snapshot source
"""
import threading
from typing import Callable, List, Optional

from ...core.exceptions import ApiError
from ...core.interfaces import WorkspaceApi
from ...core.logging import get_logger
from .models import WorkspaceSnapshot

logger = get_logger(__name__)

SnapshotCallback = Callable[[WorkspaceSnapshot], None]
ErrorCallback = Callable[[Exception], None]


class WorkspaceWatcher:
    """
    Polls a workspace on a fixed interval and delivers each snapshot to
    subscribers. Nothing is delivered once ``dispose`` returns.
    """

    def __init__(self, api: WorkspaceApi, workspace_id: str, interval: float = 1.0):
        self.api = api
        self.workspace_id = workspace_id
        self.interval = interval
        self._subscribers: List[SnapshotCallback] = []
        self._error_subscribers: List[ErrorCallback] = []
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def subscribe(self, callback: SnapshotCallback, on_error: Optional[ErrorCallback] = None) -> Callable[[], None]:
        """
        Register for snapshots (and optionally poll errors).

        Returns:
            Callable that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)
            if on_error is not None:
                self._error_subscribers.append(on_error)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)
                if on_error is not None and on_error in self._error_subscribers:
                    self._error_subscribers.remove(on_error)

        return unsubscribe

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("Watcher is already running")
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name=f"WorkspaceWatcher-{self.workspace_id}",
        )
        self._thread.start()

    def dispose(self) -> None:
        with self._lock:
            self._stop.set()
            self._subscribers.clear()
            self._error_subscribers.clear()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.interval + 2.0)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                snapshot = self.api.get_workspace(self.workspace_id)
            except ApiError as e:
                logger.warning(f"Failed to poll workspace {self.workspace_id}: {e}")
                self._deliver_error(e)
                continue
            except Exception as e:
                # Subscribers decide whether the attempt can go on
                logger.exception(f"Unexpected error polling workspace {self.workspace_id}")
                self._deliver_error(e)
                continue
            self._deliver(snapshot)

    def _deliver(self, snapshot: WorkspaceSnapshot) -> None:
        with self._lock:
            if self._stop.is_set():
                return
            subscribers = list(self._subscribers)
        for callback in subscribers:
            if self._stop.is_set():
                return
            callback(snapshot)

    def _deliver_error(self, error: Exception) -> None:
        with self._lock:
            if self._stop.is_set():
                return
            subscribers = list(self._error_subscribers)
        for callback in subscribers:
            callback(error)

"""
Workspace readiness state machine

Drives a workspace from "not running" to "agent connected" one snapshot at
a time. Snapshots are passed in explicitly; the machine keeps only what it
needs between them (the selected agent and whether it requested a start).
"""
import threading
from enum import Enum
from typing import Callable, Optional

from ...core.exceptions import (
    AgentSelectionError,
    AgentTimeoutError,
    ConnectionAborted,
    WorkspaceStartDeclined,
    WorkspaceUnavailable,
)
from ...core.interfaces import ProgressReporter, PromptProvider, WorkspaceApi
from ...core.logging import get_logger
from ..authority.models import RemoteAuthorityParts
from .agents import select_agent
from .models import (
    IN_PROGRESS_STATUSES,
    UNAVAILABLE_STATUSES,
    AgentSnapshot,
    AgentStatus,
    BuildStatus,
    WorkspaceSnapshot,
)

logger = get_logger(__name__)

START_ACTION = "Start"


class ReadinessState(str, Enum):
    """Where the machine is on the way to a connectable agent"""
    IDLE = "idle"
    STARTING = "starting"
    BUILD_WAITING = "build_waiting"
    AGENT_SELECTING = "agent_selecting"
    AGENT_WAITING = "agent_waiting"
    READY = "ready"
    AGENT_TIMEOUT = "agent_timeout"
    VERSION_INCOMPATIBLE = "version_incompatible"


# ============================================================
# Build Log Stream
# ============================================================

class BuildLogStream:
    """Follows the logs of one build on a daemon thread"""

    def __init__(self, api: WorkspaceApi, build_id: str, on_line: Callable[[str], None]):
        self.api = api
        self.build_id = build_id
        self._on_line = on_line
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name=f"BuildLogs-{self.build_id}",
        )
        self._thread.start()

    def close(self) -> None:
        self._stop.set()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)

    def _run(self) -> None:
        try:
            self.api.stream_build_logs(self.build_id, self._forward, self._stop)
        except Exception as e:
            # Build logs are informational; the state machine keeps polling
            logger.warning(f"Build log stream for {self.build_id} ended: {e}")

    def _forward(self, line: str) -> None:
        if not self._stop.is_set():
            self._on_line(line)


# ============================================================
# State Machine
# ============================================================

class WorkspaceStateMachine:
    """
    Readiness state machine for one connection attempt.

    ``process`` must not be called concurrently; feed it through a
    ``SnapshotCoalescer``.
    """

    def __init__(
        self,
        parts: RemoteAuthorityParts,
        api: WorkspaceApi,
        prompts: PromptProvider,
        progress: ProgressReporter,
        first_connect: bool = False,
    ):
        self.parts = parts
        self.api = api
        self.prompts = prompts
        self.progress = progress
        self.first_connect = first_connect

        self.state = ReadinessState.IDLE
        self._first_snapshot = True
        self._start_requested = False
        self._agent_id: Optional[str] = None
        self._agent: Optional[AgentSnapshot] = None
        self._log_stream: Optional[BuildLogStream] = None

    @property
    def agent(self) -> Optional[AgentSnapshot]:
        """Selected agent as of the last processed snapshot"""
        return self._agent

    def process(self, snapshot: WorkspaceSnapshot) -> bool:
        """
        Advance with one snapshot.

        Args:
            snapshot: Latest workspace snapshot

        Returns:
            True once the build is running and the selected agent is connected

        Raises:
            WorkspaceStartDeclined: Start declined, or the workspace stopped again
            WorkspaceUnavailable: Workspace is deleted, canceled or failed
            AgentSelectionError: No usable agent
            AgentTimeoutError: Agent timed out or disconnected
        """
        if self.state == ReadinessState.READY:
            return True

        first = self._first_snapshot
        self._first_snapshot = False
        status = snapshot.build_status
        name = snapshot.identifier

        if status == BuildStatus.STOPPED or (status == BuildStatus.FAILED and first):
            self._start(snapshot)
            return False

        if status in IN_PROGRESS_STATUSES:
            self.state = ReadinessState.BUILD_WAITING
            # Agent ids change when the workspace is rebuilt
            self._agent_id = None
            self._agent = None
            self.progress.report(f"building {name} ({status.value})...")
            logger.info(f"Waiting for {name}")
            self._open_log_stream(snapshot)
            return False

        if status in UNAVAILABLE_STATUSES or status == BuildStatus.FAILED:
            self.close_log_stream()
            raise WorkspaceUnavailable(f"{name} is {status.value}")

        # Running
        self.close_log_stream()
        return self._process_agent(snapshot)

    def dispose(self) -> None:
        self.close_log_stream()

    def close_log_stream(self) -> None:
        if self._log_stream is not None:
            self._log_stream.close()
            self._log_stream = None

    def _start(self, snapshot: WorkspaceSnapshot) -> None:
        name = snapshot.identifier
        self.close_log_stream()

        if self._start_requested:
            raise WorkspaceStartDeclined(
                f"{name} stopped again after a start was requested",
                start_failed=True,
            )

        if not self.first_connect and not self._confirm_start(name):
            raise WorkspaceStartDeclined("Workspace start cancelled")

        self.progress.report(f"starting {name}...")
        logger.info(f"Starting {name}")
        self.api.start_workspace(snapshot.id, snapshot.target_version_id())
        self._start_requested = True
        self.state = ReadinessState.STARTING

    def _confirm_start(self, name: str) -> bool:
        action = self.prompts.show_message(
            f"Unable to connect to the workspace {name} because it is not running. Start the workspace?",
            actions=(START_ACTION,),
        )
        return action == START_ACTION

    def _open_log_stream(self, snapshot: WorkspaceSnapshot) -> None:
        if not snapshot.build_id:
            return
        if self._log_stream is not None:
            if self._log_stream.build_id == snapshot.build_id:
                return
            self.close_log_stream()
        self._log_stream = BuildLogStream(self.api, snapshot.build_id, self.progress.log)
        self._log_stream.start()

    def _process_agent(self, snapshot: WorkspaceSnapshot) -> bool:
        name = snapshot.identifier

        if self._agent_id is None:
            self.state = ReadinessState.AGENT_SELECTING
            logger.info(f"Finding agent for {name}")
            selected = select_agent(snapshot.agents, self.parts.agent, self.prompts)
            self._agent_id = selected.id
            logger.info(f"Found agent {selected.name} with status {selected.status.value}")

        agent = snapshot.find_agent(self._agent_id)
        if agent is None:
            missing = self._agent.name if self._agent else self._agent_id
            raise AgentSelectionError(f"Agent {missing} not found in {name} resources")
        self._agent = agent
        self.state = ReadinessState.AGENT_WAITING

        if agent.status == AgentStatus.CONNECTING:
            self.progress.report(f"connecting to agent {agent.name}...")
            logger.debug(f"Connecting to agent {agent.name}")
            return False

        if agent.status == AgentStatus.TIMEOUT:
            self.state = ReadinessState.AGENT_TIMEOUT
            raise AgentTimeoutError(
                f"Agent {name}/{agent.name} timed out",
                agent_name=agent.name,
                status=agent.status.value,
            )

        if agent.status == AgentStatus.DISCONNECTED:
            raise AgentTimeoutError(
                f"Agent {name}/{agent.name} disconnected",
                agent_name=agent.name,
                status=agent.status.value,
            )

        self.state = ReadinessState.READY
        logger.info(f"Agent {agent.name} is connected")
        return True


# ============================================================
# Snapshot Coalescer
# ============================================================

class SnapshotCoalescer:
    """
    Serializes snapshot processing, keeping only the latest pending snapshot.

    The thread that submits while nothing is in flight processes the
    snapshot itself, then drains the pending slot. Submissions made while a
    snapshot is in flight overwrite the slot and return immediately.
    """

    def __init__(self, handler: Callable[[WorkspaceSnapshot], bool]):
        self._handler = handler
        self._lock = threading.Lock()
        self._processing = False
        self._pending: Optional[WorkspaceSnapshot] = None
        self._finished = threading.Event()
        self._ready = False
        self._error: Optional[BaseException] = None
        self._disposed = False

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def finished(self) -> bool:
        """Ready, failed or disposed"""
        return self._finished.is_set()

    def submit(self, snapshot: WorkspaceSnapshot) -> None:
        """Process now, or park as the pending snapshot if one is in flight"""
        with self._lock:
            if self._disposed or self._finished.is_set():
                return
            if self._processing:
                self._pending = snapshot
                return
            self._processing = True

        self._drain(snapshot)

    def fail(self, error: BaseException) -> None:
        """Finish with an error raised outside the handler"""
        with self._lock:
            if self._disposed or self._finished.is_set():
                return
            self._error = error
            self._pending = None
            self._finished.set()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the handler reports ready.

        Returns:
            True when ready, False on timeout

        Raises:
            The first exception raised while processing, or ConnectionAborted
            when disposed while waiting
        """
        if not self._finished.wait(timeout):
            return False
        if self._error is not None:
            raise self._error
        if self._ready:
            return True
        raise ConnectionAborted("Connection attempt was cancelled", close_remote=False)

    def dispose(self) -> None:
        with self._lock:
            self._disposed = True
            self._pending = None
            self._finished.set()

    def _drain(self, snapshot: Optional[WorkspaceSnapshot]) -> None:
        while snapshot is not None:
            try:
                ready = self._handler(snapshot)
            except Exception as e:
                with self._lock:
                    self._processing = False
                    self._pending = None
                    if not self._disposed and not self._finished.is_set():
                        self._error = e
                        self._finished.set()
                return

            with self._lock:
                if self._disposed:
                    self._processing = False
                    return
                if ready:
                    self._ready = True
                    self._processing = False
                    self._pending = None
                    self._finished.set()
                    return
                snapshot = self._pending
                self._pending = None
                if snapshot is None:
                    self._processing = False

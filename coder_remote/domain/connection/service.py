"""
Connection domain service - connection orchestration
"""
import threading
from pathlib import Path
from typing import Callable, List, Optional

from ...core.constants import SSH_SESSION_TYPE_ENV
from ...core.exceptions import (
    AgentTimeoutError,
    ApiError,
    AuthenticationRequired,
    ConnectionAborted,
    IncompatibleServerError,
    SSHConfigConflictError,
    WorkspaceNotFound,
    WorkspaceStartDeclined,
)
from ...core.interfaces import (
    BinaryProvider,
    ProgressReporter,
    PromptProvider,
    SecretsStore,
    WorkspaceApi,
)
from ...core.logging import get_logger
from ...core.paths import PathResolver
from ...core.settings import RemoteSettings
from ...core.utils import resolve_ssh_config_path
from ..authority import RemoteAuthorityParts, host_prefix, parse_remote_authority
from ..ssh import (
    SSHConfig,
    SSHOptions,
    SSHValues,
    merge_overrides,
    parse_ssh_config_lines,
    ssh_supports_setenv,
)
from ..version import FeatureSet
from ..workspace import (
    AgentSnapshot,
    SnapshotCoalescer,
    WorkspaceSnapshot,
    WorkspaceStateMachine,
    WorkspaceWatcher,
)
from .credentials import (
    VersionProbe,
    migrate_session_token,
    negotiate_features,
    probe_binary_version,
    resolve_binary,
    resolve_credentials,
)
from .editor_settings import update_editor_settings
from .models import DeploymentCredentials, RemoteDetails
from .monitors import FileChangeWatcher, NetworkStatus, NetworkStatusMonitor
from .proxy_command import build_global_flags, build_proxy_command

logger = get_logger(__name__)

LOGIN_ACTION = "Log In"
OPEN_WORKSPACE_ACTION = "Open Workspace"
CLOSE_REMOTE_ACTION = "Close Remote"
RELOAD_ACTION = "Reload Window"
RETRY_ACTION = "Retry"

# One login per top-level attempt
MAX_LOGIN_RETRIES = 1

ApiFactory = Callable[[str, str], WorkspaceApi]
LoginHandler = Callable[[Optional[str], str], bool]
Disposer = Callable[[], None]


class RemoteSetup:
    """
    Turns a remote authority into a reachable workspace.

    All user interaction goes through the injected prompt and progress
    collaborators; all deployment access through the API factory.
    """

    def __init__(
        self,
        settings: RemoteSettings,
        secrets: SecretsStore,
        binary_provider: BinaryProvider,
        prompts: PromptProvider,
        progress: ProgressReporter,
        api_factory: ApiFactory,
        login: Optional[LoginHandler] = None,
        paths: Optional[PathResolver] = None,
        version_probe: VersionProbe = probe_binary_version,
        setenv_supported: Callable[[], bool] = ssh_supports_setenv,
        config_file: Optional[Path] = None,
        on_network_status: Optional[Callable[[NetworkStatus], None]] = None,
    ):
        """
        Initialize connection setup.

        Args:
            settings: Runtime settings
            secrets: Per-deployment URL/token store
            binary_provider: Locates the CLI binary
            prompts: Dialog collaborator
            progress: Progress collaborator
            api_factory: Creates an API client from (url, token)
            login: Runs the login flow for (url, label); True when credentials were stored
            paths: Deployment file layout (defaults to the settings data directory)
            version_probe: Returns the version reported by a binary
            setenv_supported: Whether the local ssh accepts SetEnv
            config_file: Settings file watched while connected
            on_network_status: Receives network status updates while connected
        """
        self.settings = settings
        self.secrets = secrets
        self.binary_provider = binary_provider
        self.prompts = prompts
        self.progress = progress
        self.api_factory = api_factory
        self.login = login
        self.paths = paths or PathResolver(settings.data_path)
        self.version_probe = version_probe
        self.setenv_supported = setenv_supported
        self.config_file = config_file
        self.on_network_status = on_network_status

        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Abort the attempt in progress; waits return with ConnectionAborted"""
        self._cancel.set()

    def setup(self, remote_authority: str, first_connect: bool = False) -> Optional[RemoteDetails]:
        """
        Ensure the workspace behind an authority is ready for SSH.

        Args:
            remote_authority: Raw identifier
            first_connect: The user opened this workspace just now; start it
                without asking

        Returns:
            RemoteDetails, or None when the authority belongs to something else

        Raises:
            AuthorityFormatError: Malformed authority
            ConnectionAborted: The user declined to proceed or a fatal check failed
            RemoteError: Any other failure of the attempt
        """
        self._cancel.clear()
        return self._setup(remote_authority, first_connect, login_attempts=0)

    # ============================================================
    # Flow
    # ============================================================

    def _setup(self, remote_authority: str, first_connect: bool, login_attempts: int) -> Optional[RemoteDetails]:
        parts = parse_remote_authority(remote_authority)
        if parts is None:
            logger.debug(f"Not handling authority {remote_authority}")
            return None

        migrate_session_token(self.paths, parts.label)

        try:
            credentials = resolve_credentials(self.secrets, parts.label, self.settings.needs_token)
        except AuthenticationRequired as e:
            return self._login_and_retry(parts, remote_authority, first_connect, login_attempts, e)

        api = self.api_factory(credentials.url, credentials.token)
        try:
            return self._connect(parts, credentials, api, first_connect)
        except AuthenticationRequired as e:
            api.close()
            return self._login_and_retry(parts, remote_authority, first_connect, login_attempts, e)
        except BaseException:
            api.close()
            raise

    def _login_and_retry(
        self,
        parts: RemoteAuthorityParts,
        remote_authority: str,
        first_connect: bool,
        login_attempts: int,
        error: AuthenticationRequired,
    ) -> Optional[RemoteDetails]:
        if login_attempts >= MAX_LOGIN_RETRIES or self.login is None:
            raise ConnectionAborted(str(error), close_remote=True) from error

        action = self.prompts.show_message(
            str(error),
            detail=f"You must log in to access {parts.workspace_name}.",
            actions=(LOGIN_ACTION,),
        )
        if action != LOGIN_ACTION:
            raise ConnectionAborted("Login declined", close_remote=True) from error

        if not self.login(error.url, parts.label):
            raise ConnectionAborted("Login failed", close_remote=True) from error

        return self._setup(remote_authority, first_connect, login_attempts + 1)

    def _connect(
        self,
        parts: RemoteAuthorityParts,
        credentials: DeploymentCredentials,
        api: WorkspaceApi,
        first_connect: bool,
    ) -> RemoteDetails:
        binary = resolve_binary(self.settings, self.binary_provider, api, parts.label)
        feature_set = self._negotiate(api, binary)
        workspace = self._fetch_workspace(api, parts)

        disposers: List[Disposer] = [api.close]

        def dispose() -> None:
            while disposers:
                disposer = disposers.pop()
                try:
                    disposer()
                except Exception as e:
                    logger.warning(f"Error while disposing connection resources: {e}")

        try:
            agent = self._wait_until_ready(parts, api, workspace, first_connect)

            logger.info("Modifying settings...")
            update_editor_settings(self.settings.settings_path, parts.ssh_host, agent.operating_system)

            self._update_ssh_config(api, parts, binary, feature_set)

            disposers.extend(self._start_monitors(parts))
        except BaseException:
            dispose()
            raise

        logger.info(f"Connection to {parts.workspace_name} is ready")
        return RemoteDetails(url=credentials.url, token=credentials.token, dispose=dispose)

    def _negotiate(self, api: WorkspaceApi, binary: Path) -> FeatureSet:
        try:
            return negotiate_features(api, binary, self.version_probe)
        except IncompatibleServerError as e:
            self.prompts.show_message(
                "Incompatible Server",
                detail=str(e),
                actions=(CLOSE_REMOTE_ACTION,),
                error=True,
            )
            raise ConnectionAborted(str(e), close_remote=True) from e

    def _fetch_workspace(self, api: WorkspaceApi, parts: RemoteAuthorityParts) -> WorkspaceSnapshot:
        logger.info(f"Looking for workspace {parts.workspace_name}...")
        try:
            workspace = api.get_workspace_by_owner_and_name(parts.username, parts.workspace)
        except ApiError as e:
            if e.status_code == 404:
                message = f"{parts.workspace_name} cannot be found on {api.base_url}. Maybe it was deleted..."
                action = self.prompts.show_message(
                    "That workspace doesn't exist!",
                    detail=message,
                    actions=(OPEN_WORKSPACE_ACTION,),
                )
                raise ConnectionAborted(
                    message,
                    close_remote=action != OPEN_WORKSPACE_ACTION,
                ) from WorkspaceNotFound(message)
            if e.status_code == 401:
                raise AuthenticationRequired("Your session expired...", url=api.base_url) from e
            raise

        logger.info(f"Found workspace {workspace.identifier} with status {workspace.build_status.value}")
        return workspace

    # ============================================================
    # Readiness
    # ============================================================

    def _wait_until_ready(
        self,
        parts: RemoteAuthorityParts,
        api: WorkspaceApi,
        workspace: WorkspaceSnapshot,
        first_connect: bool,
    ) -> AgentSnapshot:
        while True:
            try:
                return self._run_state_machine(parts, api, workspace, first_connect)
            except WorkspaceStartDeclined as e:
                if not e.start_failed:
                    raise ConnectionAborted(str(e), close_remote=True) from e
                action = self.prompts.show_message(
                    f"Failed to start {workspace.identifier}",
                    detail=str(e),
                    actions=(RETRY_ACTION,),
                    error=True,
                )
                if action != RETRY_ACTION:
                    raise ConnectionAborted(str(e), close_remote=True) from e
            except AgentTimeoutError as e:
                action = self.prompts.show_message(
                    "Agent Timeout",
                    detail=f"{e} Reload the window to try again.",
                    actions=(RELOAD_ACTION, CLOSE_REMOTE_ACTION),
                    error=True,
                )
                raise ConnectionAborted(
                    str(e),
                    close_remote=action != RELOAD_ACTION,
                    reload=action == RELOAD_ACTION,
                ) from e

            # Retry starts from a fresh snapshot
            workspace = api.get_workspace(workspace.id)

    def _run_state_machine(
        self,
        parts: RemoteAuthorityParts,
        api: WorkspaceApi,
        workspace: WorkspaceSnapshot,
        first_connect: bool,
    ) -> AgentSnapshot:
        machine = WorkspaceStateMachine(parts, api, self.prompts, self.progress, first_connect)
        coalescer = SnapshotCoalescer(machine.process)
        watcher = WorkspaceWatcher(api, workspace.id, self.settings.watch_interval)
        watcher.subscribe(coalescer.submit, on_error=self._on_poll_error(coalescer))

        try:
            coalescer.submit(workspace)
            if not coalescer.finished:
                watcher.start()
            while not coalescer.wait_until_ready(timeout=0.5):
                if self._cancel.is_set():
                    raise ConnectionAborted("Connection attempt was cancelled", close_remote=False)
        finally:
            watcher.dispose()
            coalescer.dispose()
            machine.dispose()

        return machine.agent

    @staticmethod
    def _on_poll_error(coalescer: SnapshotCoalescer) -> Callable[[Exception], None]:
        def on_error(error: Exception) -> None:
            # An expired session ends the attempt; other API errors are transient
            if isinstance(error, ApiError):
                if error.status_code == 401:
                    coalescer.fail(AuthenticationRequired("Your session expired..."))
                return
            coalescer.fail(ApiError(f"Unexpected error while watching the workspace: {error!r}"))

        return on_error

    # ============================================================
    # SSH config
    # ============================================================

    def _ssh_overrides(self, api: WorkspaceApi) -> SSHOptions:
        deployment = {}
        try:
            deployment = api.get_deployment_ssh_config()
        except ApiError as e:
            if e.status_code == 404:
                # Older deployments cannot override SSH options
                logger.debug("Deployment does not provide SSH config options")
            elif e.status_code == 401:
                raise AuthenticationRequired("Your session expired...", url=api.base_url) from e
            else:
                raise

        user = parse_ssh_config_lines(self.settings.ssh_config)
        return merge_overrides(deployment, user)

    def _update_ssh_config(
        self,
        api: WorkspaceApi,
        parts: RemoteAuthorityParts,
        binary: Path,
        feature_set: FeatureSet,
    ) -> SSHOptions:
        overrides = self._ssh_overrides(api)

        prefix = host_prefix(parts.label)
        flags = build_global_flags(
            self.settings.global_flags,
            self.settings.header_command,
            self.paths.global_config_dir(parts.label),
        )
        proxy_command = build_proxy_command(
            binary,
            parts.label,
            prefix,
            feature_set,
            self.paths,
            global_flags=flags,
            log_dir=self.settings.proxy_log_dir(),
        )
        values = SSHValues(
            Host=f"{prefix}*",
            ProxyCommand=proxy_command,
            SetEnv=SSH_SESSION_TYPE_ENV if self.setenv_supported() else None,
        )

        ssh_config = SSHConfig(resolve_ssh_config_path(self.settings.ssh_config_file))
        ssh_config.load()
        written = ssh_config.update(parts.label, values, overrides)

        conflicts = ssh_config.verify(parts.ssh_host, written)
        if conflicts:
            conflict = conflicts[0]
            error = SSHConfigConflictError(conflict.key, conflict.host, conflict.actual, conflict.expected)
            action = self.prompts.show_message(
                "Unexpected SSH Config Option",
                detail=str(error),
                actions=(RELOAD_ACTION,),
                error=True,
            )
            raise ConnectionAborted(str(error), close_remote=True, reload=action == RELOAD_ACTION) from error

        return written

    # ============================================================
    # Monitors
    # ============================================================

    def _start_monitors(self, parts: RemoteAuthorityParts) -> List[Disposer]:
        disposers: List[Disposer] = []
        try:
            network = NetworkStatusMonitor(
                self.paths.network_info_dir(),
                self.on_network_status or self._report_network_status,
            )
            network.start()
            disposers.append(network.dispose)

            disposers.append(self.secrets.on_change(parts.label, self._on_credentials_change(parts)))

            if self.config_file is not None:
                watcher = FileChangeWatcher(self.config_file, self._on_config_change)
                watcher.start()
                disposers.append(watcher.dispose)
        except BaseException:
            for disposer in reversed(disposers):
                disposer()
            raise
        return disposers

    def _report_network_status(self, status: NetworkStatus) -> None:
        self.progress.report(status.text)

    def _on_credentials_change(self, parts: RemoteAuthorityParts) -> Callable[[Optional[DeploymentCredentials]], None]:
        def on_change(credentials: Optional[DeploymentCredentials]) -> None:
            if credentials is None:
                logger.warning(f"Logged out of {parts.label or 'the deployment'}; the connection will stop working")
            else:
                logger.info(f"Credentials for {credentials.url} changed")

        return on_change

    def _on_config_change(self, path: Path) -> None:
        logger.warning(f"{path} changed; reconnect to apply the new settings")
        self.progress.report("Settings changed, reconnect to apply them")

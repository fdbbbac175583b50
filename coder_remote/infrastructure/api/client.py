"""
HTTP client for the deployment REST API
"""
import ssl
import threading
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

from ...core.constants import DEFAULT_API_TIMEOUT, SESSION_TOKEN_HEADER
from ...core.exceptions import ApiError
from ...core.interfaces import WorkspaceApi
from ...core.logging import get_logger, register_secret
from ...domain.workspace.models import WorkspaceSnapshot

logger = get_logger(__name__)

# Provisioner job states after which no more build logs arrive
FINISHED_JOB_STATUSES = ("succeeded", "failed", "canceled")


class HttpWorkspaceApi(WorkspaceApi):
    """
    ``WorkspaceApi`` over ``/api/v2`` with session-token authentication.

    Every non-2xx response becomes an ``ApiError`` carrying the status code.
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = DEFAULT_API_TIMEOUT,
        verify: bool = True,
        client_cert: Optional[Tuple[str, str]] = None,
        log_poll_interval: float = 1.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize API client.

        Args:
            base_url: Deployment URL
            token: Session token, empty for none
            timeout: Request timeout in seconds
            verify: Verify TLS certificates
            client_cert: (cert, key) files for mutual TLS
            log_poll_interval: Seconds between build log polls
            transport: Custom httpx transport (tests)
        """
        self._base_url = base_url.rstrip("/")
        headers = {"Accept": "application/json"}
        if token:
            register_secret(token)
            headers[SESSION_TOKEN_HEADER] = token
        self.log_poll_interval = log_poll_interval
        self._client = httpx.Client(
            base_url=self._base_url,
            headers=headers,
            timeout=timeout,
            verify=self._ssl_context(verify, client_cert),
            transport=transport,
        )

    @staticmethod
    def _ssl_context(verify: bool, client_cert: Optional[Tuple[str, str]]) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if not verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        if client_cert is not None:
            context.load_cert_chain(*client_cert)
        return context

    @property
    def base_url(self) -> str:
        return self._base_url

    def close(self) -> None:
        self._client.close()

    # ============================================================
    # Requests
    # ============================================================

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ApiError(self._error_message(e.response), status_code=e.response.status_code) from e
        except httpx.HTTPError as e:
            raise ApiError(f"Request to {self._base_url}{path} failed: {e}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(f"Invalid JSON from {self._base_url}{path}", status_code=response.status_code) from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            detail = body.get("detail")
            return f"{body['message']}: {detail}" if detail else body["message"]
        return f"{response.request.method} {response.request.url.path} returned {response.status_code}"

    def _snapshot(self, path: str, data: Any) -> WorkspaceSnapshot:
        if not isinstance(data, dict):
            raise ApiError(f"Unexpected workspace response from {self._base_url}{path}")
        try:
            return WorkspaceSnapshot.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ApiError(f"Malformed workspace response from {self._base_url}{path}: {e!r}") from e

    # ============================================================
    # WorkspaceApi
    # ============================================================

    def get_workspace_by_owner_and_name(self, owner: str, name: str) -> WorkspaceSnapshot:
        path = f"/api/v2/users/{owner}/workspace/{name}"
        return self._snapshot(path, self._request("GET", path))

    def get_workspace(self, workspace_id: str) -> WorkspaceSnapshot:
        path = f"/api/v2/workspaces/{workspace_id}"
        return self._snapshot(path, self._request("GET", path))

    def start_workspace(self, workspace_id: str, version_id: str) -> None:
        payload: Dict[str, Any] = {"transition": "start"}
        if version_id:
            payload["template_version_id"] = version_id
        self._request("POST", f"/api/v2/workspaces/{workspace_id}/builds", json=payload)

    def get_build_info(self) -> Dict[str, Any]:
        return self._request("GET", "/api/v2/buildinfo") or {}

    def get_deployment_ssh_config(self) -> Dict[str, str]:
        data = self._request("GET", "/api/v2/deployment/ssh") or {}
        return dict(data.get("ssh_config_options") or {})

    def get_authenticated_user(self) -> Dict[str, Any]:
        """Current user; used to validate a token at login"""
        return self._request("GET", "/api/v2/users/me") or {}

    def stream_build_logs(
        self,
        build_id: str,
        on_line: Callable[[str], None],
        stop: threading.Event,
    ) -> None:
        after = 0
        while not stop.is_set():
            logs = self._request("GET", f"/api/v2/workspacebuilds/{build_id}/logs", params={"after": after}) or []
            for entry in logs:
                after = max(after, int(entry.get("id", after)))
                output = entry.get("output", "")
                if output and not stop.is_set():
                    on_line(output)

            build = self._request("GET", f"/api/v2/workspacebuilds/{build_id}") or {}
            job_status = (build.get("job") or {}).get("status", "")
            if job_status in FINISHED_JOB_STATUSES:
                logger.debug(f"Build {build_id} finished with job status {job_status}")
                return

            stop.wait(self.log_poll_interval)

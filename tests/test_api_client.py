import json
import threading

import httpx
import pytest

from coder_remote.core.exceptions import ApiError
from coder_remote.domain.workspace import AgentStatus, BuildStatus
from coder_remote.infrastructure.api.client import HttpWorkspaceApi

WORKSPACE = {
    "id": "ws-1",
    "name": "box",
    "owner_name": "alice",
    "template_active_version_id": "tv-2",
    "template_require_active_version": True,
    "latest_build": {
        "id": "b1",
        "status": "running",
        "template_version_id": "tv-1",
        "resources": [
            {"agents": [{"id": "a1", "name": "main", "status": "connected", "operating_system": "linux"}]},
            {"agents": None},
        ],
    },
}


def _api(handler, token="secret"):
    return HttpWorkspaceApi(
        "https://dev.example.com/",
        token,
        log_poll_interval=0,
        transport=httpx.MockTransport(handler),
    )


def test_get_workspace_by_owner_and_name():
    def handler(request):
        assert request.url.path == "/api/v2/users/alice/workspace/box"
        assert request.headers["Coder-Session-Token"] == "secret"
        return httpx.Response(200, json=WORKSPACE)

    api = _api(handler)
    snapshot = api.get_workspace_by_owner_and_name("alice", "box")

    assert api.base_url == "https://dev.example.com"
    assert snapshot.identifier == "alice/box"
    assert snapshot.build_status == BuildStatus.RUNNING
    assert snapshot.agents[0].status == AgentStatus.CONNECTED
    assert snapshot.target_version_id() == "tv-2"


def test_no_token_header_without_token():
    def handler(request):
        assert "Coder-Session-Token" not in request.headers
        return httpx.Response(200, json={"version": "v2.20.0"})

    assert _api(handler, token="").get_build_info() == {"version": "v2.20.0"}


def test_error_message_from_body():
    def handler(request):
        return httpx.Response(404, json={"message": "Resource not found", "detail": "no workspace"})

    with pytest.raises(ApiError) as info:
        _api(handler).get_workspace("ws-1")
    assert info.value.status_code == 404
    assert str(info.value) == "Resource not found: no workspace"


def test_error_without_body():
    with pytest.raises(ApiError) as info:
        _api(lambda request: httpx.Response(500, text="oops")).get_build_info()
    assert info.value.status_code == 500
    assert str(info.value) == "GET /api/v2/buildinfo returned 500"


def test_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ApiError) as info:
        _api(handler).get_build_info()
    assert info.value.status_code is None


def test_start_workspace_payload():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(201, json={"id": "b2"})

    _api(handler).start_workspace("ws-1", "tv-2")
    assert requests[0].method == "POST"
    assert requests[0].url.path == "/api/v2/workspaces/ws-1/builds"
    assert json.loads(requests[0].content) == {"transition": "start", "template_version_id": "tv-2"}


def test_deployment_ssh_config():
    api = _api(lambda request: httpx.Response(200, json={"ssh_config_options": {"LogLevel": "DEBUG"}}))
    assert api.get_deployment_ssh_config() == {"LogLevel": "DEBUG"}

    api = _api(lambda request: httpx.Response(200, json={"ssh_config_options": None}))
    assert api.get_deployment_ssh_config() == {}


def test_stream_build_logs_until_job_finishes():
    afters = []
    builds = iter(["running", "succeeded"])

    def handler(request):
        if request.url.path.endswith("/logs"):
            after = request.url.params["after"]
            afters.append(after)
            if after == "0":
                return httpx.Response(200, json=[
                    {"id": 1, "output": "Terraform init"},
                    {"id": 2, "output": ""},
                    {"id": 3, "output": "Terraform apply"},
                ])
            return httpx.Response(200, json=[])
        return httpx.Response(200, json={"id": "b1", "job": {"status": next(builds)}})

    lines = []
    _api(handler).stream_build_logs("b1", lines.append, threading.Event())
    assert lines == ["Terraform init", "Terraform apply"]
    assert afters == ["0", "3"]


def test_stream_build_logs_stops_on_event():
    stop = threading.Event()
    stop.set()
    _api(lambda request: pytest.fail("no request expected")).stream_build_logs("b1", print, stop)


def test_malformed_workspace_body():
    with pytest.raises(ApiError, match="Malformed workspace response"):
        _api(lambda request: httpx.Response(200, json={"name": "box"})).get_workspace("ws-1")

    with pytest.raises(ApiError, match="Unexpected workspace response"):
        _api(lambda request: httpx.Response(200)).get_workspace("ws-1")


def test_unknown_statuses_are_tolerated():
    data = dict(WORKSPACE, latest_build={"id": "b1", "status": "pausing", "resources": []})
    api = _api(lambda request: httpx.Response(200, json=data))
    assert api.get_workspace("ws-1").build_status == BuildStatus.PENDING

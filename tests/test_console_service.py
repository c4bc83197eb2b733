"""Tests for the console service HTTP API."""

import sys
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from libs.common.config import ConsoleConfig
from libs.gateway.client import RequestGateway
from tests import payloads

# Add the service directory to path
service_root = Path(__file__).parent.parent / "service-console"
sys.path.insert(0, str(service_root))

from app.main import create_app  # noqa: E402

SESSION_HEADER = "X-Session-Id"


class Backend:
    """Scripted introspection backend behind an ``httpx.MockTransport``."""

    def __init__(self):
        self.analyze_response = httpx.Response(200, json=payloads.eiffel_tower_payload())
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/analyze":
            if isinstance(self.analyze_response, Exception):
                raise self.analyze_response
            return self.analyze_response
        if request.url.path == "/history":
            return httpx.Response(200, json=payloads.history_payload())
        if request.url.path == "/health":
            return httpx.Response(200, json={"status": "ok", "glassbox_connected": True, "database_connected": False})
        return httpx.Response(404, json={"detail": "Not Found"})


@pytest.fixture
def backend():
    return Backend()


@pytest.fixture
def client(backend):
    config = ConsoleConfig(
        watcher_backend_url="http://backend.test",
        watcher_log_format="console",
        watcher_history_default_limit=7,
    )
    gateway = RequestGateway(config, transport=httpx.MockTransport(backend))
    with TestClient(create_app(config=config, gateway=gateway)) as test_client:
        yield test_client


def _analyze(client, headers=None):
    return client.post(
        "/api/analyze",
        json={"prompt": payloads.PROMPT, "output": payloads.OUTPUT},
        headers=headers or {},
    )


def test_analyze_starts_a_session_and_result_is_readable(client):
    response = _analyze(client)
    assert response.status_code == 200
    session_id = response.headers[SESSION_HEADER]
    result_id = response.json()["id"]

    response = client.get(f"/api/results/{result_id}", headers={SESSION_HEADER: session_id})

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == result_id
    assert data["riskLevel"] == "low"
    assert data["componentCount"] == 1
    assert data["components"][0]["subUnit"] == 5
    assert data["concerns"] == [{"severity": "benign", "message": "no significant concerns detected"}]
    assert data["prompt"] == payloads.PROMPT


def test_results_are_scoped_to_their_session(client):
    response = _analyze(client, headers={SESSION_HEADER: "alice"})
    result_id = response.json()["id"]

    response = client.get(f"/api/results/{result_id}", headers={SESSION_HEADER: "bob"})

    assert response.status_code == 404
    assert response.json() == {
        "error": "not_found",
        "detail": f"Analysis {result_id} not found",
        "id": result_id,
    }


def test_ending_a_session_discards_its_results(client):
    result_id = _analyze(client, headers={SESSION_HEADER: "alice"}).json()["id"]

    response = client.delete("/api/session", headers={SESSION_HEADER: "alice"})
    assert response.json() == {"session_id": "alice", "ended": True}

    response = client.get(f"/api/results/{result_id}", headers={SESSION_HEADER: "alice"})
    assert response.status_code == 404


def test_ending_an_unknown_session(client):
    response = client.delete("/api/session")
    assert response.status_code == 200
    assert response.json() == {"session_id": "", "ended": False}


def test_unrecognized_backend_schema_is_502(client, backend):
    backend.analyze_response = httpx.Response(200, json={"status": "queued"})

    response = _analyze(client)

    assert response.status_code == 502
    assert response.json()["error"] == "schema_mismatch"
    assert response.json()["detail"].startswith("unrecognized response schema")


def test_backend_failure_keeps_status_and_message(client, backend):
    backend.analyze_response = httpx.Response(500, json={"detail": "model crashed"})

    response = _analyze(client)

    assert response.status_code == 500
    assert response.json() == {"error": "backend_failure", "detail": "model crashed"}


def test_unreachable_backend_is_503(client, backend):
    backend.analyze_response = httpx.ConnectError("refused")

    response = _analyze(client)

    assert response.status_code == 503
    assert response.json()["error"] == "transport_failure"


def test_empty_prompt_is_rejected(client, backend):
    response = client.post("/api/analyze", json={"prompt": "", "output": "x"})
    assert response.status_code == 422
    assert backend.requests == []


def test_history_uses_configured_default_limit(client, backend):
    response = client.get("/api/history")

    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == ["req-2", "req-1"]
    assert response.json()[1]["promptPreview"] == "Where is the Eiffel Tower?"
    assert backend.requests[-1].url.params["limit"] == "7"


def test_history_validates_paging(client):
    assert client.get("/api/history", params={"limit": 0}).status_code == 422
    assert client.get("/api/history", params={"offset": -1}).status_code == 422


def test_backend_health_is_normalized(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "upstreamConnected": True, "storeConnected": False}


def test_service_health_and_metrics(client):
    _analyze(client, headers={SESSION_HEADER: "alice"})

    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["sessions"] == 1

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "watcher_adaptations_total" in metrics.text
    assert "http_requests_total" in metrics.text
    assert "watcher_active_sessions 1.0" in metrics.text


def test_request_metrics_use_route_templates(client):
    client.get("/api/results/analysis_123", headers={SESSION_HEADER: "alice"})

    metrics = client.get("/metrics").text
    assert 'endpoint="/api/results/{result_id}"' in metrics
    assert "analysis_123" not in metrics


def test_read_only_routes_do_not_start_sessions(client):
    for _ in range(50):
        assert client.get("/api/health").status_code == 200
    client.get("/api/history")

    assert len(client.app.state.sessions) == 0
    assert SESSION_HEADER not in client.get("/api/health").headers
    assert client.get("/health").json()["sessions"] == 0

"""Tests for the request gateway."""

import json

import httpx
import pytest
from prometheus_client import CollectorRegistry

from libs.common.config import BaseConfig
from libs.common.metrics import MetricsCollector
from libs.gateway.client import DEFAULT_ERROR_MESSAGE, RequestGateway
from libs.introspection.errors import BackendFailure, SchemaMismatch, TransportFailure
from tests import payloads


def _gateway(handler, **config_overrides) -> RequestGateway:
    config = BaseConfig(watcher_backend_url="http://backend.test", **config_overrides)
    return RequestGateway(config, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_submit_posts_prompt_and_output():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=payloads.key_components_payload())

    async with _gateway(handler) as gateway:
        body = await gateway.submit(payloads.PROMPT, payloads.OUTPUT)

    assert seen == {
        "method": "POST",
        "path": "/analyze",
        "body": {"prompt": payloads.PROMPT, "output": payloads.OUTPUT},
    }
    assert body == payloads.key_components_payload()


@pytest.mark.asyncio
async def test_submit_uses_configured_field_name():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=payloads.flat_components_payload())

    async with _gateway(handler, watcher_submit_field="response") as gateway:
        await gateway.submit("p", "o")

    assert seen["body"] == {"prompt": "p", "response": "o"}


@pytest.mark.asyncio
async def test_fetch_by_id_quotes_the_id():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["raw_path"] = request.url.raw_path
        return httpx.Response(200, json=payloads.persisted_record_payload())

    async with _gateway(handler) as gateway:
        await gateway.fetch_by_id("a/b c")

    assert seen["raw_path"] == b"/analysis/a%2Fb%20c"


@pytest.mark.asyncio
async def test_history_unwraps_items_and_forwards_paging():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=payloads.history_payload())

    async with _gateway(handler) as gateway:
        items = await gateway.list_history(limit=5, offset=10)

    assert seen["params"] == {"limit": "5", "offset": "10"}
    assert [item.get("request_id") or item.get("id") for item in items] == ["req-2", "req-1"]


@pytest.mark.asyncio
async def test_history_accepts_bare_list():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=payloads.history_payload()["items"])

    async with _gateway(handler) as gateway:
        assert len(await gateway.list_history()) == 2


@pytest.mark.asyncio
async def test_history_without_items_is_schema_mismatch():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"rows": []})

    async with _gateway(handler) as gateway:
        with pytest.raises(SchemaMismatch):
            await gateway.list_history()


@pytest.mark.asyncio
async def test_history_rejects_negative_paging():
    async with _gateway(lambda request: httpx.Response(200, json={"items": []})) as gateway:
        with pytest.raises(ValueError):
            await gateway.list_history(limit=-1)


@pytest.mark.asyncio
async def test_connection_error_is_503():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _gateway(handler) as gateway:
        with pytest.raises(TransportFailure) as exc_info:
            await gateway.health()

    assert exc_info.value.status_code == 503
    assert exc_info.value.message.startswith("Failed to connect to backend")


@pytest.mark.asyncio
async def test_timeout_is_504():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async with _gateway(handler) as gateway:
        with pytest.raises(TransportFailure) as exc_info:
            await gateway.submit("p", "o")

    assert exc_info.value.status_code == 504


@pytest.mark.asyncio
async def test_malformed_success_body_is_502():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>proxy error</html>")

    async with _gateway(handler) as gateway:
        with pytest.raises(TransportFailure) as exc_info:
            await gateway.submit("p", "o")

    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
@pytest.mark.parametrize("body,expected", [
    ({"detail": "Analysis req-9 not found"}, "Analysis req-9 not found"),
    ({"message": "model is loading"}, "model is loading"),
    ({"error": "bad prompt"}, "bad prompt"),
])
async def test_backend_error_message_is_extracted(body, expected):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json=body)

    async with _gateway(handler) as gateway:
        with pytest.raises(BackendFailure) as exc_info:
            await gateway.fetch_by_id("req-9")

    assert exc_info.value.status_code == 422
    assert exc_info.value.message == expected


@pytest.mark.asyncio
async def test_backend_error_without_body_uses_reason_phrase():
    async with _gateway(lambda request: httpx.Response(500)) as gateway:
        with pytest.raises(BackendFailure) as exc_info:
            await gateway.health()

    assert exc_info.value.status_code == 500
    assert exc_info.value.message == "Internal Server Error"


@pytest.mark.asyncio
async def test_backend_error_with_unknown_status_uses_default_message():
    async with _gateway(lambda request: httpx.Response(599)) as gateway:
        with pytest.raises(BackendFailure) as exc_info:
            await gateway.health()

    assert exc_info.value.message == DEFAULT_ERROR_MESSAGE


@pytest.mark.asyncio
async def test_backend_calls_are_counted():
    metrics = MetricsCollector("test", registry=CollectorRegistry())
    config = BaseConfig(watcher_backend_url="http://backend.test")
    responses = iter([httpx.Response(200, json={"status": "ok"}), httpx.Response(503)])
    gateway = RequestGateway(
        config,
        transport=httpx.MockTransport(lambda request: next(responses)),
        metrics=metrics,
    )

    async with gateway:
        await gateway.health()
        with pytest.raises(BackendFailure):
            await gateway.health()

    exposition = metrics.get_metrics()
    assert 'watcher_backend_requests_total{operation="health",outcome="ok"} 1.0' in exposition
    assert 'watcher_backend_requests_total{operation="health",outcome="BackendFailure"} 1.0' in exposition


@pytest.mark.asyncio
async def test_close_is_idempotent():
    gateway = _gateway(lambda request: httpx.Response(200, json={}))
    await gateway.connect()
    await gateway.close()
    await gateway.close()
    assert gateway.client is None

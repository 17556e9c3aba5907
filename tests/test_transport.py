"""Tests for HttpTransport against a mocked AO unit API"""

import json
import httpx
import pytest

from adp.config import AdpConfig
from adp.message import Tag
from adp.transport import (
    HttpError,
    HttpTransport,
    ProcessError,
    Signer,
    Transport,
    TransportError,
    TransportTimeoutError,
    unwrap_result,
)


CU = "https://cu.test"
MU = "https://mu.test"
PROCESS_ID = "proc-123"


class StaticSigner(Signer):
    def __init__(self):
        self.signed = []

    def sign(self, process_id, tags, data):
        self.signed.append((process_id, [t.to_dict() for t in tags], data))
        return b"signed-data-item"


def _transport(handler) -> HttpTransport:
    config = AdpConfig(cu_url=CU, mu_url=MU)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpTransport(config, client)


@pytest.mark.asyncio
async def test_read_posts_dry_run_and_returns_last_message():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"Messages": [{"Data": "first"}, {"Data": "last"}]})

    transport = _transport(handler)
    result = await transport.read(PROCESS_ID, [Tag("Action", "Info")])

    assert result == {"Data": "last"}
    assert seen["url"] == f"{CU}/dry-run?process-id={PROCESS_ID}"
    assert seen["body"]["Target"] == PROCESS_ID
    assert seen["body"]["Tags"] == [{"name": "Action", "value": "Info"}]


@pytest.mark.asyncio
async def test_read_without_messages_returns_none():
    transport = _transport(lambda request: httpx.Response(200, json={"Messages": []}))
    assert await transport.read(PROCESS_ID, [Tag("Action", "Info")]) is None


@pytest.mark.asyncio
async def test_read_process_error():
    transport = _transport(lambda request: httpx.Response(200, json={"Error": "bad handler"}))
    with pytest.raises(ProcessError) as exc_info:
        await transport.read(PROCESS_ID, [Tag("Action", "Info")])
    assert exc_info.value.error == "bad handler"


@pytest.mark.asyncio
async def test_http_status_error():
    transport = _transport(lambda request: httpx.Response(503, text="unavailable"))
    with pytest.raises(HttpError):
        await transport.read(PROCESS_ID, [Tag("Action", "Info")])


@pytest.mark.asyncio
async def test_invalid_json_body():
    transport = _transport(lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(HttpError):
        await transport.read(PROCESS_ID, [Tag("Action", "Info")])


@pytest.mark.asyncio
async def test_timeout_maps_to_transport_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(TransportTimeoutError):
        await _transport(handler).read(PROCESS_ID, [Tag("Action", "Info")])


@pytest.mark.asyncio
async def test_connection_error_maps_to_http_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(HttpError):
        await _transport(handler).read(PROCESS_ID, [Tag("Action", "Info")])


@pytest.mark.asyncio
async def test_send_signs_posts_and_fetches_result():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.host == "mu.test":
            return httpx.Response(202, json={"id": "msg-1"})
        return httpx.Response(200, json={"Messages": [{"Data": "Transfer complete"}]})

    signer = StaticSigner()
    tags = [Tag("Action", "Transfer"), Tag("Quantity", "5")]
    result = await _transport(handler).send(signer, PROCESS_ID, tags)

    assert result == "Transfer complete"
    assert signer.signed == [(PROCESS_ID, [t.to_dict() for t in tags], None)]
    assert requests[0].method == "POST"
    assert requests[0].content == b"signed-data-item"
    assert str(requests[1].url) == f"{CU}/result/msg-1?process-id={PROCESS_ID}"


@pytest.mark.asyncio
async def test_send_requires_signer():
    transport = _transport(lambda request: httpx.Response(200, json={}))
    with pytest.raises(TransportError):
        await transport.send("not-a-signer", PROCESS_ID, [Tag("Action", "Transfer")])


@pytest.mark.asyncio
async def test_send_without_message_id():
    transport = _transport(lambda request: httpx.Response(200, json={}))
    with pytest.raises(HttpError):
        await transport.send(StaticSigner(), PROCESS_ID, [Tag("Action", "Transfer")])


@pytest.mark.asyncio
async def test_recent_responses_newest_first():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, json={"edges": [
            {"node": {"Messages": [{"Data": "older"}, {"Data": "newest"}]}},
            {"node": {"Messages": [{"Target": "x"}]}},
            {"node": {"Messages": [{"Data": "oldest"}]}},
        ]})

    payloads = await _transport(handler).recent_responses(PROCESS_ID, limit=5)

    assert payloads == ["newest", "older", "oldest"]
    assert seen["url"].path == f"/results/{PROCESS_ID}"
    assert seen["url"].params["sort"] == "DESC"
    assert seen["url"].params["limit"] == "5"


@pytest.mark.asyncio
async def test_base_transport_recent_responses_is_empty():
    assert await Transport().recent_responses(PROCESS_ID) == []


def test_unwrap_result_output_data():
    assert unwrap_result(PROCESS_ID, {"Output": {"data": '{"result": 7}'}}) == 7
    assert unwrap_result(PROCESS_ID, {"Output": {"data": "plain"}}) == "plain"
    assert unwrap_result(PROCESS_ID, {"Messages": [{"Data": "done"}]}) == "done"
    assert unwrap_result(PROCESS_ID, {}) is None
    with pytest.raises(ProcessError):
        unwrap_result(PROCESS_ID, {"Error": "failed"})

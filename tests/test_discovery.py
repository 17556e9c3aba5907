"""Tests for the discovery cache and client"""

import asyncio
import json
import threading
import pytest

from adp.config import AdpConfig
from adp.discovery import (
    MISS,
    DiscoveryCache,
    DiscoveryClient,
    DiscoveryTimeoutError,
    discover_manifest,
    manifest_from_response,
)
from adp.standard import standard_manifest, token_handlers
from adp.transport import Transport, TransportError, TransportTimeoutError


PROCESS_ID = "token-process"


def _manifest_json() -> str:
    return standard_manifest(token_handlers(), last_updated="2024-01-01T00:00:00Z", name="Token").to_json()


class InfoTransport(Transport):
    """Answers the Info query with a fixed payload after an optional delay"""

    def __init__(self, data=None, delay: float = 0.0, error: Exception = None, recent=()):
        self.data = data
        self.delay = delay
        self.error = error
        self.recent = list(recent)
        self.reads = []
        self.recent_calls = 0

    async def read(self, process_id, tags):
        self.reads.append((process_id, [t.to_dict() for t in tags]))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return {"Target": "caller", "Data": self.data}

    async def recent_responses(self, process_id, limit=25):
        self.recent_calls += 1
        return self.recent


def test_cache_get_miss_and_put():
    cache = DiscoveryCache()
    assert cache.get(PROCESS_ID) is MISS
    assert not MISS

    cache.put(PROCESS_ID, None)
    assert cache.get(PROCESS_ID) is None
    assert cache.get_entry(PROCESS_ID).manifest is None


def test_cache_clear_one_and_all():
    cache = DiscoveryCache()
    cache.put("a", None)
    cache.put("b", None)

    cache.clear("a")
    assert cache.get("a") is MISS
    assert cache.stats().entries == ["b"]

    cache.clear()
    assert cache.stats().size == 0


def test_cache_stats():
    cache = DiscoveryCache()
    cache.put("a", None)
    cache.put("b", None)
    stats = cache.stats()
    assert sorted(stats.entries) == ["a", "b"]
    assert stats.size == 2


@pytest.mark.asyncio
async def test_discover_parses_info_response():
    transport = InfoTransport(data=_manifest_json())
    client = DiscoveryClient(transport)

    manifest = await client.discover(PROCESS_ID)

    assert manifest is not None
    assert manifest.name == "Token"
    assert manifest.actions() == ["Info", "Balance", "Transfer", "Balances"]
    assert transport.reads == [(PROCESS_ID, [{"name": "Action", "value": "Info"}])]


@pytest.mark.asyncio
async def test_discover_uses_cache_on_second_call():
    transport = InfoTransport(data=_manifest_json())
    client = DiscoveryClient(transport)

    first = await client.discover(PROCESS_ID)
    second = await client.discover(PROCESS_ID)

    assert first is second
    assert len(transport.reads) == 1


@pytest.mark.asyncio
async def test_concurrent_discovery_is_single_flight():
    transport = InfoTransport(data=_manifest_json(), delay=0.05)
    client = DiscoveryClient(transport)

    results = await asyncio.gather(*(client.discover(PROCESS_ID) for _ in range(10)))

    assert len(transport.reads) == 1
    assert all(r is results[0] for r in results)
    assert client.cache.in_flight() == []


@pytest.mark.asyncio
async def test_non_manifest_response_is_cached_as_none():
    transport = InfoTransport(data="Hello, I am a legacy process")
    client = DiscoveryClient(transport)

    assert await client.discover(PROCESS_ID) is None
    assert client.cache.get(PROCESS_ID) is None

    assert await client.discover(PROCESS_ID) is None
    assert len(transport.reads) == 1


@pytest.mark.asyncio
async def test_transport_error_degrades_to_none():
    transport = InfoTransport(error=TransportError("connection refused"))
    client = DiscoveryClient(transport)

    assert await client.discover(PROCESS_ID) is None
    assert client.cache.get(PROCESS_ID) is None


@pytest.mark.asyncio
async def test_timeout_is_not_cached():
    config = AdpConfig(discovery_timeout=0.01)
    slow = InfoTransport(data=_manifest_json(), delay=0.5)
    cache = DiscoveryCache()

    assert await DiscoveryClient(slow, cache, config).discover(PROCESS_ID) is None
    assert cache.get(PROCESS_ID) is MISS

    fast = InfoTransport(data=_manifest_json())
    manifest = await DiscoveryClient(fast, cache, config).discover(PROCESS_ID)
    assert manifest is not None
    assert cache.get(PROCESS_ID) is manifest


@pytest.mark.asyncio
async def test_transport_timeout_is_not_cached():
    transport = InfoTransport(error=TransportTimeoutError("read timed out"))
    client = DiscoveryClient(transport)

    assert await client.discover(PROCESS_ID) is None
    assert client.cache.get(PROCESS_ID) is MISS


@pytest.mark.asyncio
async def test_fetch_raises_timeout():
    client = DiscoveryClient(InfoTransport(delay=0.5), config=AdpConfig(discovery_timeout=0.01))
    with pytest.raises(DiscoveryTimeoutError):
        await client.fetch(PROCESS_ID)


@pytest.mark.asyncio
async def test_recent_responses_fallback():
    transport = InfoTransport(
        data="not a manifest",
        recent=["unrelated", json.dumps({"protocolVersion": "0.1"}), _manifest_json()],
    )
    manifest = await DiscoveryClient(transport).discover(PROCESS_ID)

    assert manifest is not None
    assert transport.recent_calls == 1


@pytest.mark.asyncio
async def test_recent_responses_not_consulted_when_info_answers():
    transport = InfoTransport(data=_manifest_json(), recent=[_manifest_json()])
    await DiscoveryClient(transport).discover(PROCESS_ID)
    assert transport.recent_calls == 0


@pytest.mark.asyncio
async def test_invalidate_forces_rediscovery():
    transport = InfoTransport(data=_manifest_json())
    client = DiscoveryClient(transport)

    await client.discover(PROCESS_ID)
    client.invalidate(PROCESS_ID)
    await client.discover(PROCESS_ID)

    assert len(transport.reads) == 2


@pytest.mark.asyncio
async def test_discover_manifest_one_off():
    assert await discover_manifest(InfoTransport(data=_manifest_json()), PROCESS_ID) is not None
    slow = InfoTransport(data=_manifest_json(), delay=0.5)
    assert await discover_manifest(slow, PROCESS_ID, AdpConfig(discovery_timeout=0.01)) is None


def test_manifest_from_response_shapes():
    raw = _manifest_json()
    assert manifest_from_response({"Data": raw}) is not None
    assert manifest_from_response(raw) is not None
    assert manifest_from_response(json.loads(raw)) is not None
    assert manifest_from_response(None) is None
    assert manifest_from_response({"Data": 5}) is None


@pytest.mark.asyncio
async def test_malformed_recent_manifest_degrades_to_none():
    bad = json.dumps({"protocolVersion": "1.0", "lastUpdated": "x", "handlers": 5})
    transport = InfoTransport(data="legacy", recent=[bad])
    client = DiscoveryClient(transport)

    assert await client.discover(PROCESS_ID) is None
    assert client.cache.get(PROCESS_ID) is None


@pytest.mark.asyncio
async def test_unreadable_recent_response_is_skipped(monkeypatch):
    import adp.discovery.client as client_module

    real_parse = client_module.parse_manifest
    calls = []

    def flaky_parse(payload):
        calls.append(payload)
        if len(calls) == 1:
            raise TypeError("unreadable payload")
        return real_parse(payload)

    monkeypatch.setattr(client_module, "parse_manifest", flaky_parse)
    transport = InfoTransport(data="legacy", recent=[_manifest_json(), _manifest_json()])

    manifest = await DiscoveryClient(transport).discover(PROCESS_ID)

    assert manifest is not None
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_clear_during_fetch_discards_stale_outcome():
    cache = DiscoveryCache()
    release = asyncio.Event()

    async def stale_fetch(pid):
        await release.wait()
        return "old-manifest"

    async def fresh_fetch(pid):
        return "new-manifest"

    waiter = asyncio.ensure_future(cache.resolve("pid", stale_fetch))
    await asyncio.sleep(0)
    assert cache.in_flight() == ["pid"]

    cache.clear("pid")
    assert cache.in_flight() == []
    assert await cache.resolve("pid", fresh_fetch) == "new-manifest"

    release.set()
    assert await waiter == "old-manifest"
    assert cache.get("pid") == "new-manifest"


@pytest.mark.asyncio
async def test_clear_all_during_fetch_leaves_miss():
    cache = DiscoveryCache()
    release = asyncio.Event()

    async def stale_fetch(pid):
        await release.wait()
        return "old-manifest"

    waiter = asyncio.ensure_future(cache.resolve("pid", stale_fetch))
    await asyncio.sleep(0)
    cache.clear()
    release.set()

    assert await waiter == "old-manifest"
    assert cache.get("pid") is MISS


def test_in_flight_fetch_is_not_shared_across_event_loops():
    cache = DiscoveryCache()
    started = threading.Event()
    release = threading.Event()
    fetched = []

    async def slow_fetch(pid):
        fetched.append("slow")
        started.set()
        while not release.is_set():
            await asyncio.sleep(0.005)
        return None

    async def fast_fetch(pid):
        fetched.append("fast")
        return None

    thread = threading.Thread(target=lambda: asyncio.run(cache.resolve("pid", slow_fetch)))
    thread.start()
    try:
        assert started.wait(5)
        assert asyncio.run(cache.resolve("pid", fast_fetch)) is None
    finally:
        release.set()
        thread.join(5)

    assert fetched == ["slow", "fast"]
    assert cache.in_flight() == []

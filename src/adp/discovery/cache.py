"""Manifest cache with single-flight discovery

Stores one discovery outcome per process id. A `None` manifest is a valid
cached outcome: it remembers that a process does not describe itself so
discovery is not repeated against it. Entries never expire on their own;
`clear()` is the only way to force rediscovery.

Concurrent lookups for the same uncached process share one in-flight fetch.
"""

import asyncio
import logging
import threading
import time
from typing import Awaitable, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass

from adp.manifest import CapabilityManifest


logger = logging.getLogger(__name__)


class _Miss:
    """Sentinel for a process id with no cached outcome"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISS"

    def __bool__(self) -> bool:
        return False


MISS = _Miss()


class DiscoveryError(Exception):
    """Base discovery error"""
    pass


class DiscoveryTimeoutError(DiscoveryError):
    """Discovery did not complete in time; the outcome must not be cached"""
    def __init__(self, process_id: str, timeout: float):
        super().__init__(f"Discovery for process {process_id} timed out after {timeout}s")
        self.process_id = process_id
        self.timeout = timeout


@dataclass(frozen=True)
class CacheEntry:
    """Cached discovery outcome"""
    process_id: str
    manifest: Optional[CapabilityManifest]
    fetched_at: float


@dataclass(frozen=True)
class CacheStats:
    entries: List[str]
    size: int


Fetcher = Callable[[str], Awaitable[Optional[CapabilityManifest]]]


class DiscoveryCache:
    """Keyed store of discovery outcomes per process id

    Safe to share between threads and event loops: stored outcomes are
    global, while in-flight fetches are shared only by callers on the same
    loop.
    """

    def __init__(self):
        self.entries: Dict[str, CacheEntry] = {}
        self.cache_lock = threading.Lock()
        self._in_flight: Dict[Tuple[asyncio.AbstractEventLoop, str], "asyncio.Future"] = {}
        # Bumped by clear(); a fetch started under an older generation is not stored
        self._generations: Dict[str, int] = {}
        self._epoch = 0

    def get(self, process_id: str):
        """Return the cached manifest, None for a cached non-describing process, or MISS"""
        with self.cache_lock:
            entry = self.entries.get(process_id)
        if entry is None:
            return MISS
        return entry.manifest

    def get_entry(self, process_id: str) -> Optional[CacheEntry]:
        with self.cache_lock:
            return self.entries.get(process_id)

    def put(self, process_id: str, manifest: Optional[CapabilityManifest]) -> CacheEntry:
        entry = CacheEntry(process_id=process_id, manifest=manifest, fetched_at=time.time())
        with self.cache_lock:
            self.entries[process_id] = entry
        return entry

    def clear(self, process_id: Optional[str] = None) -> None:
        """Drop one process's outcome, or every outcome when no id is given

        Fetches already in flight for a cleared id still answer their
        waiters, but their outcome is not stored.
        """
        with self.cache_lock:
            if process_id is None:
                self.entries.clear()
                self._in_flight.clear()
                self._epoch += 1
            else:
                self.entries.pop(process_id, None)
                for key in [k for k in self._in_flight if k[1] == process_id]:
                    del self._in_flight[key]
                self._generations[process_id] = self._generations.get(process_id, 0) + 1

    def stats(self) -> CacheStats:
        with self.cache_lock:
            keys = list(self.entries.keys())
        return CacheStats(entries=keys, size=len(keys))

    def in_flight(self) -> List[str]:
        with self.cache_lock:
            return sorted({process_id for _, process_id in self._in_flight})

    def _generation(self, process_id: str) -> Tuple[int, int]:
        return self._epoch, self._generations.get(process_id, 0)

    async def resolve(self, process_id: str, fetch: Fetcher) -> Optional[CapabilityManifest]:
        """Return the cached outcome, fetching it at most once across concurrent callers

        Every caller waiting on the same fetch receives the same outcome. A
        fetch that raises DiscoveryTimeoutError resolves to None for all
        waiters but is not cached. Any other exception propagates to all
        waiters and is not cached either.
        """
        cached = self.get(process_id)
        if cached is not MISS:
            return cached

        key = (asyncio.get_running_loop(), process_id)
        with self.cache_lock:
            task = self._in_flight.get(key)
            if task is None:
                generation = self._generation(process_id)
                task = asyncio.ensure_future(self._populate(process_id, fetch, generation))
                self._in_flight[key] = task
                task.add_done_callback(lambda t, key=key: self._forget(key, t))
            else:
                logger.debug("Joining in-flight discovery for process %s", process_id)

        # Shielded so one cancelled waiter does not cancel the shared fetch
        return await asyncio.shield(task)

    def _forget(self, key: Tuple[asyncio.AbstractEventLoop, str], task: "asyncio.Future") -> None:
        with self.cache_lock:
            if self._in_flight.get(key) is task:
                del self._in_flight[key]

    async def _populate(
        self,
        process_id: str,
        fetch: Fetcher,
        generation: Tuple[int, int],
    ) -> Optional[CapabilityManifest]:
        try:
            manifest = await fetch(process_id)
        except DiscoveryTimeoutError as e:
            logger.warning("%s; not caching", e)
            return None

        entry = CacheEntry(process_id=process_id, manifest=manifest, fetched_at=time.time())
        with self.cache_lock:
            if self._generation(process_id) != generation:
                logger.debug("Cache for process %s was cleared during discovery; not caching", process_id)
                return manifest
            self.entries[process_id] = entry
        return manifest

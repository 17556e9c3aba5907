"""Process self-description discovery

Queries a process for its capability manifest with the reserved
`Action=Info` read. When the direct answer is not a manifest, recently
published responses of the process are scanned for one. Every failure
degrades to `None`; only a timeout surfaces, as DiscoveryTimeoutError, so
the cache can decline to store it.
"""

import asyncio
import logging
from typing import Any, Optional

from adp.config import AdpConfig
from adp.manifest import CapabilityManifest
from adp.message import Tag
from adp.schema_validation import parse_manifest
from adp.transport import Transport, TransportTimeoutError
from adp.discovery.cache import DiscoveryCache, DiscoveryTimeoutError


logger = logging.getLogger(__name__)

INFO_ACTION = "Info"
INFO_TAGS = (Tag("Action", INFO_ACTION),)


def manifest_from_response(response: Any) -> Optional[CapabilityManifest]:
    """Parse a manifest out of a read response

    Accepts a message dict carrying the manifest in `Data`, the manifest
    itself as a dict, or its JSON text.
    """
    if response is None:
        return None
    payload = response
    if isinstance(response, dict) and "Data" in response:
        payload = response["Data"]
    if isinstance(payload, (str, bytes, dict)):
        return parse_manifest(payload)
    return None


def _looks_like_manifest(payload: Any) -> bool:
    if isinstance(payload, dict):
        return "protocolVersion" in payload
    if isinstance(payload, (str, bytes)):
        text = payload.decode("utf-8", "replace") if isinstance(payload, bytes) else payload
        return '"protocolVersion"' in text
    return False


class DiscoveryClient:
    """Fetches manifests over a Transport and caches the outcome"""

    def __init__(
        self,
        transport: Transport,
        cache: Optional[DiscoveryCache] = None,
        config: Optional[AdpConfig] = None,
    ):
        self.transport = transport
        self.cache = cache if cache is not None else DiscoveryCache()
        self.config = config if config is not None else AdpConfig()

    async def discover(self, process_id: str) -> Optional[CapabilityManifest]:
        """Resolve the manifest for a process, issuing at most one fetch per uncached id"""
        return await self.cache.resolve(process_id, self.fetch)

    async def fetch(self, process_id: str) -> Optional[CapabilityManifest]:
        """Fetch without consulting the cache

        Raises:
            DiscoveryTimeoutError: If the fetch exceeds the discovery timeout
        """
        timeout = self.config.discovery_timeout
        try:
            return await asyncio.wait_for(self._fetch(process_id), timeout=timeout)
        except (asyncio.TimeoutError, TransportTimeoutError):
            raise DiscoveryTimeoutError(process_id, timeout)

    async def _fetch(self, process_id: str) -> Optional[CapabilityManifest]:
        manifest = None
        try:
            response = await self.transport.read(process_id, list(INFO_TAGS))
            manifest = manifest_from_response(response)
        except TransportTimeoutError:
            raise
        except Exception as e:
            logger.warning("Info query to process %s failed: %s", process_id, e)

        if manifest is None:
            manifest = await self._scan_recent(process_id)

        if manifest is None:
            logger.info("Process %s did not publish a capability manifest", process_id)
        else:
            logger.debug(
                "Discovered %d handlers for process %s", len(manifest.handlers), process_id
            )
        return manifest

    async def _scan_recent(self, process_id: str) -> Optional[CapabilityManifest]:
        """Look for a manifest among recently published responses"""
        try:
            payloads = await self.transport.recent_responses(process_id)
        except TransportTimeoutError:
            raise
        except Exception as e:
            logger.warning("Recent response lookup for process %s failed: %s", process_id, e)
            return None

        for payload in payloads:
            try:
                if not _looks_like_manifest(payload):
                    continue
                manifest = parse_manifest(payload)
            except Exception as e:
                logger.warning("Skipping unreadable recent response of process %s: %s", process_id, e)
                continue
            if manifest is not None:
                logger.debug("Found manifest for process %s in recent responses", process_id)
                return manifest
        return None

    def invalidate(self, process_id: Optional[str] = None) -> None:
        self.cache.clear(process_id)


async def discover_manifest(transport: Transport, process_id: str, config: Optional[AdpConfig] = None) -> Optional[CapabilityManifest]:
    """One-off uncached discovery; a timeout yields None"""
    client = DiscoveryClient(transport, DiscoveryCache(), config)
    try:
        return await client.fetch(process_id)
    except DiscoveryTimeoutError as e:
        logger.warning("%s", e)
        return None

"""Message transport primitives

The dispatch core only ever talks to a process through the two primitives
defined on `Transport`: `read` (a dry-run query, no state change) and
`send` (a signed message that may mutate state). `HttpTransport` implements
them over the AO compute unit (CU) and messenger unit (MU) HTTP APIs.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from adp.config import AdpConfig
from adp.message import Tag


logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 25

# Placeholder identity fields accepted by the CU for dry runs
DRY_RUN_OWNER = "1234"
DRY_RUN_ANCHOR = "0"


class TransportError(Exception):
    """Base transport error"""
    pass


class HttpError(TransportError):
    """HTTP request failed or returned an error status"""
    pass


class TransportTimeoutError(TransportError):
    """The request did not complete in time"""
    pass


class ProcessError(TransportError):
    """The process evaluated the message and reported an error"""
    def __init__(self, process_id: str, error: Any):
        super().__init__(f"Process {process_id} returned an error: {error}")
        self.process_id = process_id
        self.error = error


class Signer:
    """Identity able to sign a message for a process

    Key management is an external concern; implementations wrap a wallet and
    return the signed data item bytes.
    """

    def sign(self, process_id: str, tags: Sequence[Tag], data: Optional[str]) -> bytes:
        raise NotImplementedError("Signer.sign must be implemented by subclasses")


class Transport:
    """Interface for process communication

    Subclasses implement `read` and `send`. `recent_responses` is optional and
    returns recently published response payloads for out-of-band discovery.
    """

    async def read(self, process_id: str, tags: Sequence[Tag]) -> Any:
        raise NotImplementedError("Transport.read must be implemented by subclasses")

    async def send(self, identity: Any, process_id: str, tags: Sequence[Tag], data: Optional[str] = None) -> Any:
        raise NotImplementedError("Transport.send must be implemented by subclasses")

    async def recent_responses(self, process_id: str, limit: int = DEFAULT_RECENT_LIMIT) -> List[Any]:
        return []


def unwrap_result(process_id: str, result: Dict[str, Any]) -> Any:
    """Reduce a CU evaluation result to its meaningful output

    Raises:
        ProcessError: If the result carries an Error
    """
    error = result.get("Error")
    if error:
        raise ProcessError(process_id, error)

    output = result.get("Output")
    if isinstance(output, dict) and output.get("data"):
        data = output["data"]
        try:
            parsed = json.loads(data)
        except (TypeError, json.JSONDecodeError):
            return data
        if isinstance(parsed, dict) and "result" in parsed:
            return parsed["result"]
        return parsed

    messages = result.get("Messages") or []
    if messages:
        last = messages[-1]
        return last.get("Data", last) if isinstance(last, dict) else last

    return None


class HttpTransport(Transport):
    """Transport over the AO CU/MU HTTP APIs using httpx"""

    def __init__(self, config: Optional[AdpConfig] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config if config is not None else AdpConfig()
        self.client = client if client is not None else httpx.AsyncClient(timeout=self.config.dispatch_timeout)

    @property
    def cu_url(self) -> str:
        return self.config.cu_url.rstrip("/")

    @property
    def mu_url(self) -> str:
        return self.config.mu_url.rstrip("/")

    async def _request_json(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportTimeoutError(f"{method} {url} timed out: {e}")
        except httpx.HTTPError as e:
            raise HttpError(f"{method} {url} failed: {e}")

        if not response.is_success:
            raise HttpError(f"{method} {url} returned HTTP {response.status_code}")

        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise HttpError(f"{method} {url} returned invalid JSON: {e}")

    async def read(self, process_id: str, tags: Sequence[Tag]) -> Any:
        """Dry-run a message and return the last message the process emitted"""
        body = {
            "Id": DRY_RUN_OWNER,
            "Target": process_id,
            "Owner": DRY_RUN_OWNER,
            "Anchor": DRY_RUN_ANCHOR,
            "Data": DRY_RUN_OWNER,
            "Tags": [t.to_dict() for t in tags],
        }
        result = await self._request_json(
            "POST",
            f"{self.cu_url}/dry-run",
            params={"process-id": process_id},
            json=body,
        )
        if result.get("Error"):
            raise ProcessError(process_id, result["Error"])
        messages = result.get("Messages") or []
        return messages[-1] if messages else None

    async def send(self, identity: Any, process_id: str, tags: Sequence[Tag], data: Optional[str] = None) -> Any:
        """Sign and post a message, then fetch its evaluation result"""
        if not isinstance(identity, Signer):
            raise TransportError("Write operations require a Signer identity")

        data_item = identity.sign(process_id, list(tags), data)
        posted = await self._request_json(
            "POST",
            f"{self.mu_url}/",
            content=data_item,
            headers={"Content-Type": "application/octet-stream", "Accept": "application/json"},
        )
        message_id = posted.get("id") if isinstance(posted, dict) else None
        if not message_id:
            raise HttpError("Messenger unit did not return a message id")

        logger.debug("Posted message %s to process %s", message_id, process_id)

        result = await self._request_json(
            "GET",
            f"{self.cu_url}/result/{message_id}",
            params={"process-id": process_id},
        )
        return unwrap_result(process_id, result)

    async def recent_responses(self, process_id: str, limit: int = DEFAULT_RECENT_LIMIT) -> List[Any]:
        """Data payloads of recent messages emitted by the process, newest first"""
        results = await self._request_json(
            "GET",
            f"{self.cu_url}/results/{process_id}",
            params={"sort": "DESC", "limit": limit},
        )
        payloads = []
        for edge in results.get("edges", []):
            node = edge.get("node") or {}
            for message in reversed(node.get("Messages") or []):
                if isinstance(message, dict) and message.get("Data"):
                    payloads.append(message["Data"])
        return payloads

    async def aclose(self) -> None:
        await self.client.aclose()

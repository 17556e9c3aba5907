"""Free-text dispatch against self-describing processes

Pipeline per call: resolve manifest -> match handler -> extract and
validate parameters -> build tags -> classify read/write -> call the
transport -> wrap the outcome. Every failure comes back as a
`DispatchResult` with `success=False`; nothing raises past `execute`.
"""

import asyncio
import json
import logging
import random
import string
import time
from typing import Any, List, Optional, Sequence, Tuple
from dataclasses import replace

from adp.config import AdpConfig, set_verbose_logging
from adp.discovery import DiscoveryCache, DiscoveryClient
from adp.extraction import ParameterExtractor
from adp.manifest import CapabilityManifest, HandlerDescriptor, ParameterDescriptor
from adp.matcher import HandlerMatcher, MatchResult
from adp.message import Tag, build_message_tags
from adp.operation import WRITE, classify_operation
from adp.response import DispatchMethod, DispatchResult, ErrorCategory, shape_response
from adp.transport import TransportTimeoutError, Transport
from adp.validation import ParameterValidator


logger = logging.getLogger(__name__)

UNSUPPORTED_PROCESS_ERROR = "Process does not support the capability protocol or discovery failed"
NO_MATCH_ERROR = "Could not match request to any available handler"
VALIDATION_ERROR_PREFIX = "Parameter validation failed: "

EXAMPLE_VALUES = {
    "number": 100,
    "boolean": True,
    "address": "<process-or-wallet-id>",
    "json": {},
    "string": "value",
}


def new_session_id() -> str:
    """Identifier in the form req_<millis>_<random>"""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"req_{int(time.time() * 1000)}_{suffix}"


def _example_value(param: ParameterDescriptor) -> Any:
    if param.examples:
        return param.examples[0]
    return EXAMPLE_VALUES.get(param.type, "value")


def suggest_fixes(handler: HandlerDescriptor, missing: Sequence[str] = ()) -> List[str]:
    """Alternative phrasings a caller can retry with"""
    if not handler.parameters:
        return [f"Handler '{handler.action}' takes no parameters. Try: \"{handler.action}\""]

    fixes = []
    if missing:
        fixes.append(f"Include a value for: {', '.join(missing)}")

    direct = " ".join(f"{p.name}={_example_value(p)}" for p in handler.parameters)
    fixes.append(f"Direct format: \"{direct}\"")

    as_json = {p.name: _example_value(p) for p in handler.parameters}
    fixes.append(f"JSON format: {json.dumps(as_json, separators=(',', ':'))}")

    fixes.extend(f"Example: \"{example}\"" for example in handler.examples[:2])
    return fixes


class Dispatcher:
    """Translates free-text instructions into validated process messages

    The discovery cache is shared across calls; pass the same cache to
    several dispatchers to share discovery outcomes between them.
    """

    def __init__(
        self,
        transport: Transport,
        config: Optional[AdpConfig] = None,
        cache: Optional[DiscoveryCache] = None,
        matcher: Optional[HandlerMatcher] = None,
        extractor: Optional[ParameterExtractor] = None,
        validator: Optional[ParameterValidator] = None,
    ):
        self.transport = transport
        self.config = config if config is not None else AdpConfig()
        self.cache = cache if cache is not None else DiscoveryCache()
        self.discovery = DiscoveryClient(transport, self.cache, self.config)
        self.matcher = matcher if matcher is not None else HandlerMatcher(min_confidence=self.config.min_confidence)
        self.extractor = extractor if extractor is not None else ParameterExtractor()
        self.validator = validator if validator is not None else ParameterValidator()
        if self.config.verbose_logging:
            set_verbose_logging(True)

    async def execute(
        self,
        process_id: str,
        free_text: str,
        identity: Any = None,
        manifest: Optional[CapabilityManifest] = None,
    ) -> DispatchResult:
        """Run the full pipeline for one instruction

        Args:
            process_id: Target process
            free_text: Instruction such as "transfer 100 to alice"
            identity: Signer passed to the transport for write operations
            manifest: Preloaded manifest; discovery is skipped when given
        """
        session_id = new_session_id()
        start = time.monotonic()
        logger.debug("[%s] Dispatch to %s: %r", session_id, process_id, free_text)
        try:
            result = await self._execute(session_id, process_id, free_text, identity, manifest)
        except Exception as e:
            logger.exception("[%s] Unexpected dispatch failure", session_id)
            result = DispatchResult.failure(ErrorCategory.DISPATCH, f"Unexpected error during dispatch: {e}")
        logger.debug(
            "[%s] Finished in %.1fms success=%s",
            session_id, (time.monotonic() - start) * 1000, result.success,
        )
        return result

    async def _execute(
        self,
        session_id: str,
        process_id: str,
        free_text: str,
        identity: Any,
        manifest: Optional[CapabilityManifest],
    ) -> DispatchResult:
        if manifest is None:
            logger.debug("[%s] Resolving manifest", session_id)
            manifest = await self.discovery.discover(process_id)
        if manifest is None:
            logger.debug("[%s] No manifest for %s", session_id, process_id)
            return DispatchResult.failure(ErrorCategory.DISCOVERY, UNSUPPORTED_PROCESS_ERROR)

        match = self.matcher.match(manifest, free_text)
        if not match:
            logger.debug(
                "[%s] No handler matched (best confidence %.2f)", session_id, match.best_confidence
            )
            return DispatchResult.failure(
                ErrorCategory.MATCHING,
                NO_MATCH_ERROR,
                available_handlers=list(match.available_handlers),
                suggested_fixes=[
                    f"Available handlers: {', '.join(match.available_handlers) or 'none'}",
                    "Rephrase the request to name one of the available handlers",
                ],
            )
        handler = match.handler
        logger.debug(
            "[%s] Matched %s via %s (%.2f)", session_id, handler.action, match.method, match.confidence
        )

        values = self.extractor.extract(handler, free_text)
        match = replace(match, extracted_parameters=values)
        logger.debug("[%s] Extracted %s", session_id, values)

        validation = self.validator.validate(handler, values)
        for warning in validation.warnings:
            logger.debug("[%s] %s", session_id, warning)
        if not validation.valid:
            logger.debug("[%s] Validation failed: %s", session_id, validation.errors)
            return DispatchResult.failure(
                ErrorCategory.VALIDATION,
                VALIDATION_ERROR_PREFIX + "; ".join(validation.errors),
                handler_used=handler.action,
                confidence=match.confidence,
                parameters_used=values,
                validation_errors=validation.errors,
                suggested_fixes=suggest_fixes(handler, validation.missing_parameters()),
            )

        tags = build_message_tags(handler, values)
        logger.debug("[%s] Tags %s", session_id, [t.to_dict() for t in tags])

        return await self._call(session_id, process_id, identity, match, tags)

    async def _call(
        self,
        session_id: str,
        process_id: str,
        identity: Any,
        match: MatchResult,
        tags: List[Tag],
    ) -> DispatchResult:
        handler = match.handler
        if classify_operation(handler) == WRITE:
            method = DispatchMethod.SEND
            call = self.transport.send(identity, process_id, tags)
        else:
            method = DispatchMethod.READ
            call = self.transport.read(process_id, tags)
        logger.debug("[%s] Executing %s as %s", session_id, handler.action, method.value)

        timeout = self.config.dispatch_timeout
        try:
            response = await asyncio.wait_for(call, timeout=timeout)
        except (asyncio.TimeoutError, TransportTimeoutError):
            return self._dispatch_failure(match, method, f"Dispatch timed out after {timeout}s")
        except Exception as e:
            logger.debug("[%s] %s failed: %s", session_id, method.value, e)
            return self._dispatch_failure(match, method, f"Dispatch failed: {e}")

        return DispatchResult.ok(
            handler_used=handler.action,
            confidence=match.confidence,
            parameters_used=match.extracted_parameters,
            data=shape_response(response),
            method_used=method,
        )

    @staticmethod
    def _dispatch_failure(match: MatchResult, method: DispatchMethod, error: str) -> DispatchResult:
        return DispatchResult.failure(
            ErrorCategory.DISPATCH,
            error,
            handler_used=match.handler.action,
            confidence=match.confidence,
            parameters_used=match.extracted_parameters,
            method_used=method,
        )

    async def execute_many(
        self,
        requests: Sequence[Tuple[str, str]],
        identity: Any = None,
    ) -> List[DispatchResult]:
        """Dispatch (process_id, free_text) pairs concurrently, results in input order"""
        return list(await asyncio.gather(
            *(self.execute(process_id, text, identity) for process_id, text in requests)
        ))

"""JSON Schema validation for capability manifests

Validates a raw self-description payload against JSON Schema Draft-07
before building a CapabilityManifest. Parsing is a graceful-degradation
boundary: anything that is not a well-formed protocol 1.0 manifest is
treated as a legacy, non-describing process and yields None.
"""

import json
import logging
from typing import Any, Dict, Optional, Union

from jsonschema import Draft7Validator

from adp.manifest import CapabilityManifest, PARAMETER_TYPES, PROTOCOL_VERSION


logger = logging.getLogger(__name__)


class ManifestError(Exception):
    """Base manifest error"""
    pass


class ManifestParseError(ManifestError):
    """Payload is not valid JSON"""
    def __init__(self, details: str):
        super().__init__(f"Manifest is not valid JSON: {details}")
        self.details = details


class UnsupportedProtocolError(ManifestError):
    """Payload does not declare the supported protocol version"""
    def __init__(self, version: Any):
        super().__init__(f"Unsupported protocol version: expected '{PROTOCOL_VERSION}', got {version!r}")
        self.version = version


class ManifestSchemaError(ManifestError):
    """Payload violates the manifest schema"""
    def __init__(self, errors):
        details = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Manifest failed schema validation:\n{details}")
        self.errors = list(errors)


VALIDATION_SCHEMA = {
    "type": "object",
    "properties": {
        "pattern": {"type": "string"},
        "min": {"type": "number"},
        "max": {"type": "number"},
        "enum": {"type": "array", "items": {"type": "string"}},
    },
}

PARAMETER_SCHEMA = {
    "type": "object",
    "required": ["name", "required", "type"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "required": {"type": "boolean"},
        "type": {"enum": list(PARAMETER_TYPES)},
        "description": {"type": "string"},
        "examples": {"type": "array", "items": {"type": "string"}},
        "validation": VALIDATION_SCHEMA,
    },
}

HANDLER_SCHEMA = {
    "type": "object",
    "required": ["action"],
    "properties": {
        "action": {"type": "string", "minLength": 1},
        "pattern": {"type": "array", "items": {"type": "string"}},
        # Unknown categories are coerced to "custom", not rejected
        "category": {"type": "string"},
        "description": {"type": "string"},
        "examples": {"type": "array", "items": {"type": "string"}},
        "parameters": {"type": "array", "items": PARAMETER_SCHEMA},
        "version": {"type": "string"},
        "operation": {"enum": ["read", "write"]},
    },
}

MANIFEST_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["protocolVersion", "lastUpdated", "handlers"],
    "properties": {
        "protocolVersion": {"const": PROTOCOL_VERSION},
        "lastUpdated": {"type": "string"},
        "capabilities": {
            "type": "object",
            "properties": {
                "supportsExamples": {"type": "boolean"},
                "supportsHandlerRegistry": {"type": "boolean"},
                "supportsParameterValidation": {"type": "boolean"},
            },
        },
        "handlers": {"type": "array", "items": HANDLER_SCHEMA},
        "Name": {"type": "string"},
        "Ticker": {"type": "string"},
        "Description": {"type": "string"},
        "Owner": {"type": "string"},
        "Logo": {"type": "string"},
        "Denomination": {"type": "string"},
        "TotalSupply": {"type": "string"},
        "ProcessId": {"type": "string"},
    },
}


class ManifestSchemaValidator:
    """Manifest validator with a compiled Draft-07 schema"""

    def __init__(self, schema: Optional[Dict[str, Any]] = None):
        self.schema = schema if schema is not None else MANIFEST_SCHEMA
        Draft7Validator.check_schema(self.schema)
        self.validator = Draft7Validator(self.schema)

    def decode(self, raw: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
        """Decode a raw payload into a dict

        Raises:
            ManifestParseError: If the payload is not a JSON object
        """
        if isinstance(raw, dict):
            return raw
        if isinstance(raw, bytes):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ManifestParseError(str(e))
        if not isinstance(raw, str):
            raise ManifestParseError(f"unexpected payload type {type(raw).__name__}")
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ManifestParseError(str(e))
        except RecursionError:
            raise ManifestParseError("payload is nested too deeply")
        if not isinstance(data, dict):
            raise ManifestParseError("top-level value is not an object")
        return data

    def validate(self, data: Dict[str, Any]) -> None:
        """Validate a decoded payload

        Raises:
            UnsupportedProtocolError: If protocolVersion is missing or not "1.0"
            ManifestSchemaError: If the payload violates the schema
        """
        if data.get("protocolVersion") != PROTOCOL_VERSION:
            raise UnsupportedProtocolError(data.get("protocolVersion"))

        errors = [e.message for e in self.validator.iter_errors(data)]

        # A non-array handlers value is already reported by the schema
        handlers = data.get("handlers")
        if isinstance(handlers, list):
            seen = set()
            for handler in handlers:
                action = handler.get("action") if isinstance(handler, dict) else None
                if not isinstance(action, str):
                    continue
                if action in seen:
                    errors.append(f"duplicate handler action '{action}'")
                seen.add(action)

        if errors:
            raise ManifestSchemaError(errors)

    def parse(self, raw: Union[str, bytes, Dict[str, Any]]) -> CapabilityManifest:
        """Decode, validate and build a manifest

        Raises:
            ManifestError: If any step fails
        """
        data = self.decode(raw)
        self.validate(data)
        try:
            return CapabilityManifest.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise ManifestSchemaError([str(e)])


_default_validator: Optional[ManifestSchemaValidator] = None


def _get_validator() -> ManifestSchemaValidator:
    global _default_validator
    if _default_validator is None:
        _default_validator = ManifestSchemaValidator()
    return _default_validator


def parse_manifest(raw: Union[str, bytes, Dict[str, Any]]) -> Optional[CapabilityManifest]:
    """Parse a self-description payload, returning None for anything unsupported

    Never raises. Malformed JSON, schema violations and a missing or
    mismatched protocolVersion all mean "legacy process, no manifest".
    """
    try:
        return _get_validator().parse(raw)
    except UnsupportedProtocolError as e:
        logger.debug("Payload is not a protocol %s manifest: %s", PROTOCOL_VERSION, e)
        return None
    except ManifestError as e:
        logger.warning("Failed to parse Info response as a manifest: %s", e)
        return None


def serialize_manifest(manifest: CapabilityManifest) -> str:
    """Serialize a manifest to its wire form"""
    return manifest.to_json()

"""Capability manifest model

This module defines the self-description a process publishes in answer to
the reserved Info query: the manifest itself, its handler descriptors and
their parameter contracts.
"""

import json
from typing import List, Dict, Optional, Any
from dataclasses import dataclass, field


PROTOCOL_VERSION = "1.0"

PARAMETER_TYPES = ("string", "number", "boolean", "address", "json")
HANDLER_CATEGORIES = ("core", "utility", "custom")
OPERATIONS = ("read", "write")

DEFAULT_PATTERN = ("Action",)

# Display metadata keys as they appear on the wire, mapped to attribute names
DISPLAY_FIELDS = {
    "Name": "name",
    "Ticker": "ticker",
    "Description": "description",
    "Owner": "owner",
    "Logo": "logo",
    "Denomination": "denomination",
    "TotalSupply": "total_supply",
    "ProcessId": "process_id",
}


def normalize_category(category: Optional[str]) -> str:
    """Coerce unknown or missing categories to 'custom'"""
    if category in HANDLER_CATEGORIES:
        return category
    return "custom"


@dataclass(frozen=True)
class ParameterValidation:
    """Declared constraints for a parameter value"""
    pattern: Optional[str] = None
    min: Optional[float] = None
    max: Optional[float] = None
    enum: Optional[tuple] = None

    def is_empty(self) -> bool:
        return self.pattern is None and self.min is None and self.max is None and self.enum is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict"""
        result: Dict[str, Any] = {}
        if self.pattern is not None:
            result["pattern"] = self.pattern
        if self.min is not None:
            result["min"] = self.min
        if self.max is not None:
            result["max"] = self.max
        if self.enum is not None:
            result["enum"] = list(self.enum)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParameterValidation":
        """Parse from dict"""
        enum = data.get("enum")
        return cls(
            pattern=data.get("pattern"),
            min=data.get("min"),
            max=data.get("max"),
            enum=tuple(enum) if enum is not None else None,
        )


@dataclass(frozen=True)
class ParameterDescriptor:
    """One declared handler parameter

    The type drives both extraction from free text and coercion of the
    extracted value. Validation rules only apply to their own type.
    """
    name: str
    required: bool
    type: str
    description: Optional[str] = None
    examples: tuple = ()
    validation: Optional[ParameterValidation] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict"""
        result: Dict[str, Any] = {
            "name": self.name,
            "required": self.required,
            "type": self.type,
        }
        if self.description is not None:
            result["description"] = self.description
        if self.examples:
            result["examples"] = list(self.examples)
        if self.validation is not None:
            result["validation"] = self.validation.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParameterDescriptor":
        """Parse from dict"""
        validation = data.get("validation")
        return cls(
            name=data["name"],
            required=data["required"],
            type=data["type"],
            description=data.get("description"),
            examples=tuple(data.get("examples", ())),
            validation=ParameterValidation.from_dict(validation) if validation is not None else None,
        )


@dataclass(frozen=True)
class HandlerDescriptor:
    """One callable operation exposed by a process

    `pattern` lists the tag names the wire message must carry, in order.
    `operation` is an optional explicit read/write declaration.
    """
    action: str
    pattern: tuple = DEFAULT_PATTERN
    category: str = "custom"
    description: Optional[str] = None
    examples: tuple = ()
    parameters: tuple = ()
    version: Optional[str] = None
    operation: Optional[str] = None

    def get_parameter(self, name: str) -> Optional[ParameterDescriptor]:
        for param in self.parameters:
            if param.name == name:
                return param
        return None

    def required_parameters(self) -> List[ParameterDescriptor]:
        return [p for p in self.parameters if p.required]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict"""
        result: Dict[str, Any] = {
            "action": self.action,
            "pattern": list(self.pattern),
            "category": self.category,
        }
        if self.description is not None:
            result["description"] = self.description
        if self.examples:
            result["examples"] = list(self.examples)
        if self.parameters:
            result["parameters"] = [p.to_dict() for p in self.parameters]
        if self.version is not None:
            result["version"] = self.version
        if self.operation is not None:
            result["operation"] = self.operation
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HandlerDescriptor":
        """Parse from dict, applying pattern and category defaults"""
        pattern = data.get("pattern")
        return cls(
            action=data["action"],
            pattern=tuple(pattern) if pattern else DEFAULT_PATTERN,
            category=normalize_category(data.get("category")),
            description=data.get("description"),
            examples=tuple(data.get("examples", ())),
            parameters=tuple(ParameterDescriptor.from_dict(p) for p in data.get("parameters", ())),
            version=data.get("version"),
            operation=data.get("operation"),
        )


@dataclass(frozen=True)
class ManifestCapabilities:
    """Feature flags a process advertises"""
    supports_examples: bool = False
    supports_handler_registry: bool = False
    supports_parameter_validation: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "supportsExamples": self.supports_examples,
            "supportsHandlerRegistry": self.supports_handler_registry,
            "supportsParameterValidation": self.supports_parameter_validation,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManifestCapabilities":
        return cls(
            supports_examples=data.get("supportsExamples", False),
            supports_handler_registry=data.get("supportsHandlerRegistry", False),
            supports_parameter_validation=data.get("supportsParameterValidation", False),
        )


@dataclass(frozen=True)
class CapabilityManifest:
    """Self-description published by a process

    A manifest includes:
    - Protocol version (always "1.0")
    - Handlers in declaration order (order breaks matching ties)
    - Capability flags and last update timestamp
    - Optional display metadata (name, ticker, description, owner, ...)
    """
    handlers: tuple
    last_updated: str
    capabilities: ManifestCapabilities = field(default_factory=ManifestCapabilities)
    protocol_version: str = PROTOCOL_VERSION
    name: Optional[str] = None
    ticker: Optional[str] = None
    description: Optional[str] = None
    owner: Optional[str] = None
    logo: Optional[str] = None
    denomination: Optional[str] = None
    total_supply: Optional[str] = None
    process_id: Optional[str] = None

    def find_handler(self, action: str) -> Optional[HandlerDescriptor]:
        """Find a handler by exact, case-sensitive action name"""
        for handler in self.handlers:
            if handler.action == action:
                return handler
        return None

    def actions(self) -> List[str]:
        """Action names in declaration order"""
        return [h.action for h in self.handlers]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict"""
        result: Dict[str, Any] = {
            "protocolVersion": self.protocol_version,
            "lastUpdated": self.last_updated,
            "capabilities": self.capabilities.to_dict(),
            "handlers": [h.to_dict() for h in self.handlers],
        }
        for wire_key, attr in DISPLAY_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                result[wire_key] = value
        return result

    def to_json(self) -> str:
        """Serialize to JSON string"""
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CapabilityManifest":
        """Parse from dict

        No schema checks happen here; use `adp.schema_validation.parse_manifest`
        for untrusted input.
        """
        display = {attr: data.get(wire_key) for wire_key, attr in DISPLAY_FIELDS.items()}
        return cls(
            handlers=tuple(HandlerDescriptor.from_dict(h) for h in data["handlers"]),
            last_updated=data["lastUpdated"],
            capabilities=ManifestCapabilities.from_dict(data.get("capabilities") or {}),
            protocol_version=data["protocolVersion"],
            **display,
        )

    @classmethod
    def from_json(cls, json_str: str) -> "CapabilityManifest":
        """Parse from JSON string"""
        return cls.from_dict(json.loads(json_str))

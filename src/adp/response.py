"""Uniform dispatch result envelope"""

import json
from typing import Any, Dict, List, Optional
from dataclasses import dataclass
from enum import Enum


APPROACH = "ADP"


class ErrorCategory(Enum):
    """Pipeline stage a failed dispatch stopped at"""
    DISCOVERY = "discovery"
    MATCHING = "matching"
    VALIDATION = "validation"
    DISPATCH = "dispatch"


class DispatchMethod(Enum):
    """Primitive used for the final network call"""
    READ = "read"
    SEND = "send"


def shape_response(response: Any) -> Any:
    """Reduce a raw read/send response to its payload

    A message with a `Data` field is unwrapped. String payloads are decoded
    as JSON when possible and otherwise kept as text.
    """
    data = response
    if isinstance(response, dict) and "Data" in response:
        data = response["Data"]
    if isinstance(data, bytes):
        data = data.decode("utf-8", "replace")
    if isinstance(data, str):
        try:
            return json.loads(data)
        except json.JSONDecodeError:
            return data
    return data


@dataclass
class DispatchResult:
    """The only shape a dispatch ever returns

    Optional fields left as None are omitted from `to_dict()`.
    """
    success: bool
    approach: str = APPROACH
    handler_used: Optional[str] = None
    confidence: Optional[float] = None
    parameters_used: Optional[Dict[str, Any]] = None
    data: Any = None
    error: Optional[str] = None
    available_handlers: Optional[List[str]] = None
    method_used: Optional[DispatchMethod] = None
    validation_errors: Optional[List[str]] = None
    suggested_fixes: Optional[List[str]] = None
    error_category: Optional[ErrorCategory] = None

    @classmethod
    def ok(
        cls,
        handler_used: str,
        confidence: float,
        parameters_used: Dict[str, Any],
        data: Any,
        method_used: DispatchMethod,
    ) -> "DispatchResult":
        return cls(
            success=True,
            handler_used=handler_used,
            confidence=confidence,
            parameters_used=parameters_used,
            data=data,
            method_used=method_used,
        )

    @classmethod
    def failure(cls, category: ErrorCategory, error: str, **fields) -> "DispatchResult":
        return cls(success=False, error=error, error_category=category, **fields)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success, "approach": self.approach}
        optional = (
            ("handlerUsed", self.handler_used),
            ("confidence", self.confidence),
            ("parametersUsed", self.parameters_used),
            ("data", self.data),
            ("error", self.error),
            ("availableHandlers", self.available_handlers),
            ("methodUsed", self.method_used.value if self.method_used else None),
            ("validationErrors", self.validation_errors),
            ("suggestedFixes", self.suggested_fixes),
            ("errorCategory", self.error_category.value if self.error_category else None),
        )
        for key, value in optional:
            if value is not None:
                result[key] = value
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

"""Parameter validation against handler contracts

Validates extracted parameter values against the handler's declared
parameters. Every violation is collected; a request is either fully valid
or rejected with the complete list of errors.
"""

import math
import re
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

from adp.manifest import HandlerDescriptor, ParameterDescriptor


ADDRESS_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
MAX_ADDRESS_LENGTH = 43


class ParameterValidationError(Exception):
    """Base parameter validation error"""
    def __init__(self, parameter: str, message: str):
        super().__init__(message)
        self.parameter = parameter


class MissingParameterError(ParameterValidationError):
    """Required parameter missing"""
    def __init__(self, parameter: str, expected_type: str):
        super().__init__(
            parameter,
            f"Required parameter '{parameter}' is missing or could not be extracted (type: {expected_type})",
        )
        self.expected_type = expected_type


class ParameterTypeError(ParameterValidationError):
    """Value could not be coerced to the declared type"""
    def __init__(self, parameter: str, expected_type: str, actual: Any):
        super().__init__(
            parameter,
            f"Parameter '{parameter}' expected {expected_type} but got {actual!r} ({type(actual).__name__})",
        )
        self.expected_type = expected_type
        self.actual_value = actual


class PatternMismatchError(ParameterValidationError):
    """String value does not match the declared pattern"""
    def __init__(self, parameter: str, pattern: str, actual: Any):
        super().__init__(parameter, f"Parameter '{parameter}' does not match required pattern '{pattern}'")
        self.pattern = pattern
        self.actual_value = actual


class RangeViolationError(ParameterValidationError):
    """Numeric value outside the declared min/max"""
    def __init__(self, parameter: str, actual: Any, minimum: Optional[float], maximum: Optional[float]):
        if minimum is not None and actual < minimum:
            message = f"Parameter '{parameter}' must be at least {minimum}, got {actual}"
        else:
            message = f"Parameter '{parameter}' must be at most {maximum}, got {actual}"
        super().__init__(parameter, message)
        self.actual_value = actual
        self.minimum = minimum
        self.maximum = maximum


class EnumViolationError(ParameterValidationError):
    """Value not among the declared allowed values"""
    def __init__(self, parameter: str, allowed, actual: Any):
        super().__init__(parameter, f"Parameter '{parameter}' must be one of: {', '.join(allowed)}")
        self.allowed = list(allowed)
        self.actual_value = actual


class InvalidAddressError(ParameterValidationError):
    """Address value has the wrong shape"""
    def __init__(self, parameter: str, actual: str):
        super().__init__(
            parameter,
            f"Parameter '{parameter}' is not a valid address: use 1-{MAX_ADDRESS_LENGTH} letters, "
            f"numbers, underscores or dashes",
        )
        self.actual_value = actual


@dataclass
class ValidationResult:
    """Outcome of validating one set of parameter values"""
    violations: List[ParameterValidationError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.violations

    @property
    def errors(self) -> List[str]:
        return [str(v) for v in self.violations]

    def missing_parameters(self) -> List[str]:
        return [v.parameter for v in self.violations if isinstance(v, MissingParameterError)]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ParameterValidator:
    """Validates parameter values against a handler's declared parameters"""

    def validate(self, handler: HandlerDescriptor, values: Dict[str, Any]) -> ValidationResult:
        """Validate all declared constraints and collect every violation"""
        result = ValidationResult()

        for param in handler.parameters:
            value = values.get(param.name)
            if value is None:
                if param.required:
                    result.violations.append(MissingParameterError(param.name, param.type))
                continue
            result.violations.extend(self.validate_value(param, value))

        declared = {p.name for p in handler.parameters}
        for name in values:
            if name not in declared:
                result.warnings.append(
                    f"Unexpected parameter '{name}' not defined in handler '{handler.action}'"
                )

        return result

    def validate_value(self, param: ParameterDescriptor, value: Any) -> List[ParameterValidationError]:
        """Check one present value against its type and validation rules"""
        violations: List[ParameterValidationError] = []
        rules = param.validation

        if param.type == "number":
            if not _is_number(value) or not math.isfinite(value):
                return [ParameterTypeError(param.name, "number", value)]
            if rules is not None:
                if (rules.min is not None and value < rules.min) or (rules.max is not None and value > rules.max):
                    violations.append(RangeViolationError(param.name, value, rules.min, rules.max))

        elif param.type == "boolean":
            if not isinstance(value, bool):
                return [ParameterTypeError(param.name, "boolean", value)]

        elif param.type == "address":
            if not isinstance(value, str):
                return [ParameterTypeError(param.name, "address", value)]
            if len(value) > MAX_ADDRESS_LENGTH or not ADDRESS_PATTERN.match(value):
                violations.append(InvalidAddressError(param.name, value))

        elif param.type == "string":
            if not isinstance(value, str) or not value.strip():
                return [ParameterTypeError(param.name, "non-empty string", value)]

        elif param.type == "json":
            if not isinstance(value, (dict, list)):
                return [ParameterTypeError(param.name, "json", value)]

        if rules is not None and param.type in ("string", "address"):
            if rules.pattern is not None and isinstance(value, str):
                try:
                    matched = re.search(rules.pattern, value) is not None
                except re.error:
                    matched = False
                if not matched:
                    violations.append(PatternMismatchError(param.name, rules.pattern, value))
            if rules.enum is not None and str(value) not in rules.enum:
                violations.append(EnumViolationError(param.name, rules.enum, value))

        return violations


def validate_parameters(handler: HandlerDescriptor, values: Dict[str, Any]) -> ValidationResult:
    """Validate values with a default ParameterValidator"""
    return ParameterValidator().validate(handler, values)

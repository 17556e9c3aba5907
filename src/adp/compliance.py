"""Compliance audit for raw self-description payloads

Unlike `parse_manifest`, which only answers "usable or not", the audit
reports every problem it finds so a process author can fix them. It is a
diagnostic and plays no part in dispatch.
"""

from typing import Any, Dict, List
from dataclasses import dataclass, field

from adp.manifest import HANDLER_CATEGORIES, PARAMETER_TYPES, PROTOCOL_VERSION


REQUIRED_HANDLERS = ("Info",)
RECOMMENDED_HANDLERS = ("Ping",)
CAPABILITY_FLAGS = ("supportsHandlerRegistry", "supportsParameterValidation", "supportsExamples")

CHECK_NAMES = (
    "has_protocol_version",
    "has_valid_version",
    "has_handlers",
    "has_required_handlers",
    "has_valid_handler_structure",
    "has_capabilities",
    "has_complete_metadata",
)


@dataclass
class ComplianceReport:
    """Outcome of auditing one payload"""
    checks: Dict[str, bool] = field(default_factory=lambda: {name: False for name in CHECK_NAMES})
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def score(self) -> int:
        """Percentage of checks passed, 0-100"""
        return round(100 * sum(self.checks.values()) / len(self.checks))

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checks": dict(self.checks),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "score": self.score,
            "isValid": self.is_valid,
        }


def _check_parameters(parameters: Any, prefix: str, report: ComplianceReport) -> bool:
    if not isinstance(parameters, list):
        report.errors.append(f"{prefix}: parameters must be an array")
        return False

    ok = True
    for index, param in enumerate(parameters):
        if not isinstance(param, dict):
            report.errors.append(f"{prefix}: parameter {index + 1} must be an object")
            ok = False
            continue
        name = param.get("name") or f"parameter {index + 1}"
        where = f"{prefix} parameter '{name}'"

        if not param.get("name"):
            report.errors.append(f"{where}: missing name")
            ok = False
        ptype = param.get("type")
        if ptype not in PARAMETER_TYPES:
            report.errors.append(
                f"{where}: invalid type {ptype!r}, expected one of: {', '.join(PARAMETER_TYPES)}"
            )
            ok = False
        if not isinstance(param.get("required"), bool):
            report.errors.append(f"{where}: 'required' must be a boolean")
            ok = False
        if not param.get("description"):
            report.warnings.append(f"{where}: missing description")

        rules = param.get("validation")
        if isinstance(rules, dict):
            if "pattern" in rules and ptype not in ("string", "address"):
                report.warnings.append(f"{where}: pattern validation only applies to string parameters")
            if ("min" in rules or "max" in rules) and ptype != "number":
                report.warnings.append(f"{where}: min/max validation only applies to number parameters")
            if "enum" in rules and ptype not in ("string", "address"):
                report.warnings.append(f"{where}: enum validation only applies to string parameters")
    return ok


def _check_handlers(handlers: List[Any], report: ComplianceReport) -> bool:
    ok = True
    seen = set()
    for index, handler in enumerate(handlers):
        if not isinstance(handler, dict):
            report.errors.append(f"Handler {index + 1}: must be an object")
            ok = False
            continue
        action = handler.get("action")
        prefix = f"Handler {index + 1} ({action or 'unnamed'})"

        if not isinstance(action, str) or not action:
            report.errors.append(f"{prefix}: missing action")
            ok = False
        elif action in seen:
            report.errors.append(f"{prefix}: duplicate action")
            ok = False
        else:
            seen.add(action)

        if "pattern" not in handler:
            report.warnings.append(f"{prefix}: missing pattern, defaults to [\"Action\"]")
        elif not isinstance(handler["pattern"], list) or not handler["pattern"]:
            report.errors.append(f"{prefix}: pattern must be a non-empty array")
            ok = False

        if not handler.get("description"):
            report.warnings.append(f"{prefix}: missing description")

        category = handler.get("category")
        if not category:
            report.warnings.append(f"{prefix}: missing category")
        elif category not in HANDLER_CATEGORIES:
            report.warnings.append(f"{prefix}: unknown category {category!r}, treated as custom")

        if "parameters" in handler and not _check_parameters(handler["parameters"], prefix, report):
            ok = False
    return ok


def check_compliance(payload: Dict[str, Any]) -> ComplianceReport:
    """Audit a decoded self-description payload"""
    report = ComplianceReport()
    if not isinstance(payload, dict):
        report.errors.append("Payload must be a JSON object")
        return report

    version = payload.get("protocolVersion")
    if version:
        report.checks["has_protocol_version"] = True
        if version == PROTOCOL_VERSION:
            report.checks["has_valid_version"] = True
        else:
            report.errors.append(
                f"Invalid protocol version: expected \"{PROTOCOL_VERSION}\", got \"{version}\""
            )
    else:
        report.errors.append("Missing protocolVersion field")

    handlers = payload.get("handlers")
    if isinstance(handlers, list):
        report.checks["has_handlers"] = True
        actions = [h.get("action") for h in handlers if isinstance(h, dict)]

        missing = [a for a in REQUIRED_HANDLERS if a not in actions]
        if missing:
            report.errors.append(f"Missing required handlers: {', '.join(missing)}")
        else:
            report.checks["has_required_handlers"] = True

        missing = [a for a in RECOMMENDED_HANDLERS if a not in actions]
        if missing:
            report.warnings.append(f"Missing recommended handlers: {', '.join(missing)}")

        if _check_handlers(handlers, report):
            report.checks["has_valid_handler_structure"] = True
    else:
        report.errors.append("Missing or invalid handlers array")

    capabilities = payload.get("capabilities")
    if isinstance(capabilities, dict):
        report.checks["has_capabilities"] = True
        if all(capabilities.get(flag) for flag in CAPABILITY_FLAGS):
            report.checks["has_complete_metadata"] = True
        else:
            report.warnings.append("Incomplete capabilities metadata")
    else:
        report.warnings.append("Missing capabilities object")

    return report

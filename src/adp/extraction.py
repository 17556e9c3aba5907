"""Parameter extraction from free text

Pulls typed parameter values out of a free-text instruction for a matched
handler. Extraction runs in passes so that a token bound to one parameter is
never reused for another:

1. Direct forms: an embedded JSON object, `Name=value` or `Name: value`
2. Name anchors: the parameter name followed by a value ("quantity 100")
3. Type anchors: address shapes and connectives ("to alice", "for bob"),
   boolean keywords, quoted spans, enum values, JSON substrings
4. Positional numbers: remaining numeric tokens bound in declaration order
5. Remaining literal span for required string parameters

Extracted values are coerced to their declared type where possible. A value
that cannot be coerced is returned raw so validation can report it.
"""

import json
import math
import re
from typing import Any, Dict, List, Optional, Tuple

from adp.manifest import HandlerDescriptor, ParameterDescriptor


# Digit groups ("1,000") are one token; a bare "1,2" stays two
NUMBER_RE = re.compile(r"(?<![\w.])-?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?(?!\w)(?!\.\d)")
INTEGER_RE = re.compile(r"^-?\d+$")
ADDRESS_SHAPE_RE = re.compile(r"(?<![\w-])[A-Za-z0-9_-]{43}(?![\w-])")
WORD_RE = re.compile(r"[A-Za-z0-9_-]+")
QUOTED_RE = re.compile(r"\"((?:[^\"\\]|\\.)*)\"|'((?:[^'\\]|\\.)*)'")
EQUALS_PAIR_RE = re.compile(r"([A-Za-z_][\w-]*)\s*=\s*(\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*'|[^\s,]+)")
COLON_PAIR_RE = re.compile(r"([A-Za-z_][\w-]*)\s*:\s*(\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*'|[^\s,]+)")

TRUE_WORDS = ("true", "yes", "on", "1")
FALSE_WORDS = ("false", "no", "off", "0")

# Numeric-like names for string parameters ("Quantity" declared as a string)
QUANTITY_NAMES = ("quantity", "amount", "value", "count", "qty")

# Connectives that introduce an address, keyed by the role implied by the
# parameter name
ADDRESS_ROLE_ANCHORS = {
    "from": ("from",),
    "sender": ("from",),
    "source": ("from",),
    "owner": ("owner", "of", "for"),
}
DEFAULT_ADDRESS_ANCHORS = ("to", "for", "recipient", "target", "of", "address")

STOP_WORDS = frozenset((
    "a", "an", "the", "my", "me", "i", "it", "its", "this", "that", "these", "those",
    "to", "for", "of", "on", "in", "at", "by", "with", "from", "and", "or", "is", "are",
    "be", "please", "some", "any", "our", "your", "us", "we", "you", "do", "does",
    "can", "could", "would", "should", "will", "what", "how", "much", "many",
    "tokens", "token", "units", "unit",
))


def coerce_value(value: Any, param_type: str) -> Any:
    """Coerce a raw value to a declared parameter type

    Returns the value unchanged when it cannot be coerced.
    """
    if value is None:
        return None

    if param_type == "number":
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value
        if isinstance(value, str):
            text = value.strip()
            if INTEGER_RE.match(text):
                return int(text)
            try:
                number = float(text)
            except ValueError:
                return value
            return number if math.isfinite(number) else value
        return value

    if param_type == "boolean":
        if isinstance(value, bool):
            return value
        lowered = str(value).strip().lower()
        if lowered in TRUE_WORDS:
            return True
        if lowered in FALSE_WORDS:
            return False
        return value

    if param_type == "address":
        return value.strip() if isinstance(value, str) else value

    if param_type == "json":
        if isinstance(value, (dict, list)):
            return value
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except json.JSONDecodeError:
                return value
            if isinstance(parsed, (dict, list)):
                return parsed
        return value

    if param_type == "string":
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (dict, list)):
            return json.dumps(value, separators=(",", ":"))
        return str(value)

    return value


def find_balanced_json(text: str, start: int = 0) -> Optional[Tuple[int, int]]:
    """Find the span of the first balanced JSON object or array at or after start"""
    opening = None
    for i in range(start, len(text)):
        if text[i] in "{[":
            opening = i
            break
    if opening is None:
        return None

    stack = []
    in_string = False
    escape_next = False
    for i in range(opening, len(text)):
        char = text[i]
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char in "{[":
            stack.append("}" if char == "{" else "]")
        elif char in "}]":
            if not stack or stack.pop() != char:
                return None
            if not stack:
                return opening, i + 1
    return None


def _number_text(token: str) -> str:
    """Drop digit-group separators from a numeric token"""
    return token.replace(",", "")


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def parse_direct_value(value: str) -> Any:
    """Parse a direct-format value: quoted string, boolean, number or bare text"""
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if INTEGER_RE.match(value):
        return int(value)
    try:
        number = float(value)
    except ValueError:
        return value
    return number if math.isfinite(number) else value


def parse_direct_parameters(text: str) -> Dict[str, Any]:
    """Parse explicit `Name=value`, `Name: value` or JSON object parameters

    Returns an empty dict if the text has no direct parameters.
    """
    span = find_balanced_json(text)
    if span is not None:
        try:
            parsed = json.loads(text[span[0]:span[1]])
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            return parsed

    result = {m.group(1): parse_direct_value(m.group(2)) for m in EQUALS_PAIR_RE.finditer(text)}
    if result:
        return result
    return {m.group(1): parse_direct_value(m.group(2)) for m in COLON_PAIR_RE.finditer(text)}


def detect_parameter_format(text: str) -> str:
    """Classify how parameters are expressed: 'json', 'direct' or 'natural'"""
    stripped = text.strip()
    if stripped.startswith("{") and stripped.endswith("}"):
        return "json"
    span = find_balanced_json(text)
    if span is not None:
        try:
            if isinstance(json.loads(text[span[0]:span[1]]), dict):
                return "json"
        except json.JSONDecodeError:
            pass
    if EQUALS_PAIR_RE.search(text) or COLON_PAIR_RE.search(text):
        return "direct"
    return "natural"


class _TextScan:
    """Free text with a mask of spans already bound to a parameter"""

    def __init__(self, text: str):
        self.text = text
        self.masked = text

    def consume(self, start: int, end: int) -> None:
        self.masked = self.masked[:start] + " " * (end - start) + self.masked[end:]

    def search(self, pattern, flags=re.IGNORECASE):
        """Yield matches against the unbound part of the text"""
        if isinstance(pattern, str):
            pattern = re.compile(pattern, flags)
        return pattern.finditer(self.masked)


class ParameterExtractor:
    """Extracts parameter values for a handler from free text"""

    def extract(self, handler: HandlerDescriptor, text: str) -> Dict[str, Any]:
        """Extract and coerce values for the handler's declared parameters

        Only parameters that could be bound appear in the result.
        """
        if not handler.parameters:
            return {}

        scan = _TextScan(text)
        values: Dict[str, Any] = {}

        self._bind_direct(handler, scan, values)

        for param in handler.parameters:
            if param.name not in values:
                self._bind_name_anchor(param, scan, values)

        for param in handler.parameters:
            if param.name in values:
                continue
            if param.type == "address":
                self._bind_address(param, scan, values)
            elif param.type == "boolean":
                self._bind_boolean(param, scan, values)
            elif param.type == "json":
                self._bind_json(param, scan, values)
            elif param.type == "string" and not self._is_numeric_like(param):
                self._bind_string(param, scan, values)

        self._bind_numbers(handler, scan, values)

        for param in handler.parameters:
            if param.name not in values and param.type == "string" and param.required:
                self._bind_remaining_span(handler, param, scan, values)

        return values

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def _bind_direct(self, handler: HandlerDescriptor, scan: _TextScan, values: Dict[str, Any]) -> None:
        by_name = {p.name.lower(): p for p in handler.parameters}

        span = find_balanced_json(scan.text)
        if span is not None:
            try:
                parsed = json.loads(scan.text[span[0]:span[1]])
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, dict) and any(str(k).lower() in by_name for k in parsed):
                for key, raw in parsed.items():
                    param = by_name.get(str(key).lower())
                    if param is not None:
                        values[param.name] = coerce_value(raw, param.type)
                scan.consume(*span)
                return

        for pattern in (EQUALS_PAIR_RE, COLON_PAIR_RE):
            for match in pattern.finditer(scan.masked):
                param = by_name.get(match.group(1).lower())
                if param is None or param.name in values:
                    continue
                values[param.name] = coerce_value(parse_direct_value(match.group(2)), param.type)
                scan.consume(match.start(), match.end())

    def _bind_name_anchor(self, param: ParameterDescriptor, scan: _TextScan, values: Dict[str, Any]) -> None:
        # Single-letter names collide with ordinary words ("a")
        if len(param.name) < 2:
            return

        value_pattern = {
            "number": NUMBER_RE.pattern,
            "boolean": r"(?:true|false|yes|no|on|off)\b",
            "address": r"[A-Za-z0-9_-]+",
            "json": None,
            "string": r"\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*'|[^\s,]+",
        }.get(param.type)
        if value_pattern is None:
            return
        if param.type == "string" and self._is_numeric_like(param):
            value_pattern = NUMBER_RE.pattern

        # Word connectives are whole words: "tom" is a value, not "to" + "m"
        pattern = rf"\b{re.escape(param.name)}\b(?:\s*[=:]\s*|\s+(?:is|to|of)\s+|\s+)({value_pattern})"
        for match in scan.search(pattern):
            raw = _unquote(match.group(1))
            if value_pattern == NUMBER_RE.pattern:
                raw = _number_text(raw)
            if param.type in ("address", "string") and raw.lower() in STOP_WORDS:
                continue
            values[param.name] = coerce_value(raw, param.type)
            scan.consume(match.start(), match.end())
            return

    def _bind_address(self, param: ParameterDescriptor, scan: _TextScan, values: Dict[str, Any]) -> None:
        for match in scan.search(ADDRESS_SHAPE_RE, 0):
            values[param.name] = match.group(0)
            scan.consume(match.start(), match.end())
            return

        anchors = ADDRESS_ROLE_ANCHORS.get(param.name.lower(), DEFAULT_ADDRESS_ANCHORS)
        pattern = rf"\b(?:{'|'.join(anchors)})\s+(?:address\s+)?([A-Za-z0-9_-]+)"
        for match in scan.search(pattern):
            candidate = match.group(1)
            if candidate.lower() in STOP_WORDS or NUMBER_RE.fullmatch(candidate):
                continue
            values[param.name] = candidate
            scan.consume(match.start(1), match.end(1))
            return

    def _bind_boolean(self, param: ParameterDescriptor, scan: _TextScan, values: Dict[str, Any]) -> None:
        for match in scan.search(r"\b(true|false)\b"):
            values[param.name] = match.group(1).lower() == "true"
            scan.consume(match.start(), match.end())
            return

    def _bind_json(self, param: ParameterDescriptor, scan: _TextScan, values: Dict[str, Any]) -> None:
        span = find_balanced_json(scan.masked)
        if span is None:
            return
        raw = scan.text[span[0]:span[1]]
        values[param.name] = coerce_value(raw, "json")
        scan.consume(*span)

    def _bind_string(self, param: ParameterDescriptor, scan: _TextScan, values: Dict[str, Any]) -> None:
        rules = param.validation

        if rules is not None and rules.enum:
            for allowed in rules.enum:
                for match in scan.search(rf"(?<![\w-]){re.escape(allowed)}(?![\w-])"):
                    values[param.name] = allowed
                    scan.consume(match.start(), match.end())
                    return

        for match in scan.search(QUOTED_RE, 0):
            values[param.name] = match.group(1) if match.group(1) is not None else match.group(2)
            scan.consume(match.start(), match.end())
            return

        if rules is not None and rules.pattern:
            try:
                rule = re.compile(rules.pattern)
            except re.error:
                return
            for match in scan.search(WORD_RE, 0):
                if rule.fullmatch(match.group(0)):
                    values[param.name] = match.group(0)
                    scan.consume(match.start(), match.end())
                    return

    def _bind_numbers(self, handler: HandlerDescriptor, scan: _TextScan, values: Dict[str, Any]) -> None:
        """Bind remaining numeric tokens to unbound numeric parameters in declaration order"""
        pending = [
            p for p in handler.parameters
            if p.name not in values and (p.type == "number" or (p.type == "string" and self._is_numeric_like(p)))
        ]
        if not pending:
            return

        tokens = list(scan.search(NUMBER_RE, 0))
        for param, match in zip(pending, tokens):
            values[param.name] = coerce_value(_number_text(match.group(0)), param.type)
            scan.consume(match.start(), match.end())

    def _bind_remaining_span(
        self,
        handler: HandlerDescriptor,
        param: ParameterDescriptor,
        scan: _TextScan,
        values: Dict[str, Any],
    ) -> None:
        action = handler.action.lower()
        words = [w for w in scan.masked.split() if w.lower() != action]
        remaining = " ".join(words).strip(" ,.;")
        if remaining:
            values[param.name] = remaining

    @staticmethod
    def _is_numeric_like(param: ParameterDescriptor) -> bool:
        if param.type != "string":
            return param.type == "number"
        if param.name.lower() in QUANTITY_NAMES:
            return True
        rules = param.validation
        if rules is not None and rules.pattern:
            try:
                return re.fullmatch(rules.pattern, "100") is not None
            except re.error:
                return False
        return False


def extract_parameters(handler: HandlerDescriptor, text: str) -> Dict[str, Any]:
    """Extract values with a default ParameterExtractor"""
    return ParameterExtractor().extract(handler, text)

"""Natural-language handler matching

Ranks a manifest's handlers against a free-text instruction. Each strategy
proposes (handler, confidence) candidates independently; a single reducer
picks the highest confidence and breaks ties by handler declaration order.
"""

import re
from typing import Any, Dict, List, Optional, Sequence
from dataclasses import dataclass, field

from adp.manifest import CapabilityManifest, HandlerDescriptor


DEFAULT_MIN_CONFIDENCE = 0.3

EXACT_ACTION_CONFIDENCE = 0.95
DOMAIN_PATTERN_CONFIDENCE = 0.85
DOMAIN_PATTERN_VERB_CONFIDENCE = 0.9
SYNONYM_CONFIDENCE = 0.6
LEXICAL_FLOOR = 0.3
LEXICAL_SPAN = 0.5

TOKEN_RE = re.compile(r"[a-z0-9_]+(?:[-'][a-z0-9_]+)*")
NUMBER = r"-?\d+(?:\.\d+)?"

ACTION_SYNONYMS = {
    "add": ("plus", "sum", "total", "combine", "addition", "+"),
    "balance": ("check", "show", "view", "holdings"),
    "burn": ("destroy", "remove"),
    "divide": ("division", "divided", "÷"),
    "info": ("details", "information", "about"),
    "mint": ("create", "generate", "issue"),
    "multiply": ("times", "multiplication", "multiplied", "*", "×"),
    "subtract": ("minus", "subtraction", "take away", "difference"),
    "transfer": ("send", "give", "pay", "move"),
}

# Operator or connective joining two operands, per arithmetic action
ARITHMETIC_OPERATORS = {
    "add": (r"\+", r"plus", r"and", r"added\s+to"),
    "subtract": (r"-", r"minus", r"from"),
    "multiply": (r"\*", r"x", r"×", r"times", r"by"),
    "divide": (r"/", r"÷", r"divided\s+by", r"by", r"over"),
}
BINARY_CONNECTIVES = (r"\+", r"-", r"\*", r"/", r"x", r"×", r"÷", r"and", r"plus", r"minus",
                      r"times", r"by", r"from", r"with", r"over", r"added\s+to", r"divided\s+by")

QUANTITY_PARAMETER_NAMES = ("quantity", "amount", "value", "qty")

STOP_WORDS = frozenset((
    "a", "an", "the", "my", "me", "i", "it", "its", "this", "that", "to", "for", "of",
    "on", "in", "at", "by", "with", "from", "and", "or", "is", "are", "be", "please",
    "do", "does", "can", "could", "would", "what", "how", "some", "any", "your", "our",
    "get", "send", "message", "request",
))


def tokenize(text: str) -> List[str]:
    return TOKEN_RE.findall(text.lower())


def content_tokens(text: str) -> List[str]:
    return [t for t in tokenize(text) if t not in STOP_WORDS]


def _contains_phrase(text_lower: str, phrase: str) -> bool:
    """Word match for alphanumeric phrases, substring match for symbols"""
    if re.fullmatch(r"[\w\s-]+", phrase):
        return re.search(rf"(?<![\w-]){re.escape(phrase)}(?![\w-])", text_lower) is not None
    return phrase in text_lower


@dataclass(frozen=True)
class Candidate:
    """One strategy's proposal for a handler"""
    handler: HandlerDescriptor
    confidence: float
    method: str


@dataclass(frozen=True)
class MatchResult:
    """Best handler for a request"""
    handler: HandlerDescriptor
    confidence: float
    method: str
    extracted_parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NoMatch:
    """No handler cleared the acceptance floor"""
    available_handlers: List[str]
    best_confidence: float = 0.0

    def __bool__(self) -> bool:
        return False


class MatchStrategy:
    """Base class for matching strategies

    Subclasses return zero or more candidates for a manifest and request.
    """

    name = "strategy"

    def candidates(self, manifest: CapabilityManifest, text: str) -> List[Candidate]:
        raise NotImplementedError("MatchStrategy.candidates must be implemented by subclasses")


class ExactActionStrategy(MatchStrategy):
    """Request names the handler action as a word (case-insensitive)"""

    name = "exact_action"

    def candidates(self, manifest: CapabilityManifest, text: str) -> List[Candidate]:
        text_lower = text.lower()
        return [
            Candidate(handler, EXACT_ACTION_CONFIDENCE, self.name)
            for handler in manifest.handlers
            if _contains_phrase(text_lower, handler.action.lower())
        ]


class DomainPatternStrategy(MatchStrategy):
    """Request has the structural shape of a handler's parameters

    - Arithmetic shape: a handler with two or more number parameters and a
      request of two numeric operands joined by an operator or connective.
    - Transfer shape: a handler with an address parameter and a quantity
      parameter and a request of a quantity followed by "to <recipient>".

    Confidence is raised when the operator or verb belongs to the action.
    """

    name = "domain_pattern"

    def candidates(self, manifest: CapabilityManifest, text: str) -> List[Candidate]:
        text_lower = text.lower()
        results = []
        for handler in manifest.handlers:
            confidence = self._arithmetic_confidence(handler, text_lower)
            if confidence is None:
                confidence = self._transfer_confidence(handler, text_lower)
            if confidence is not None:
                results.append(Candidate(handler, confidence, self.name))
        return results

    @staticmethod
    def _binary_pattern(connectives: Sequence[str]) -> str:
        return rf"{NUMBER}\s*(?:{'|'.join(connectives)})\s*{NUMBER}"

    def _arithmetic_confidence(self, handler: HandlerDescriptor, text_lower: str) -> Optional[float]:
        numeric = [p for p in handler.parameters if p.type == "number"]
        if len(numeric) < 2:
            return None
        if not re.search(self._binary_pattern(BINARY_CONNECTIVES), text_lower):
            return None
        operators = ARITHMETIC_OPERATORS.get(handler.action.lower())
        if operators and re.search(self._binary_pattern(operators), text_lower):
            return DOMAIN_PATTERN_VERB_CONFIDENCE
        return DOMAIN_PATTERN_CONFIDENCE

    def _transfer_confidence(self, handler: HandlerDescriptor, text_lower: str) -> Optional[float]:
        has_address = any(p.type == "address" for p in handler.parameters)
        has_quantity = any(
            p.type == "number" or p.name.lower() in QUANTITY_PARAMETER_NAMES
            for p in handler.parameters
            if p.type != "address"
        )
        if not (has_address and has_quantity):
            return None
        if not re.search(rf"{NUMBER}\b.*?\bto\s+[a-z0-9_-]+", text_lower):
            return None
        verbs = (handler.action.lower(),) + ACTION_SYNONYMS.get(handler.action.lower(), ())
        if any(_contains_phrase(text_lower, v) for v in verbs):
            return DOMAIN_PATTERN_VERB_CONFIDENCE
        return DOMAIN_PATTERN_CONFIDENCE


class SynonymStrategy(MatchStrategy):
    """Request uses a known synonym of the handler action"""

    name = "synonym"

    def __init__(self, synonyms: Optional[Dict[str, Sequence[str]]] = None):
        self.synonyms = synonyms if synonyms is not None else ACTION_SYNONYMS

    def candidates(self, manifest: CapabilityManifest, text: str) -> List[Candidate]:
        text_lower = text.lower()
        results = []
        for handler in manifest.handlers:
            for synonym in self.synonyms.get(handler.action.lower(), ()):
                if _contains_phrase(text_lower, synonym):
                    results.append(Candidate(handler, SYNONYM_CONFIDENCE, self.name))
                    break
        return results


class LexicalOverlapStrategy(MatchStrategy):
    """Token overlap between the request and a handler's description and examples

    confidence = 0.3 + 0.5 * (shared content tokens / request content tokens)
    """

    name = "lexical_overlap"

    def candidates(self, manifest: CapabilityManifest, text: str) -> List[Candidate]:
        request_tokens = set(content_tokens(text))
        if not request_tokens:
            return []

        results = []
        for handler in manifest.handlers:
            corpus = " ".join([handler.description or ""] + list(handler.examples))
            handler_tokens = set(content_tokens(corpus))
            overlap = request_tokens & handler_tokens
            if not overlap:
                continue
            ratio = len(overlap) / len(request_tokens)
            results.append(Candidate(handler, LEXICAL_FLOOR + LEXICAL_SPAN * ratio, self.name))
        return results


def default_strategies() -> List[MatchStrategy]:
    return [
        ExactActionStrategy(),
        DomainPatternStrategy(),
        SynonymStrategy(),
        LexicalOverlapStrategy(),
    ]


def select_best(manifest: CapabilityManifest, candidates: Sequence[Candidate]) -> Optional[Candidate]:
    """Pick the highest-confidence candidate; earlier-declared handlers win ties

    Candidates from earlier strategies win ties for the same handler.
    """
    order = {handler.action: index for index, handler in enumerate(manifest.handlers)}
    best: Optional[Candidate] = None
    for candidate in candidates:
        if best is None:
            best = candidate
            continue
        if candidate.confidence > best.confidence:
            best = candidate
        elif candidate.confidence == best.confidence and order[candidate.handler.action] < order[best.handler.action]:
            best = candidate
    return best


class HandlerMatcher:
    """Runs matching strategies in order and reduces them to one result"""

    def __init__(
        self,
        strategies: Optional[List[MatchStrategy]] = None,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    ):
        self.strategies = strategies if strategies is not None else default_strategies()
        self.min_confidence = min_confidence

    def candidates(self, manifest: CapabilityManifest, text: str) -> List[Candidate]:
        results: List[Candidate] = []
        for strategy in self.strategies:
            results.extend(strategy.candidates(manifest, text))
        return results

    def match(self, manifest: CapabilityManifest, text: str):
        """Return the best MatchResult, or NoMatch listing available actions"""
        best = select_best(manifest, self.candidates(manifest, text))
        if best is None or best.confidence < self.min_confidence:
            return NoMatch(
                available_handlers=manifest.actions(),
                best_confidence=best.confidence if best is not None else 0.0,
            )
        return MatchResult(
            handler=best.handler,
            confidence=min(best.confidence, 1.0),
            method=best.method,
        )


def match_handler(manifest: CapabilityManifest, text: str, min_confidence: float = DEFAULT_MIN_CONFIDENCE):
    """Match with the default strategy list"""
    return HandlerMatcher(min_confidence=min_confidence).match(manifest, text)

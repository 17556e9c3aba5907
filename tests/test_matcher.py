"""Tests for handler matching strategies and the selection rule"""

import pytest

from adp.manifest import HandlerDescriptor, ParameterDescriptor
from adp.matcher import (
    Candidate,
    DomainPatternStrategy,
    ExactActionStrategy,
    HandlerMatcher,
    LexicalOverlapStrategy,
    MatchResult,
    NoMatch,
    SynonymStrategy,
    content_tokens,
    match_handler,
    select_best,
)
from adp.standard import standard_manifest


def _number(name: str) -> ParameterDescriptor:
    return ParameterDescriptor(name=name, required=True, type="number")


def _calculator():
    return standard_manifest([
        HandlerDescriptor(action="Add", parameters=(_number("A"), _number("B")), description="Add two numbers"),
        HandlerDescriptor(action="Multiply", parameters=(_number("A"), _number("B")), description="Multiply two numbers"),
    ], last_updated="2024-01-01T00:00:00Z")


def _token():
    return standard_manifest([
        HandlerDescriptor(action="Info", description="Get process information"),
        HandlerDescriptor(
            action="Balance",
            description="Get token balance",
            parameters=(ParameterDescriptor(name="Target", required=False, type="address"),),
        ),
        HandlerDescriptor(
            action="Transfer",
            description="Move tokens between accounts",
            parameters=(
                ParameterDescriptor(name="Target", required=True, type="address"),
                ParameterDescriptor(name="Quantity", required=True, type="number"),
            ),
        ),
        HandlerDescriptor(action="Balances", description="List all balances"),
    ], last_updated="2024-01-01T00:00:00Z")


def test_exact_action_match():
    result = match_handler(_token(), "check balance for alice")
    assert isinstance(result, MatchResult)
    assert result.handler.action == "Balance"
    assert result.confidence == pytest.approx(0.95)
    assert result.method == "exact_action"


def test_exact_action_is_case_insensitive():
    result = match_handler(_token(), "TRANSFER 5 to bob")
    assert result.handler.action == "Transfer"


def test_exact_action_requires_whole_word():
    result = match_handler(_token(), "show all balances")
    assert result.handler.action == "Balances"


def test_domain_pattern_arithmetic_prefers_own_operator():
    result = match_handler(_calculator(), "what is 5 plus 3")
    assert result.handler.action == "Add"
    assert result.confidence == pytest.approx(0.9)
    assert result.method == "domain_pattern"

    result = match_handler(_calculator(), "6 * 7")
    assert result.handler.action == "Multiply"
    assert result.confidence == pytest.approx(0.9)


def test_domain_pattern_generic_connective():
    candidates = DomainPatternStrategy().candidates(_calculator(), "combine 4 with 2")
    assert {c.handler.action for c in candidates} == {"Add", "Multiply"}
    assert all(c.confidence == pytest.approx(0.85) for c in candidates)


def test_domain_pattern_transfer_shape():
    candidates = DomainPatternStrategy().candidates(_token(), "please give 25 to carol")
    assert [c.handler.action for c in candidates] == ["Transfer"]
    assert candidates[0].confidence == pytest.approx(0.9)


def test_domain_pattern_requires_parameter_shape():
    # Balance has an address but no quantity parameter
    candidates = DomainPatternStrategy().candidates(_token(), "25 to carol")
    assert [c.handler.action for c in candidates] == ["Transfer"]
    assert candidates[0].confidence == pytest.approx(0.85)


def test_synonym_match():
    result = match_handler(_token(), "pay dave")
    assert result.handler.action == "Transfer"
    assert result.confidence == pytest.approx(0.6)
    assert result.method == "synonym"


def test_lexical_overlap_confidence_scales_with_ratio():
    candidates = LexicalOverlapStrategy().candidates(_token(), "move tokens accounts elsewhere")
    by_action = {c.handler.action: c for c in candidates}
    # "move", "tokens", "accounts" of four content tokens
    assert by_action["Transfer"].confidence == pytest.approx(0.3 + 0.5 * 3 / 4)


def test_lexical_overlap_ignores_stop_words():
    assert content_tokens("what is the balance of my account") == ["balance", "account"]
    assert LexicalOverlapStrategy().candidates(_token(), "the of and") == []


def test_no_match_lists_available_handlers():
    result = match_handler(_token(), "do something unrelated")
    assert isinstance(result, NoMatch)
    assert not result
    assert result.available_handlers == ["Info", "Balance", "Transfer", "Balances"]


def test_min_confidence_floor_is_inclusive():
    manifest = _token()
    assert HandlerMatcher(min_confidence=0.6).match(manifest, "pay dave")
    assert not HandlerMatcher(min_confidence=0.61).match(manifest, "pay dave")


def test_tie_breaks_by_declaration_order():
    first = HandlerDescriptor(action="Alpha", description="rotate the widget")
    second = HandlerDescriptor(action="Beta", description="rotate the widget")

    result = match_handler(standard_manifest([first, second]), "rotate widget")
    assert result.handler.action == "Alpha"

    result = match_handler(standard_manifest([second, first]), "rotate widget")
    assert result.handler.action == "Beta"


def test_select_best_tie_break_is_deterministic():
    manifest = _token()
    balance, transfer = manifest.handlers[1], manifest.handlers[2]
    candidates = [Candidate(transfer, 0.6, "synonym"), Candidate(balance, 0.6, "synonym")]
    assert select_best(manifest, candidates).handler.action == "Balance"
    assert select_best(manifest, []) is None


def test_highest_confidence_wins_across_strategies():
    # "send" is a Transfer synonym (0.6) but "balance" names a handler (0.95)
    result = match_handler(_token(), "send me my balance")
    assert result.handler.action == "Balance"


def test_custom_strategy_list():
    matcher = HandlerMatcher(strategies=[SynonymStrategy()])
    assert not matcher.match(_token(), "transfer 5 to bob")
    matcher = HandlerMatcher(strategies=[ExactActionStrategy()])
    assert matcher.match(_token(), "transfer 5 to bob").handler.action == "Transfer"

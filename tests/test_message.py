"""Tests for message tag construction and read/write classification"""

from adp.manifest import HandlerDescriptor, ParameterDescriptor
from adp.message import Tag, build_message_tags, tag_value
from adp.operation import READ, WRITE, classify_operation, declared_operation, infer_operation, is_write


def _transfer_handler(pattern=("Action", "Recipient", "Quantity")) -> HandlerDescriptor:
    return HandlerDescriptor(
        action="Transfer",
        pattern=pattern,
        parameters=(
            ParameterDescriptor(name="Recipient", required=True, type="address"),
            ParameterDescriptor(name="Quantity", required=True, type="number"),
            ParameterDescriptor(name="Memo", required=False, type="string"),
        ),
    )


def test_pattern_tags_come_first_in_order():
    tags = build_message_tags(_transfer_handler(), {"Quantity": 100, "Recipient": "alice"})
    assert tags == [
        Tag("Action", "Transfer"),
        Tag("Recipient", "alice"),
        Tag("Quantity", "100"),
    ]


def test_remaining_parameters_follow_pattern_without_duplicates():
    handler = _transfer_handler(pattern=("Action",))
    tags = build_message_tags(handler, {"Memo": "rent", "Recipient": "alice", "Quantity": 5})
    assert [t.name for t in tags] == ["Action", "Recipient", "Quantity", "Memo"]


def test_absent_optional_parameter_is_not_tagged():
    tags = build_message_tags(_transfer_handler(), {"Recipient": "alice", "Quantity": 1})
    assert "Memo" not in [t.name for t in tags]


def test_tag_values_are_strings():
    assert tag_value(True) == "true"
    assert tag_value(False) == "false"
    assert tag_value(1.5) == "1.5"
    assert tag_value({"a": [1, 2]}) == '{"a":[1,2]}'
    assert tag_value("text") == "text"


def test_tag_to_dict():
    assert Tag("Action", "Info").to_dict() == {"name": "Action", "value": "Info"}


def test_infer_operation_read_verbs():
    for action in ("Info", "Balance", "GetBalance", "Balances", "Ping", "ListItems"):
        assert infer_operation(action) == READ, action


def test_infer_operation_write_verbs():
    for action in ("Transfer", "Mint", "Burn", "SetOwner", "Add", "Stake", "Vote"):
        assert infer_operation(action) == WRITE, action


def test_infer_operation_unknown_defaults_to_read():
    assert infer_operation("Frobnicate") == READ


def test_declared_operation_wins_over_heuristic():
    handler = HandlerDescriptor(action="Transfer", operation="read")
    assert declared_operation(handler) == READ
    assert classify_operation(handler) == READ
    assert not is_write(handler)

    handler = HandlerDescriptor(action="Info", operation="write")
    assert classify_operation(handler) == WRITE


def test_classify_without_declaration_uses_heuristic():
    assert classify_operation(HandlerDescriptor(action="Transfer")) == WRITE
    assert declared_operation(HandlerDescriptor(action="Transfer")) is None

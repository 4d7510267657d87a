import pytest

from elaina.moderation.moderation_parsing import parse_judgment
from elaina.util.errors import JudgmentParseError


def test_parse_plain_json() -> None:
    judgment = parse_judgment('{"violation": true, "reason": "spam link", "redeem": false}')
    assert judgment.violation
    assert judgment.reason == "spam link"
    assert not judgment.redeem_granted


def test_parse_code_fenced_json() -> None:
    raw = '```json\n{"violation": false, "reason": "", "redeem": true}\n```'
    judgment = parse_judgment(raw)
    assert not judgment.violation
    assert judgment.redeem_granted


def test_parse_uses_last_object_in_commentary() -> None:
    raw = 'Example: {"violation": true}. Final answer: {"violation": false, "reason": "fine"}'
    judgment = parse_judgment(raw)
    assert not judgment.violation
    assert judgment.reason == "fine"


def test_parse_nested_object() -> None:
    raw = 'verdict {"violation": "yes", "reason": "rude", "meta": {"score": 1}} done'
    judgment = parse_judgment(raw)
    assert judgment.violation
    assert judgment.reason == "rude"


def test_missing_keys_default_to_clean() -> None:
    judgment = parse_judgment("{}")
    assert not judgment.violation
    assert judgment.reason == ""
    assert not judgment.redeem_granted


def test_reason_is_kept_without_violation() -> None:
    judgment = parse_judgment('{"violation": false, "reason": "needs 5 repetitions", "redeem": false}')
    assert judgment.reason == "needs 5 repetitions"


@pytest.mark.parametrize("raw", ["", "   ", "no json here", "[1, 2, 3]", '{"violation": [1]}'])
def test_unparseable_responses_raise(raw: str) -> None:
    with pytest.raises(JudgmentParseError):
        parse_judgment(raw)

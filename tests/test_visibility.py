import itertools

import pytest

from core.visibility import is_visible, parse_limit, visible
from shared.chat.errors import ValidationError


def _msg(i, sender, to, type="message"):
    return {"_id": str(i), "from": sender, "to": to, "text": f"m{i}", "type": type, "time": "10:00:00"}


@pytest.fixture
def log():
    return [
        _msg(1, "Alice", "Todos", "status"),
        _msg(2, "Alice", "Todos"),
        _msg(3, "Alice", "Bob", "private_message"),
        _msg(4, "Bob", "Carol", "private_message"),
        _msg(5, "Carol", "Alice", "private_message"),
        _msg(6, "Bob", "Todos"),
        _msg(7, "Carol", "Bob", "private_message"),
    ]


def test_visible_includes_broadcasts_and_own_traffic(log):
    ids = [m["_id"] for m in visible(log, "Alice")]
    assert ids == ["1", "2", "3", "5", "6"]


def test_visible_excludes_private_between_others(log):
    ids = [m["_id"] for m in visible(log, "Bob")]
    assert ids == ["1", "2", "3", "4", "6", "7"]
    assert "5" not in ids


def test_visible_for_outsider_is_broadcast_only(log):
    ids = [m["_id"] for m in visible(log, "Dave")]
    assert ids == ["1", "2", "6"]


def test_inclusion_rule_matches_predicate_exhaustively():
    people = ["U", "V", "Todos"]
    msgs = [_msg(i, s, t) for i, (s, t) in enumerate(itertools.product(people, people))]
    result = visible(msgs, "U")
    expected = [m for m in msgs if m["to"] == "U" or m["to"] == "Todos" or m["from"] == "U"]
    assert result == expected
    assert all(is_visible(m, "U") for m in result)


def test_limit_returns_most_recent_first(log):
    ids = [m["_id"] for m in visible(log, "Alice", limit=2)]
    assert ids == ["6", "5"]


def test_limit_larger_than_log(log):
    assert [m["_id"] for m in visible(log, "Dave", limit=50)] == ["6", "2", "1"]


def test_full_limit_is_reverse_of_unlimited(log):
    unlimited = visible(log, "Bob")
    limited = visible(log, "Bob", limit=len(unlimited))
    assert list(reversed(limited)) == unlimited


@pytest.mark.parametrize("bad", [0, -1])
def test_non_positive_limit_rejected(log, bad):
    with pytest.raises(ValidationError):
        visible(log, "Alice", limit=bad)


def test_visible_is_pure(log):
    snapshot = [dict(m) for m in log]
    first = visible(log, "Alice", limit=3)
    second = visible(log, "Alice", limit=3)
    assert first == second
    assert log == snapshot


def test_parse_limit():
    assert parse_limit(None) is None
    assert parse_limit("5") == 5
    assert parse_limit(" 12 ") == 12


@pytest.mark.parametrize("raw", ["abc", "0", "-1", "", "1.5"])
def test_parse_limit_rejects_bad_values(raw):
    with pytest.raises(ValidationError):
        parse_limit(raw)

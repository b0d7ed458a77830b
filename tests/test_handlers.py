import pytest

from shared.chat.errors import Conflict, NotFound, Unauthorized, ValidationError
from shared.chat.records import MESSAGES, PARTICIPANTS, to_millis


def _post(service, user, to="Todos", text="oi", type="message"):
    return service.post_message(user, {"to": to, "text": text, "type": type})


# -----------------------------
# participants
# -----------------------------

def test_create_participant_trims_and_registers(service, gateway):
    created = service.create_participant({"name": "  Alice  "})

    assert created["name"] == "Alice"
    assert created["_id"]
    assert [p["name"] for p in service.list_participants()] == ["Alice"]


@pytest.mark.parametrize("body", [{}, {"name": ""}, {"name": "   "}, {"name": 42}, [], "Alice"])
def test_create_participant_invalid_body(service, gateway, body):
    with pytest.raises(ValidationError):
        service.create_participant(body)
    assert gateway.find_all(PARTICIPANTS) == []


def test_create_participant_twice_conflicts(service, gateway):
    service.create_participant({"name": "Alice"})
    with pytest.raises(Conflict):
        service.create_participant({"name": "Alice"})
    assert [p["name"] for p in gateway.find_all(PARTICIPANTS)] == ["Alice"]


# -----------------------------
# heartbeat
# -----------------------------

def test_heartbeat_updates_last_status(service, gateway, clock):
    service.create_participant({"name": "Alice"})
    clock.advance(7)

    service.heartbeat("Alice")

    assert gateway.find_all(PARTICIPANTS)[0]["lastStatus"] == to_millis(clock.now)


def test_heartbeat_unknown_user(service, gateway):
    service.create_participant({"name": "Alice"})
    before = gateway.find_all(PARTICIPANTS)

    with pytest.raises(NotFound):
        service.heartbeat("Bob")
    assert gateway.find_all(PARTICIPANTS) == before


@pytest.mark.parametrize("user", [None, "", "   "])
def test_heartbeat_missing_header(service, user):
    with pytest.raises(ValidationError):
        service.heartbeat(user)


# -----------------------------
# posting / listing
# -----------------------------

def test_post_message_stores_sender_and_time(service, clock):
    service.create_participant({"name": "Alice"})

    message = _post(service, "Alice", to="Bob", text=" psiu ", type="private_message")

    assert message["from"] == "Alice"
    assert message["to"] == "Bob"
    assert message["text"] == "psiu"
    assert message["type"] == "private_message"
    assert len(message["time"]) == 8 and message["time"].count(":") == 2


def test_post_message_from_unknown_sender(service, gateway):
    with pytest.raises(ValidationError):
        _post(service, "Ghost")
    assert gateway.find_all(MESSAGES) == []


@pytest.mark.parametrize(
    "body",
    [
        {"to": "Todos", "text": "oi"},
        {"to": "", "text": "oi", "type": "message"},
        {"to": "Todos", "text": "", "type": "message"},
        {"to": "Todos", "text": "oi", "type": "status"},
        {"to": "Todos", "text": "oi", "type": "shout"},
    ],
)
def test_post_message_invalid_body(service, body):
    service.create_participant({"name": "Alice"})
    with pytest.raises(ValidationError):
        service.post_message("Alice", body)


def test_list_messages_filters_and_limits(service):
    for name in ("Alice", "Bob", "Carol"):
        service.create_participant({"name": name})
    _post(service, "Bob", to="Carol", text="segredo", type="private_message")
    _post(service, "Alice", text="oi geral")

    texts = [m["text"] for m in service.list_messages("Alice")]
    assert "segredo" not in texts
    assert texts[-1] == "oi geral"

    latest = service.list_messages("Carol", "2")
    assert [m["text"] for m in latest] == ["oi geral", "segredo"]


@pytest.mark.parametrize("limit", ["0", "-3", "abc"])
def test_list_messages_invalid_limit(service, limit):
    with pytest.raises(ValidationError):
        service.list_messages("Alice", limit)


def test_list_messages_requires_user(service):
    with pytest.raises(ValidationError):
        service.list_messages(None)


# -----------------------------
# edit / delete gate
# -----------------------------

def test_edit_by_owner_changes_only_text(service, gateway):
    service.create_participant({"name": "Alice"})
    original = _post(service, "Alice", to="Todos", text="oi")

    edited = service.edit_message(
        "Alice", original["_id"], {"to": "Bob", "text": "olá", "type": "private_message"}
    )

    stored = gateway.find_by_id(MESSAGES, original["_id"])
    assert edited["text"] == "olá"
    assert stored["text"] == "olá"
    for key in ("from", "to", "type", "time"):
        assert stored[key] == original[key]


def test_edit_by_non_owner_is_unauthorized(service, gateway):
    service.create_participant({"name": "Alice"})
    service.create_participant({"name": "Bob"})
    original = _post(service, "Alice", text="oi")

    with pytest.raises(Unauthorized):
        service.edit_message("Bob", original["_id"], {"to": "Todos", "text": "hack", "type": "message"})

    assert gateway.find_by_id(MESSAGES, original["_id"])["text"] == "oi"


def test_edit_missing_message(service):
    service.create_participant({"name": "Alice"})
    with pytest.raises(NotFound):
        service.edit_message("Alice", "missing", {"to": "Todos", "text": "x", "type": "message"})


def test_edit_invalid_body(service):
    service.create_participant({"name": "Alice"})
    original = _post(service, "Alice")
    with pytest.raises(ValidationError):
        service.edit_message("Alice", original["_id"], {"text": "x"})


def test_delete_by_owner(service, gateway):
    service.create_participant({"name": "Alice"})
    original = _post(service, "Alice")

    service.delete_message("Alice", original["_id"])

    assert gateway.find_by_id(MESSAGES, original["_id"]) is None


def test_delete_by_non_owner_is_unauthorized(service, gateway):
    service.create_participant({"name": "Alice"})
    original = _post(service, "Alice")

    with pytest.raises(Unauthorized):
        service.delete_message("Bob", original["_id"])
    assert gateway.find_by_id(MESSAGES, original["_id"]) is not None


def test_delete_checks_existence_before_ownership(service):
    with pytest.raises(NotFound):
        service.delete_message("Bob", "missing")


def test_system_notices_cannot_be_deleted_by_others(service, gateway):
    service.create_participant({"name": "Alice"})
    notice = gateway.find_all(MESSAGES)[0]

    with pytest.raises(Unauthorized):
        service.delete_message("Bob", notice["_id"])

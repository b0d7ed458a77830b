"""Chat operations behind the HTTP routes."""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional

from core.presence import PresenceTracker
from core.visibility import parse_limit, visible
from services.chat_api.schemas import validate_body
from shared.chat.errors import NotFound, Unauthorized, ValidationError
from shared.chat.records import MESSAGES, Message, create_message
from shared.logging.logger import get_logger
from shared.storage.gateway import StorageGateway

log = get_logger("services.chat_api.handlers")


def _require_user(user: Optional[str]) -> str:
    user = (user or "").strip()
    if not user:
        raise ValidationError("header 'user' is required")
    return user


class ChatService:
    def __init__(
        self,
        gateway: StorageGateway,
        tracker: PresenceTracker,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._gateway = gateway
        self._tracker = tracker
        self._clock = clock

    # ------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------

    def create_participant(self, body: Any) -> Dict[str, Any]:
        payload = validate_body("participant", body)
        participant = self._tracker.register(payload["name"], self._clock())
        return participant.to_dict()

    def list_participants(self) -> List[Dict[str, Any]]:
        return [p.to_dict() for p in self._tracker.list_participants()]

    def heartbeat(self, user: Optional[str]) -> None:
        self._tracker.touch(_require_user(user), self._clock())

    # ------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------

    def _require_sender(self, user: Optional[str]) -> str:
        user = _require_user(user)
        if self._tracker.find(user) is None:
            raise ValidationError(f"sender '{user}' is not an active participant")
        return user

    def _owned_message(self, user: str, message_id: str) -> Message:
        record = self._gateway.find_by_id(MESSAGES, message_id)
        if record is None:
            raise NotFound(f"message '{message_id}' not found")
        message = Message.from_record(record)
        if message.sender != user:
            raise Unauthorized(f"message '{message_id}' does not belong to '{user}'")
        return message

    def post_message(self, user: Optional[str], body: Any) -> Dict[str, Any]:
        payload = validate_body("message", body)
        sender = self._require_sender(user)

        message = create_message(
            sender=sender,
            to=payload["to"],
            text=payload["text"],
            type=payload["type"],
            now=self._clock(),
        )
        message.id = self._gateway.insert(MESSAGES, message.to_record())
        log.debug(f"[{sender}] posted {message.type} to {message.to}")
        return message.to_dict()

    def list_messages(self, user: Optional[str], limit: Optional[str] = None) -> List[Dict[str, Any]]:
        user = _require_user(user)
        parsed = parse_limit(limit)
        return visible(self._gateway.find_all(MESSAGES), user, parsed)

    def delete_message(self, user: Optional[str], message_id: str) -> None:
        user = _require_user(user)
        self._owned_message(user, message_id)
        if not self._gateway.delete_by_id(MESSAGES, message_id):
            raise NotFound(f"message '{message_id}' not found")
        log.debug(f"[{user}] deleted message {message_id}")

    def edit_message(self, user: Optional[str], message_id: str, body: Any) -> Dict[str, Any]:
        payload = validate_body("message", body)
        user = self._require_sender(user)

        message = self._owned_message(user, message_id)
        if not self._gateway.update_by_id(MESSAGES, message_id, {"text": payload["text"]}):
            raise NotFound(f"message '{message_id}' not found")
        message.text = payload["text"]
        log.debug(f"[{user}] edited message {message_id}")
        return message.to_dict()


__all__ = ["ChatService"]

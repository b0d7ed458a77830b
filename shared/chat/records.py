"""Participant and message records plus the helpers that build them."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

PARTICIPANTS = "participants"
MESSAGES = "messages"

BROADCAST = "Todos"
SYSTEM_SENDER = "Sistema"

ARRIVAL_NOTICE = "entra na sala..."
DEPARTURE_NOTICE = "sai da sala..."

TYPE_MESSAGE = "message"
TYPE_PRIVATE = "private_message"
TYPE_STATUS = "status"

MESSAGE_TYPES = {TYPE_MESSAGE, TYPE_PRIVATE, TYPE_STATUS}
USER_MESSAGE_TYPES = {TYPE_MESSAGE, TYPE_PRIVATE}


def to_millis(now: float) -> int:
    return round(now * 1000)


def clock_time(now: float) -> str:
    """Server-local ``HH:MM:SS`` for an epoch timestamp in seconds."""
    return datetime.fromtimestamp(now).strftime("%H:%M:%S")


@dataclass
class Participant:
    name: str
    last_status: int  # epoch milliseconds
    id: Optional[str] = None

    def age(self, now: float) -> float:
        """Seconds since the last heartbeat."""
        return now - self.last_status / 1000.0

    def to_record(self) -> Dict[str, Any]:
        return {"name": self.name, "lastStatus": self.last_status}

    def to_dict(self) -> Dict[str, Any]:
        return {"_id": self.id, **self.to_record()}

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Participant":
        return cls(
            name=str(record.get("name") or ""),
            last_status=int(record.get("lastStatus") or 0),
            id=record.get("_id"),
        )


@dataclass
class Message:
    sender: str
    to: str
    text: str
    type: str
    time: str
    id: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        return {
            "from": self.sender,
            "to": self.to,
            "text": self.text,
            "type": self.type,
            "time": self.time,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {"_id": self.id, **self.to_record()}

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Message":
        return cls(
            sender=str(record.get("from") or ""),
            to=str(record.get("to") or ""),
            text=str(record.get("text") or ""),
            type=str(record.get("type") or ""),
            time=str(record.get("time") or ""),
            id=record.get("_id"),
        )


def create_message(
    *,
    sender: str,
    to: str,
    text: str,
    type: str,
    now: float,
) -> Message:
    if not sender:
        raise ValueError("sender is required")
    if not to:
        raise ValueError("recipient is required")
    if not text:
        raise ValueError("message text is required")
    if type not in MESSAGE_TYPES:
        raise ValueError(f"Unsupported message type: {type}")

    return Message(
        sender=str(sender),
        to=str(to),
        text=str(text),
        type=type,
        time=clock_time(now),
    )


def create_status_message(sender: str, text: str, now: float) -> Message:
    """Broadcast join/leave notice."""
    return create_message(
        sender=sender,
        to=BROADCAST,
        text=text,
        type=TYPE_STATUS,
        now=now,
    )


__all__ = [
    "PARTICIPANTS",
    "MESSAGES",
    "BROADCAST",
    "SYSTEM_SENDER",
    "ARRIVAL_NOTICE",
    "DEPARTURE_NOTICE",
    "TYPE_MESSAGE",
    "TYPE_PRIVATE",
    "TYPE_STATUS",
    "MESSAGE_TYPES",
    "USER_MESSAGE_TYPES",
    "Participant",
    "Message",
    "clock_time",
    "create_message",
    "create_status_message",
    "to_millis",
]

"""
Participant presence: join, heartbeat and the inactivity sweep.

A participant is stale once more than ``stale_after`` seconds have passed
since its last heartbeat. Each sweep snapshots the participant collection,
picks out the stale entries and evicts each one as its own task:

  1. insert a broadcast status message ("sai da sala...")
  2. delete the participant record

Evictions are awaited together before the sweep returns. One failing
eviction is logged and never stops the others; nothing is retried within a
sweep because the next one will see the participant again if it is still
there.

No lock is held across the sweep. A participant evicted while a heartbeat
is in flight simply becomes NotFound to that heartbeat.
"""

from __future__ import annotations

import asyncio
import threading
import time
from typing import List, Optional

from shared.chat.errors import Conflict, NotFound, ValidationError
from shared.chat.records import (
    ARRIVAL_NOTICE,
    DEPARTURE_NOTICE,
    MESSAGES,
    PARTICIPANTS,
    SYSTEM_SENDER,
    Participant,
    create_status_message,
    to_millis,
)
from shared.logging.logger import get_logger
from shared.storage.gateway import StorageGateway

log = get_logger("core.presence")

DEFAULT_STALE_AFTER = 15.0

NOTICE_FROM_PARTICIPANT = "participant"
NOTICE_FROM_SYSTEM = "system"


class PresenceTracker:
    def __init__(
        self,
        gateway: StorageGateway,
        *,
        stale_after: float = DEFAULT_STALE_AFTER,
        notice_sender: str = NOTICE_FROM_PARTICIPANT,
        system_sender: str = SYSTEM_SENDER,
    ) -> None:
        if notice_sender not in {NOTICE_FROM_PARTICIPANT, NOTICE_FROM_SYSTEM}:
            raise ValueError(f"Unsupported notice_sender: {notice_sender}")
        self._gateway = gateway
        self._stale_after = float(stale_after)
        self._notice_sender = notice_sender
        self._system_sender = system_sender
        # name check and insert must not interleave across request threads
        self._join_lock = threading.Lock()

    # ------------------------------------------------------------

    def _notice_from(self, name: str) -> str:
        if self._notice_sender == NOTICE_FROM_SYSTEM:
            return self._system_sender
        return name

    def find(self, name: str) -> Optional[Participant]:
        record = self._gateway.find_one(PARTICIPANTS, lambda r: r.get("name") == name)
        return Participant.from_record(record) if record else None

    def list_participants(self) -> List[Participant]:
        return [Participant.from_record(r) for r in self._gateway.find_all(PARTICIPANTS)]

    # ------------------------------------------------------------
    # Join / heartbeat
    # ------------------------------------------------------------

    def register(self, name: str, now: Optional[float] = None) -> Participant:
        if not name:
            raise ValidationError("name is required")
        now = time.time() if now is None else now

        with self._join_lock:
            if self.find(name) is not None:
                raise Conflict(f"participant '{name}' already exists")

            participant = Participant(name=name, last_status=to_millis(now))
            participant.id = self._gateway.insert(PARTICIPANTS, participant.to_record())

        notice = create_status_message(self._notice_from(name), ARRIVAL_NOTICE, now)
        self._gateway.insert(MESSAGES, notice.to_record())

        log.info(f"[{name}] joined")
        return participant

    def touch(self, name: str, now: Optional[float] = None) -> Participant:
        now = time.time() if now is None else now

        participant = self.find(name)
        if participant is None:
            raise NotFound(f"participant '{name}' not found")

        participant.last_status = to_millis(now)
        if not self._gateway.update_by_id(
            PARTICIPANTS, participant.id, {"lastStatus": participant.last_status}
        ):
            # evicted between lookup and update
            raise NotFound(f"participant '{name}' not found")

        log.debug(f"[{name}] heartbeat")
        return participant

    # ------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------

    def _evict(self, participant: Participant, now: float) -> None:
        notice = create_status_message(
            self._notice_from(participant.name), DEPARTURE_NOTICE, now
        )
        self._gateway.insert(MESSAGES, notice.to_record())

        if not self._gateway.delete_by_id(PARTICIPANTS, participant.id):
            log.debug(f"[{participant.name}] already gone at eviction time")
        log.info(f"[{participant.name}] evicted for inactivity")

    async def sweep(self, now: Optional[float] = None) -> List[str]:
        """Evict stale participants. Returns the evicted names."""
        now = time.time() if now is None else now

        try:
            records = await asyncio.to_thread(self._gateway.find_all, PARTICIPANTS)
        except Exception as e:
            log.warning(f"Sweep skipped, could not load participants: {e}")
            return []

        participants = [Participant.from_record(r) for r in records]
        stale = [p for p in participants if p.age(now) > self._stale_after]
        log.debug(f"Sweep: {len(participants)} participant(s), {len(stale)} stale")

        if not stale:
            return []

        results = await asyncio.gather(
            *(asyncio.to_thread(self._evict, p, now) for p in stale),
            return_exceptions=True,
        )

        evicted: List[str] = []
        for participant, result in zip(stale, results):
            if isinstance(result, BaseException):
                log.error(f"[{participant.name}] eviction failed: {result}")
            else:
                evicted.append(participant.name)
        return evicted


__all__ = [
    "DEFAULT_STALE_AFTER",
    "NOTICE_FROM_PARTICIPANT",
    "NOTICE_FROM_SYSTEM",
    "PresenceTracker",
]

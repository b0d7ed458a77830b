"""Which messages a participant may read."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from shared.chat.errors import ValidationError
from shared.chat.records import BROADCAST


def is_visible(message: Dict[str, Any], requester: str) -> bool:
    return (
        message.get("to") == requester
        or message.get("to") == BROADCAST
        or message.get("from") == requester
    )


def visible(
    messages: Iterable[Dict[str, Any]],
    requester: str,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Filter a message log down to what ``requester`` can see.

    Broadcasts and messages sent to or by the requester are kept; private
    messages between two other participants are not. Without ``limit`` the
    result keeps insertion order. With a positive ``limit`` only the last
    ``limit`` visible messages are returned, most recent first.
    """
    if limit is not None and limit <= 0:
        raise ValidationError("limit must be a positive integer")

    selected = [m for m in messages if is_visible(m, requester)]
    if limit is None:
        return selected
    return list(reversed(selected[-limit:]))


def parse_limit(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        limit = int(str(raw).strip())
    except ValueError:
        raise ValidationError(f"invalid limit: {raw!r}") from None
    if limit <= 0:
        raise ValidationError(f"invalid limit: {raw!r}")
    return limit


__all__ = ["is_visible", "parse_limit", "visible"]

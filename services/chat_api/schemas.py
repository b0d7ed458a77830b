"""JSON Schema documents for chat API request bodies."""

from __future__ import annotations

from typing import Any, Dict

from jsonschema import Draft7Validator

from shared.chat.errors import ValidationError
from shared.chat.records import USER_MESSAGE_TYPES

_NON_EMPTY = {"type": "string", "minLength": 1, "pattern": r"\S"}

PARTICIPANT_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["name"],
    "properties": {
        "name": _NON_EMPTY,
    },
}

MESSAGE_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["to", "text", "type"],
    "properties": {
        "to": _NON_EMPTY,
        "text": _NON_EMPTY,
        "type": {"type": "string", "enum": sorted(USER_MESSAGE_TYPES)},
    },
}

_VALIDATORS = {
    "participant": Draft7Validator(PARTICIPANT_SCHEMA),
    "message": Draft7Validator(MESSAGE_SCHEMA),
}


def validate_body(kind: str, payload: Any) -> Dict[str, Any]:
    """Validate ``payload`` and return it with string fields trimmed."""
    validator = _VALIDATORS[kind]
    errors = sorted(validator.iter_errors(payload), key=lambda e: list(e.path))
    if errors:
        details = "; ".join(
            f"{'/'.join(str(p) for p in err.path) or '<body>'}: {err.message}"
            for err in errors
        )
        raise ValidationError(details)

    return {
        key: value.strip() if isinstance(value, str) else value
        for key, value in payload.items()
    }


__all__ = ["MESSAGE_SCHEMA", "PARTICIPANT_SCHEMA", "validate_body"]

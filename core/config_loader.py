"""
Chat server configuration loader.

Reads shared/config/chat.json, validates it against CONFIG_SCHEMA and applies
environment overrides (a .env file is honoured via python-dotenv by the app
entrypoint). Validation failures are warnings: the offending sections fall
back to defaults so the server can still boot.

Environment overrides:
  BATEPAPO_HOST, BATEPAPO_PORT       -> api.host / api.port
  BATEPAPO_STORAGE                   -> storage.backend (sqlite | memory)
  BATEPAPO_DB_PATH                   -> storage.db_path
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator

from core.presence import DEFAULT_STALE_AFTER, NOTICE_FROM_PARTICIPANT, NOTICE_FROM_SYSTEM
from services.chat_api.server import ChatApiConfig
from shared.chat.records import SYSTEM_SENDER
from shared.logging.logger import get_logger
from shared.storage.gateway import DEFAULT_DB_PATH

log = get_logger("core.config_loader")

CONFIG_PATH = Path("shared/config/chat.json")

CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "api": {
            "type": "object",
            "properties": {
                "enabled": {"type": "boolean"},
                "host": {"type": "string", "minLength": 1},
                "port": {"type": "integer", "minimum": 0, "maximum": 65535},
                "allow_origins": {"type": "array", "items": {"type": "string"}},
            },
        },
        "storage": {
            "type": "object",
            "properties": {
                "backend": {"type": "string", "enum": ["sqlite", "memory"]},
                "db_path": {"type": "string", "minLength": 1},
            },
        },
        "presence": {
            "type": "object",
            "properties": {
                "sweep_interval_seconds": {"type": "number", "exclusiveMinimum": 0},
                "stale_after_seconds": {"type": "number", "exclusiveMinimum": 0},
                "notice_sender": {
                    "type": "string",
                    "enum": [NOTICE_FROM_PARTICIPANT, NOTICE_FROM_SYSTEM],
                },
                "system_sender": {"type": "string", "minLength": 1},
            },
        },
    },
}


@dataclass
class StorageConfig:
    backend: str = "sqlite"
    db_path: str = str(DEFAULT_DB_PATH)


@dataclass
class PresenceConfig:
    sweep_interval_seconds: float = 15.0
    stale_after_seconds: float = DEFAULT_STALE_AFTER
    notice_sender: str = NOTICE_FROM_PARTICIPANT
    system_sender: str = SYSTEM_SENDER


@dataclass
class ChatConfig:
    api: ChatApiConfig = field(default_factory=ChatApiConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    presence: PresenceConfig = field(default_factory=PresenceConfig)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _load_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        log.warning(f"chat config not found at {path}; using defaults")
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        log.warning(f"Failed to load chat config ({e}); using defaults")
        return {}

    if not isinstance(data, dict):
        log.warning("chat config root is not an object; ignoring")
        return {}
    return data


def validation_errors(raw: Dict[str, Any]) -> List[str]:
    validator = Draft7Validator(CONFIG_SCHEMA)
    errors = sorted(validator.iter_errors(raw), key=lambda e: list(e.path))
    return [
        f"{'/'.join(str(p) for p in err.path) or '<root>'}: {err.message}"
        for err in errors
    ]


def _section(raw: Dict[str, Any], name: str, invalid: set) -> Dict[str, Any]:
    if name in invalid:
        return {}
    value = raw.get(name)
    return value if isinstance(value, dict) else {}


def _apply_env(config: ChatConfig, env: Dict[str, str]) -> None:
    if env.get("BATEPAPO_HOST"):
        config.api.host = env["BATEPAPO_HOST"]
    if env.get("BATEPAPO_PORT"):
        try:
            config.api.port = int(env["BATEPAPO_PORT"])
        except ValueError:
            log.warning(f"BATEPAPO_PORT is not an integer: {env['BATEPAPO_PORT']!r}; ignoring")
    if env.get("BATEPAPO_STORAGE"):
        config.storage.backend = env["BATEPAPO_STORAGE"].lower().strip()
    if env.get("BATEPAPO_DB_PATH"):
        config.storage.db_path = env["BATEPAPO_DB_PATH"]


# ------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------

def load_chat_config(
    raw: Optional[Dict[str, Any]] = None,
    env: Optional[Dict[str, str]] = None,
    path: Path = CONFIG_PATH,
) -> ChatConfig:
    raw = raw if raw is not None else _load_json(path)
    env = env if env is not None else dict(os.environ)

    invalid = set()
    for err in Draft7Validator(CONFIG_SCHEMA).iter_errors(raw):
        loc = "/".join(str(p) for p in err.path) or "<root>"
        log.warning(f"chat config validation warning at {loc}: {err.message}")
        if err.path:
            invalid.add(err.path[0])

    api_raw = _section(raw, "api", invalid)
    storage_raw = _section(raw, "storage", invalid)
    presence_raw = _section(raw, "presence", invalid)

    api_defaults = ChatApiConfig()
    api = ChatApiConfig(
        enabled=api_raw.get("enabled", api_defaults.enabled),
        host=api_raw.get("host", api_defaults.host),
        port=api_raw.get("port", api_defaults.port),
        allow_origins=list(api_raw.get("allow_origins", api_defaults.allow_origins)),
    )
    storage = StorageConfig(
        backend=storage_raw.get("backend", StorageConfig.backend),
        db_path=storage_raw.get("db_path", StorageConfig.db_path),
    )
    presence = PresenceConfig(
        sweep_interval_seconds=float(
            presence_raw.get("sweep_interval_seconds", PresenceConfig.sweep_interval_seconds)
        ),
        stale_after_seconds=float(
            presence_raw.get("stale_after_seconds", PresenceConfig.stale_after_seconds)
        ),
        notice_sender=presence_raw.get("notice_sender", PresenceConfig.notice_sender),
        system_sender=presence_raw.get("system_sender", PresenceConfig.system_sender),
    )

    config = ChatConfig(api=api, storage=storage, presence=presence)
    _apply_env(config, env)
    return config


__all__ = [
    "CONFIG_PATH",
    "CONFIG_SCHEMA",
    "ChatConfig",
    "PresenceConfig",
    "StorageConfig",
    "load_chat_config",
    "validation_errors",
]

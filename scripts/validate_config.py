"""
Configuration validation script.

Validates shared/config/chat.json against the chat server's config schema.

Design rules:
- No runtime startup
- Validation only (no mutation)
- Missing file is allowed (defaults apply)
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

from core.config_loader import validation_errors

ROOT = Path(__file__).resolve().parents[1]

CONFIG_PATH = ROOT / "shared" / "config" / "chat.json"


def _error(msg: str):
    print(f"[CONFIG ERROR] {msg}", file=sys.stderr)


def validate_chat_config(path: Path = CONFIG_PATH) -> bool:
    if not path.exists():
        return True

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        _error(f"{path.name}: invalid JSON ({e})")
        return False

    if not isinstance(data, dict):
        _error(f"{path.name}: root JSON value must be an object")
        return False

    problems = validation_errors(data)
    for problem in problems:
        _error(f"{path.name}: {problem}")
    return not problems


def main() -> int:
    if not validate_chat_config():
        print("Configuration validation failed.", file=sys.stderr)
        return 1

    print("Configuration validation passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Runtime version metadata for the bate-papo chat server.

This module is import-safe and exposes version identifiers for the API's
health endpoint without executing side effects on import.
"""

from __future__ import annotations

PROJECT_NAME = "Bate-Papo Chat Server"
VERSION = "v1.0.0"
BUILD = "2026.10"

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "BUILD",
    "as_dict",
    "as_string",
]


def as_dict() -> dict[str, str]:
    """Return version metadata as a dictionary."""

    return {
        "project": PROJECT_NAME,
        "version": VERSION,
        "build": BUILD,
    }


def as_string() -> str:
    return f"{PROJECT_NAME} {VERSION} (Build {BUILD})"

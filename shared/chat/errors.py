"""Error taxonomy shared by the presence core and the chat API."""

from __future__ import annotations

from http import HTTPStatus


class ChatError(Exception):
    """Base class; ``status`` is the HTTP code the API answers with."""

    status: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class ValidationError(ChatError):
    status = HTTPStatus.UNPROCESSABLE_ENTITY


class NotFound(ChatError):
    status = HTTPStatus.NOT_FOUND


class Unauthorized(ChatError):
    status = HTTPStatus.UNAUTHORIZED


class Conflict(ChatError):
    status = HTTPStatus.CONFLICT


class StorageError(ChatError):
    status = HTTPStatus.INTERNAL_SERVER_ERROR


__all__ = [
    "ChatError",
    "ValidationError",
    "NotFound",
    "Unauthorized",
    "Conflict",
    "StorageError",
]

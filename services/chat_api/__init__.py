"""Chat room HTTP API service."""

from .handlers import ChatService
from .server import ChatApiConfig, ChatApiServer

__all__ = ["ChatApiServer", "ChatApiConfig", "ChatService"]

"""HTTP API server for participants, heartbeats and messages."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, List, Optional, Tuple
from urllib.parse import parse_qs, unquote, urlparse

from runtime import version
from services.chat_api.handlers import ChatService
from shared.chat.errors import ChatError, ValidationError
from shared.logging.logger import get_logger

log = get_logger("services.chat_api")


@dataclass
class ChatApiConfig:
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 5000
    allow_origins: List[str] = field(default_factory=lambda: ["*"])


class ChatApiServer:
    def __init__(self, config: ChatApiConfig, service: ChatService) -> None:
        self._config = config
        self._service = service
        self._thread: Optional[threading.Thread] = None
        self._server: Optional[ThreadingHTTPServer] = None

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        if not self._server:
            return None
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    def start(self) -> None:
        if not self._config.enabled:
            log.info("Chat API server disabled via config")
            return
        if self._thread and self._thread.is_alive():
            return

        handler = self._build_handler()
        self._server = ThreadingHTTPServer(
            (self._config.host, int(self._config.port)),
            handler,
        )
        self._server.daemon_threads = True
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        host, port = self.address
        log.info("Chat API server running on %s:%s", host, port)

    def stop(self) -> None:
        if not self._server:
            return
        self._server.shutdown()
        self._server.server_close()
        self._server = None
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        log.info("Chat API server stopped")

    def _build_handler(self):
        config = self._config
        service = self._service

        class Handler(BaseHTTPRequestHandler):
            protocol_version = "HTTP/1.1"
            _body: bytes = b""

            def _send_json(self, status: int, payload: Any) -> None:
                body = json.dumps(payload).encode("utf-8")
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self._apply_cors()
                self.end_headers()
                self.wfile.write(body)

            def _send_empty(self, status: int) -> None:
                self.send_response(status)
                self.send_header("Content-Length", "0")
                self._apply_cors()
                self.end_headers()

            def _apply_cors(self) -> None:
                origins = config.allow_origins
                if not origins:
                    return
                origin = self.headers.get("Origin")
                if "*" in origins:
                    self.send_header("Access-Control-Allow-Origin", "*")
                elif origin and origin in origins:
                    self.send_header("Access-Control-Allow-Origin", origin)
                self.send_header("Access-Control-Allow-Headers", "Content-Type, User")
                self.send_header(
                    "Access-Control-Allow-Methods",
                    "GET, POST, PUT, DELETE, OPTIONS",
                )

            def _drain_body(self) -> bytes:
                raw_length = (self.headers.get("Content-Length") or "0").strip()
                try:
                    length = int(raw_length)
                except ValueError:
                    length = -1
                if length < 0:
                    # body boundary unknown, the connection cannot be reused
                    self.close_connection = True
                    raise ValidationError(f"invalid Content-Length: {raw_length!r}")
                return self.rfile.read(length) if length else b""

            def _read_json_body(self) -> Any:
                raw = self._body
                if not raw:
                    return {}
                try:
                    return json.loads(raw.decode("utf-8"))
                except (UnicodeDecodeError, json.JSONDecodeError):
                    raise ValidationError("request body is not valid JSON") from None

            def _user(self) -> Optional[str]:
                return self.headers.get("user")

            def _dispatch(self, route: Callable[[Any], None]) -> None:
                parsed = urlparse(self.path)
                try:
                    # every route consumes the body so keep-alive framing holds
                    self._body = self._drain_body()
                    route(parsed)
                except ChatError as err:
                    if err.status >= HTTPStatus.INTERNAL_SERVER_ERROR:
                        log.error(f"{self.command} {parsed.path} failed: {err.message}")
                    self._send_json(err.status, {"error": err.message})
                except Exception as e:
                    log.exception(f"{self.command} {parsed.path} crashed: {e}")
                    self._send_json(
                        HTTPStatus.INTERNAL_SERVER_ERROR,
                        {"error": "internal server error"},
                    )

            @staticmethod
            def _message_id(path: str) -> Optional[str]:
                parts = path.strip("/").split("/")
                if len(parts) == 2 and parts[0] == "messages" and parts[1]:
                    return unquote(parts[1])
                return None

            def _not_found(self) -> None:
                self._send_json(HTTPStatus.NOT_FOUND, {"error": "Unknown endpoint"})

            # ------------------------------------------------------
            # Verbs
            # ------------------------------------------------------

            def do_OPTIONS(self) -> None:  # noqa: N802 - stdlib signature
                self._dispatch(lambda parsed: self._send_empty(HTTPStatus.NO_CONTENT))

            def do_GET(self) -> None:  # noqa: N802 - stdlib signature
                self._dispatch(self._handle_get)

            def do_POST(self) -> None:  # noqa: N802 - stdlib signature
                self._dispatch(self._handle_post)

            def do_PUT(self) -> None:  # noqa: N802 - stdlib signature
                self._dispatch(self._handle_put)

            def do_DELETE(self) -> None:  # noqa: N802 - stdlib signature
                self._dispatch(self._handle_delete)

            # ------------------------------------------------------
            # Routes
            # ------------------------------------------------------

            def _handle_get(self, parsed) -> None:
                path = parsed.path.rstrip("/")

                if path == "/participants":
                    return self._send_json(HTTPStatus.OK, service.list_participants())

                if path == "/messages":
                    query = parse_qs(parsed.query)
                    limit = (query.get("limit") or [None])[0]
                    messages = service.list_messages(self._user(), limit)
                    return self._send_json(HTTPStatus.OK, messages)

                if path == "/health":
                    return self._send_json(HTTPStatus.OK, version.as_dict())

                self._not_found()

            def _handle_post(self, parsed) -> None:
                path = parsed.path.rstrip("/")

                if path == "/participants":
                    participant = service.create_participant(self._read_json_body())
                    return self._send_json(HTTPStatus.CREATED, participant)

                if path == "/status":
                    service.heartbeat(self._user())
                    return self._send_empty(HTTPStatus.OK)

                if path == "/messages":
                    message = service.post_message(self._user(), self._read_json_body())
                    return self._send_json(HTTPStatus.CREATED, message)

                self._not_found()

            def _handle_put(self, parsed) -> None:
                message_id = self._message_id(parsed.path)
                if not message_id:
                    return self._not_found()
                message = service.edit_message(self._user(), message_id, self._read_json_body())
                self._send_json(HTTPStatus.OK, message)

            def _handle_delete(self, parsed) -> None:
                message_id = self._message_id(parsed.path)
                if not message_id:
                    return self._not_found()
                service.delete_message(self._user(), message_id)
                self._send_empty(HTTPStatus.OK)

            def log_message(self, format: str, *args: Any) -> None:
                log.info("%s - %s", self.address_string(), format % args)

        return Handler


__all__ = ["ChatApiServer", "ChatApiConfig"]

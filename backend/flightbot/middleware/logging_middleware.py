"""
Request/response logging for the FlightBot API.

Implemented as a pure ASGI middleware so it also wraps streaming responses.
WebSocket traffic is passed through untouched; the chat socket logs its own
events.
"""

import json
import logging
import time
import uuid
from typing import Iterable, List, Optional

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.logging_config import filter_sensitive_data, truncate_large_data

logger = logging.getLogger(__name__)

MAX_BODY_LOG_LENGTH = 5000


def summarize_body(chunks: List[bytes]) -> Optional[str]:
    """Join captured body chunks into a masked, truncated string for the log."""
    raw = b"".join(chunks)
    if not raw:
        return None

    text = raw.decode("utf-8", errors="ignore")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return truncate_large_data(text, MAX_BODY_LOG_LENGTH)

    masked = json.dumps(filter_sensitive_data(payload), ensure_ascii=False)
    return truncate_large_data(masked, MAX_BODY_LOG_LENGTH)


def error_reason_from_body(body: Optional[str]) -> Optional[str]:
    """Pull the human message out of an error envelope."""
    if not body:
        return None
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return truncate_large_data(body, 500)

    if isinstance(payload, dict):
        for key in ("message", "detail", "error"):
            if payload.get(key):
                return str(payload[key])
    return truncate_large_data(body, 500)


def level_for_status(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware:
    """Logs each HTTP request with its status, timing and bodies."""

    def __init__(self, app: ASGIApp, exclude_paths: Optional[Iterable[str]] = None):
        """
        Args:
            app: The wrapped ASGI application
            exclude_paths: Paths that are not logged at all (health checks)
        """
        self.app = app
        self.exclude_paths = set(exclude_paths or ("/", "/health"))

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path", "") in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        request_id = uuid.uuid4().hex[:12]
        method = scope.get("method", "UNKNOWN")
        path = scope.get("path", "")
        query = scope.get("query_string", b"").decode("utf-8", errors="ignore") or None
        client = scope.get("client")
        client_host = client[0] if client else None

        request_chunks: List[bytes] = []
        response_chunks: List[bytes] = []
        status_code = 0

        async def receive_wrapper() -> Message:
            message = await receive()
            if message["type"] == "http.request":
                request_chunks.append(message.get("body", b""))
            return message

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
                # Echo the id so clients can quote it in support requests
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode()))
                message["headers"] = headers
            elif message["type"] == "http.response.body":
                response_chunks.append(message.get("body", b""))
            await send(message)

        logger.debug(
            f"--> {method} {path}",
            extra={"extra_fields": {
                "request_id": request_id,
                "method": method,
                "path": path,
                "query": query,
                "client": client_host,
            }}
        )

        start = time.perf_counter()
        try:
            await self.app(scope, receive_wrapper, send_wrapper)
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.error(
                f"<-- {method} {path} raised {type(e).__name__}: {e}",
                exc_info=True,
                extra={"extra_fields": {
                    "request_id": request_id,
                    "method": method,
                    "path": path,
                    "duration_ms": round(duration_ms, 2),
                }}
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        request_body = summarize_body(request_chunks)
        response_body = summarize_body(response_chunks)
        reason = error_reason_from_body(response_body) if status_code >= 400 else None

        message = f"<-- {method} {path} {status_code} ({duration_ms:.2f}ms)"
        if reason:
            message += f" | {reason}"

        logger.log(
            level_for_status(status_code),
            message,
            extra={"extra_fields": {
                "request_id": request_id,
                "method": method,
                "path": path,
                "query": query,
                "client": client_host,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
                "request_body": request_body,
                "response_body": response_body if logger.isEnabledFor(logging.DEBUG) else None,
                "error_reason": reason,
            }}
        )

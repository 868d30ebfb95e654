"""
JSON-RPC session over a single message connection.

Assigns request ids, correlates responses with their callers, enforces
per-request timeouts, answers server-initiated requests with ``null`` and
forwards notifications to one registered handler.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from lsprotocol import types as lsp
from pygls.exceptions import JsonRpcException

from editor_lsp.config import DEFAULT_TIMEOUT
from editor_lsp.connection import MessageConnection
from editor_lsp.errors import RequestTimeout, SessionClosed, TransportError
from editor_lsp.protocol import JSONRPC_VERSION, to_payload

logger = logging.getLogger(__name__)

NotificationHandler = Callable[[str, Any], None]

# JSON-RPC "Internal error", used when a server error response omits its code
_INTERNAL_ERROR = -32603


@dataclass
class PendingRequest:
    """A request awaiting its response."""

    id: str
    method: str
    created_at: float
    expires_after: float
    future: asyncio.Future[Any]
    timer: asyncio.TimerHandle | None = None


class TransportSession:
    """Owns one JSON-RPC connection and its table of pending requests."""

    def __init__(
        self, connection: MessageConnection, default_timeout: float = DEFAULT_TIMEOUT
    ) -> None:
        self._connection = connection
        self._default_timeout = default_timeout
        self._ids = itertools.count(1)
        self._pending: dict[str, PendingRequest] = {}
        self._notification_handler: NotificationHandler | None = None
        self._replies: set[asyncio.Task[None]] = set()
        self._closed = False

        connection.on_message(self._handle_message)
        connection.on_close(self._handle_connection_lost)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def on_notification(self, handler: NotificationHandler) -> None:
        """Register the handler receiving ``(method, params)`` of every notification."""
        self._notification_handler = handler

    async def send_request(
        self, method: str, params: Any = None, timeout: float | None = None
    ) -> Any:
        """Send a request and wait for its raw result.

        Raises:
            RequestTimeout: No response arrived within ``timeout`` seconds.
            JsonRpcException: The server answered with an error.
            SessionClosed: The session closed before a response arrived.
            TransportError: The request could not be written.
        """
        if self._closed:
            raise SessionClosed(f"cannot send {method}: session closed")
        if timeout is None:
            timeout = self._default_timeout

        loop = asyncio.get_running_loop()
        request_id = str(next(self._ids))
        pending = PendingRequest(
            id=request_id,
            method=method,
            created_at=time.monotonic(),
            expires_after=timeout,
            future=loop.create_future(),
        )
        # Record before writing: the response may arrive before send() returns.
        pending.timer = loop.call_later(timeout, self._expire, request_id)
        pending.future.add_done_callback(lambda _: self._discard(request_id))
        self._pending[request_id] = pending

        logger.debug(f"request {method} (id={request_id}, timeout={timeout}s)")
        message: dict[str, Any] = {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "method": method,
        }
        if params is not None:
            message["params"] = to_payload(params)

        try:
            await self._write(message)
        except BaseException:
            if not pending.future.done():
                pending.future.cancel()
            raise

        return await pending.future

    async def send_notification(self, method: str, params: Any = None) -> None:
        """Send a notification; returns once the connection accepted it."""
        if self._closed:
            raise SessionClosed(f"cannot send {method}: session closed")

        logger.debug(f"notify {method}")
        message: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
        if params is not None:
            message["params"] = to_payload(params)
        await self._write(message)

    async def close(self) -> None:
        """Close the connection and fail every outstanding request."""
        if self._closed:
            return
        self._closed = True
        self._fail_pending("session closed")
        for task in list(self._replies):
            task.cancel()
        try:
            await self._connection.close()
        except Exception as e:
            logger.debug(f"error while closing connection: {e}")

    async def _write(self, message: dict[str, Any]) -> None:
        try:
            await self._connection.send(json.dumps(message))
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(f"failed to send {message.get('method', 'response')}: {e}") from e

    def _handle_message(self, raw: str) -> None:
        try:
            message = json.loads(raw)
        except ValueError as e:
            logger.error(f"dropping malformed frame: {e}")
            return
        if not isinstance(message, dict):
            logger.error(f"dropping non-object frame: {raw[:80]}")
            return

        method = message.get("method")
        msg_id = message.get("id")

        if method is not None and msg_id is not None:
            self._handle_server_request(msg_id, method)
        elif method is not None:
            self._handle_notification(method, message.get("params"))
        elif msg_id is not None:
            self._handle_response(str(msg_id), message)
        else:
            logger.warning(f"unrecognised message: {raw[:80]}")

    def _handle_server_request(self, msg_id: Any, method: str) -> None:
        # No server-callable methods are exposed, so every request gets null.
        logger.debug(f"answering server request {method} (id={msg_id}) with null")
        if self._closed:
            return
        task = asyncio.ensure_future(
            self._write({"jsonrpc": JSONRPC_VERSION, "id": msg_id, "result": None})
        )
        self._replies.add(task)
        task.add_done_callback(self._reply_done)

    def _reply_done(self, task: asyncio.Task[None]) -> None:
        self._replies.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"failed to answer server request: {task.exception()}")

    def _handle_notification(self, method: str, params: Any) -> None:
        if self._notification_handler is None:
            logger.warning(f"no notification handler registered, dropping {method}")
            return
        try:
            self._notification_handler(method, params)
        except Exception as e:
            logger.error(f"notification handler failed for {method}: {e}")

    def _handle_response(self, request_id: str, message: dict[str, Any]) -> None:
        pending = self._pending.get(request_id)
        if pending is None or pending.future.done():
            logger.warning(f"dropping response for unknown or expired request id={request_id}")
            return

        elapsed = time.monotonic() - pending.created_at
        logger.debug(f"response {pending.method} (id={request_id}) after {elapsed:.3f}s")

        error = message.get("error")
        if error is not None:
            if not isinstance(error, dict):
                error = {"message": str(error)}
            code = error.get("code")
            if not isinstance(code, int):
                code = _INTERNAL_ERROR
            pending.future.set_exception(
                JsonRpcException.from_error(
                    lsp.ResponseError(
                        code=code,
                        message=str(error.get("message", "")),
                        data=error.get("data"),
                    )
                )
            )
        else:
            pending.future.set_result(message.get("result"))

    def _expire(self, request_id: str) -> None:
        pending = self._pending.get(request_id)
        if pending is None or pending.future.done():
            return
        logger.warning(
            f"request {pending.method} (id={request_id}) timed out after {pending.expires_after}s"
        )
        pending.future.set_exception(
            RequestTimeout(pending.method, request_id, pending.expires_after)
        )

    def _discard(self, request_id: str) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is not None and pending.timer is not None:
            pending.timer.cancel()

    def _handle_connection_lost(self) -> None:
        if self._closed:
            return
        logger.warning("connection lost, failing outstanding requests")
        self._closed = True
        self._fail_pending("connection lost")

    def _fail_pending(self, reason: str) -> None:
        for pending in list(self._pending.values()):
            if pending.timer is not None:
                pending.timer.cancel()
            if not pending.future.done():
                pending.future.set_exception(
                    SessionClosed(f"{pending.method} (id={pending.id}): {reason}")
                )
        self._pending.clear()

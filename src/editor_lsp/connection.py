"""
Message-oriented connections carrying JSON-RPC text frames.

``MessageConnection`` is the socket primitive the session runs on: whole,
ordered text messages in, ``send`` out.  ``WebSocketConnection`` implements
it on top of the websockets asyncio client.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol, runtime_checkable

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from editor_lsp.errors import SessionClosed, TransportError

logger = logging.getLogger(__name__)


@runtime_checkable
class MessageConnection(Protocol):
    """Protocol for framed, ordered, reliable text connections."""

    def on_message(self, handler: Callable[[str], None]) -> None:
        """Register the callback receiving each inbound text frame."""
        ...

    def on_close(self, handler: Callable[[], None]) -> None:
        """Register the callback invoked when the peer drops the connection."""
        ...

    async def send(self, message: str) -> None:
        """Write one text frame."""
        ...

    async def close(self) -> None:
        """Close the connection."""
        ...


class WebSocketConnection:
    """A ``MessageConnection`` over a WebSocket."""

    def __init__(self, websocket: ClientConnection) -> None:
        self._websocket = websocket
        self._message_handler: Callable[[str], None] | None = None
        self._close_handler: Callable[[], None] | None = None
        self._reader: asyncio.Task[None] | None = None
        self._closing = False

    @classmethod
    async def connect(
        cls, uri: str, open_timeout: float | None = None
    ) -> WebSocketConnection:
        """Open a WebSocket to ``uri``.

        Raises:
            TransportError: The server could not be reached or refused the
                WebSocket handshake.
        """
        logger.info(f"connecting to {uri}")
        try:
            websocket = await connect(uri, open_timeout=open_timeout)
        except (OSError, InvalidURI, InvalidHandshake, asyncio.TimeoutError) as e:
            raise TransportError(f"cannot connect to {uri}: {e}") from e
        return cls(websocket)

    def on_message(self, handler: Callable[[str], None]) -> None:
        self._message_handler = handler
        # Start reading only once someone listens, so no frame is lost.
        if self._reader is None:
            self._reader = asyncio.get_running_loop().create_task(self._read_loop())

    def on_close(self, handler: Callable[[], None]) -> None:
        self._close_handler = handler

    async def send(self, message: str) -> None:
        try:
            await self._websocket.send(message)
        except ConnectionClosed as e:
            raise SessionClosed(f"connection closed: {e}") from e

    async def close(self) -> None:
        self._closing = True
        await self._websocket.close()
        if self._reader is not None:
            self._reader.cancel()
            await asyncio.gather(self._reader, return_exceptions=True)
            self._reader = None

    async def _read_loop(self) -> None:
        try:
            async for message in self._websocket:
                if isinstance(message, bytes):
                    try:
                        message = message.decode("utf-8")
                    except UnicodeDecodeError as e:
                        logger.error(f"dropping binary frame that is not UTF-8: {e}")
                        continue
                if self._message_handler is None:
                    continue
                try:
                    self._message_handler(message)
                except Exception as e:
                    logger.error(f"message handler failed: {e}")
        except ConnectionClosed as e:
            logger.warning(f"connection lost: {e}")
        finally:
            if not self._closing and self._close_handler is not None:
                self._close_handler()

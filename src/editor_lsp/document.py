"""
Debounced full-document synchronization for one open document.

Local edits only record the latest text and restart a single-shot timer.
When the timer fires, or when a query flushes, the whole text is sent in one
``textDocument/didChange`` and the version advances by one.
"""

from __future__ import annotations

import asyncio
import logging

from editor_lsp.config import DEFAULT_DEBOUNCE
from editor_lsp.workspace import OpenFile

logger = logging.getLogger(__name__)


class DocumentSynchronizer:
    """Keeps the server's copy of one document caught up with local edits."""

    def __init__(
        self,
        uri: str,
        language_id: str,
        text: str = "",
        debounce: float = DEFAULT_DEBOUNCE,
    ) -> None:
        self.uri = uri
        self.language_id = language_id
        self.version = 0
        self._text = text
        self._debounce = debounce
        self._dirty = False
        self._file: OpenFile | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._sends: set[asyncio.Task[None]] = set()
        self._send_lock = asyncio.Lock()

    @property
    def text(self) -> str:
        """The most recent local text, sent or not."""
        return self._text

    @property
    def ready(self) -> bool:
        return self._file is not None and self._file.is_open

    @property
    def has_pending_changes(self) -> bool:
        return self._dirty

    def attach(self, open_file: OpenFile, opened_text: str) -> None:
        """Start syncing once the server has the document at version 0.

        ``opened_text`` is the text carried by didOpen; edits made while
        didOpen was in flight are scheduled for sending.
        """
        self._file = open_file
        self.version = 0
        self._dirty = self._text != opened_text
        if self._dirty:
            self._schedule()

    def on_edit(self, text: str) -> None:
        """Record a local edit; sending is deferred by the debounce window."""
        self._text = text
        self._dirty = True
        if not self.ready:
            return
        self._schedule()

    async def flush(self, force: bool = False) -> None:
        """Send any unsent edit now and wait until it has been delivered.

        With ``force`` a change notification is sent even when the server is
        already current, which makes it re-analyse the document.
        """
        self._cancel_timer()
        if not self.ready:
            return
        await self._send_change(force)

    async def close(self) -> None:
        """Stop syncing and close the document on the server."""
        self._cancel_timer()
        if self._sends:
            await asyncio.gather(*self._sends, return_exceptions=True)
        if self._file is not None:
            await self._file.close()
            self._file = None

    def _schedule(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._debounce, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        task = asyncio.ensure_future(self._debounced_send())
        self._sends.add(task)
        task.add_done_callback(self._sends.discard)

    async def _debounced_send(self) -> None:
        try:
            await self._send_change()
        except Exception as e:
            logger.error(f"failed to send didChange for {self.uri}: {e}")

    async def _send_change(self, force: bool = False) -> None:
        # Timer and flush share this lock, so versions go out in order.
        async with self._send_lock:
            if not self.ready or not (self._dirty or force):
                return
            assert self._file is not None
            was_dirty = self._dirty
            version = self.version + 1
            self._dirty = False
            logger.debug(f"didChange {self.uri} v{version} ({len(self._text)} chars)")
            try:
                await self._file.did_change(version, self._text)
            except BaseException:
                # Not delivered: the version stays free and the edit unsent.
                self._dirty = self._dirty or was_dirty
                raise
            self.version = version

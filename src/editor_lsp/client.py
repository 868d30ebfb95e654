"""
Editor session: binds one document of a host editor to a language server.

Ties the workspace handshake, debounced document sync, diagnostics,
hover and completion together behind an API a host editor can call with
plain offsets and text.  Failures on query paths degrade to "no result".
"""

from __future__ import annotations

import logging
import re
from typing import Callable

from lsprotocol import types as lsp
from pygls.exceptions import JsonRpcException

from editor_lsp.completions import CompletionResult, candidates_from_result, rank_candidates
from editor_lsp.config import ClientOptions
from editor_lsp.connection import WebSocketConnection
from editor_lsp.diagnostics import DiagnosticRecord, map_diagnostics
from editor_lsp.document import DocumentSynchronizer
from editor_lsp.errors import EditorLspError
from editor_lsp.hover import HoverResult, map_hover
from editor_lsp.positions import TextSnapshot, offset_to_position
from editor_lsp.protocol import structure_result
from editor_lsp.workspace import Connector, Workspace

logger = logging.getLogger(__name__)

DiagnosticsCallback = Callable[[list[DiagnosticRecord]], None]

_WORD_BEFORE_CURSOR = re.compile(r"\w+$")

# Failures a query recovers from by returning no result
_QUERY_ERRORS = (EditorLspError, JsonRpcException)


class EditorSession:
    """The language-server session behind one editor document."""

    def __init__(
        self,
        options: ClientOptions,
        text: str = "",
        on_diagnostics: DiagnosticsCallback | None = None,
        connect: Connector = WebSocketConnection.connect,
    ) -> None:
        self.options = options
        self.workspace: Workspace | None = None
        self.diagnostics: list[DiagnosticRecord] = []
        self._on_diagnostics = on_diagnostics
        self._connect = connect
        self._sync = DocumentSynchronizer(
            options.document_uri,
            options.language_id,
            text=text,
            debounce=options.debounce,
        )

    @property
    def ready(self) -> bool:
        return self.workspace is not None and self._sync.ready

    @property
    def capabilities(self) -> lsp.ServerCapabilities | None:
        return self.workspace.capabilities if self.workspace is not None else None

    @property
    def version(self) -> int:
        return self._sync.version

    @property
    def text(self) -> str:
        return self._sync.text

    def snapshot(self) -> TextSnapshot:
        return TextSnapshot(self._sync.text)

    async def start(self) -> None:
        """Handshake with the server and open the document.

        Raises whatever ``Workspace.create`` raises; nothing useful can
        happen without negotiated capabilities.
        """
        opts = self.options
        self.workspace = await Workspace.create(
            opts.server_uri,
            opts.root_uri,
            opts.workspace_folders,
            timeout=opts.timeout,
            connect=self._connect,
        )

        text = self._sync.text
        try:
            open_file = await self.workspace.open_file(
                opts.document_uri,
                opts.language_id,
                text,
                {lsp.TEXT_DOCUMENT_PUBLISH_DIAGNOSTICS: self._handle_diagnostics},
            )
        except BaseException:
            await self.workspace.close()
            self.workspace = None
            raise
        self._sync.attach(open_file, text)
        logger.info(f"session ready for {opts.document_uri}")

    def on_edit(self, text: str) -> None:
        """Report the full document text after a local change."""
        self._sync.on_edit(text)

    async def request_hover(self, offset: int) -> HoverResult | None:
        """Hover information at ``offset``, or ``None``."""
        if not self.ready or not self.workspace.supports_hover:
            return None

        try:
            await self._sync.flush()
            snapshot = self.snapshot()
            position = offset_to_position(snapshot, offset)
            raw = await self.workspace.session.send_request(
                lsp.TEXT_DOCUMENT_HOVER,
                lsp.HoverParams(
                    text_document=lsp.TextDocumentIdentifier(uri=self.options.document_uri),
                    position=position,
                ),
                self.options.timeout,
            )
            hover = structure_result(lsp.TEXT_DOCUMENT_HOVER, raw)
        except _QUERY_ERRORS as e:
            logger.debug(f"hover failed: {e}")
            return None

        return map_hover(hover, position, self.snapshot())

    async def request_completion(
        self, offset: int, explicit: bool = False
    ) -> CompletionResult | None:
        """Ranked completions at ``offset``.

        ``None`` means completion is unsupported, not yet available, or the
        server had nothing to offer; an empty candidate list means nothing
        matched the typed prefix.
        """
        if not self.ready or not self.workspace.supports_completion:
            return None

        snapshot = self.snapshot()
        try:
            position = offset_to_position(snapshot, offset)
        except EditorLspError as e:
            logger.debug(f"completion offset does not resolve: {e}")
            return None
        line_before = snapshot.line_text(position.line)[: position.character]

        trigger_kind = lsp.CompletionTriggerKind.Invoked
        trigger_character: str | None = None
        previous = line_before[-1:]
        if (
            not explicit
            and previous
            and previous in self.workspace.completion_trigger_characters
        ):
            trigger_kind = lsp.CompletionTriggerKind.TriggerCharacter
            trigger_character = previous

        if (
            trigger_kind == lsp.CompletionTriggerKind.Invoked
            and not _WORD_BEFORE_CURSOR.search(line_before)
        ):
            return None

        try:
            await self._sync.flush()
            raw = await self.workspace.session.send_request(
                lsp.TEXT_DOCUMENT_COMPLETION,
                lsp.CompletionParams(
                    text_document=lsp.TextDocumentIdentifier(uri=self.options.document_uri),
                    position=position,
                    context=lsp.CompletionContext(
                        trigger_kind=trigger_kind,
                        trigger_character=trigger_character,
                    ),
                ),
                self.options.timeout,
            )
            candidates = candidates_from_result(
                structure_result(lsp.TEXT_DOCUMENT_COMPLETION, raw)
            )
        except _QUERY_ERRORS as e:
            logger.debug(f"completion failed: {e}")
            return None

        if candidates is None:
            return None
        return rank_candidates(candidates, line_before, offset)

    async def request_diagnostics(self) -> None:
        """Push the current text so the server publishes fresh diagnostics."""
        if not self.ready:
            return
        try:
            await self._sync.flush(force=True)
        except _QUERY_ERRORS as e:
            logger.debug(f"diagnostics refresh failed: {e}")

    async def close(self) -> None:
        """Close the document, then the workspace."""
        if self.workspace is None:
            return
        try:
            await self._sync.close()
        finally:
            await self.workspace.close()
            self.workspace = None

    def _handle_diagnostics(self, params: lsp.PublishDiagnosticsParams) -> None:
        records = map_diagnostics(params.diagnostics, self.snapshot())
        logger.debug(
            f"{len(records)} of {len(params.diagnostics)} diagnostics mapped for {params.uri}"
        )
        self.diagnostics = records
        if self._on_diagnostics is not None:
            self._on_diagnostics(records)

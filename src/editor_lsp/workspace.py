"""
Workspace: one transport session, the initialize handshake, negotiated
server capabilities and the registry of open documents.

Per-document notifications from the server are routed to the handlers of
the document named by the ``uri`` in their params.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Sequence

from lsprotocol import types as lsp

from editor_lsp.config import DEFAULT_TIMEOUT, INITIALIZE_TIMEOUT_FACTOR
from editor_lsp.connection import MessageConnection, WebSocketConnection
from editor_lsp.errors import DocumentAlreadyOpen, EditorLspError
from editor_lsp.protocol import structure_params, structure_result
from editor_lsp.session import TransportSession

logger = logging.getLogger(__name__)

NotificationHandler = Callable[[Any], None]
Connector = Callable[[str], Awaitable[MessageConnection]]

# Server-to-client notifications addressed to one document, and their params
DOCUMENT_NOTIFICATIONS: dict[str, type] = {
    lsp.TEXT_DOCUMENT_PUBLISH_DIAGNOSTICS: lsp.PublishDiagnosticsParams,
}

_DOC_FORMATS = [lsp.MarkupKind.PlainText, lsp.MarkupKind.Markdown]

CLIENT_CAPABILITIES = lsp.ClientCapabilities(
    text_document=lsp.TextDocumentClientCapabilities(
        hover=lsp.HoverClientCapabilities(
            dynamic_registration=True,
            content_format=_DOC_FORMATS,
        ),
        moniker=lsp.MonikerClientCapabilities(),
        synchronization=lsp.TextDocumentSyncClientCapabilities(
            dynamic_registration=True,
            will_save=False,
            did_save=False,
            will_save_wait_until=False,
        ),
        completion=lsp.CompletionClientCapabilities(
            dynamic_registration=True,
            completion_item=lsp.ClientCompletionItemOptions(
                snippet_support=False,
                commit_characters_support=True,
                documentation_format=_DOC_FORMATS,
                deprecated_support=False,
                preselect_support=False,
            ),
            context_support=False,
        ),
        signature_help=lsp.SignatureHelpClientCapabilities(dynamic_registration=True),
        declaration=lsp.DeclarationClientCapabilities(
            dynamic_registration=True, link_support=True
        ),
        definition=lsp.DefinitionClientCapabilities(
            dynamic_registration=True, link_support=True
        ),
        type_definition=lsp.TypeDefinitionClientCapabilities(
            dynamic_registration=True, link_support=True
        ),
        implementation=lsp.ImplementationClientCapabilities(
            dynamic_registration=True, link_support=True
        ),
    ),
    workspace=lsp.WorkspaceClientCapabilities(
        did_change_configuration=lsp.DidChangeConfigurationClientCapabilities(
            dynamic_registration=True,
        ),
    ),
)

_LOG_LEVELS = {
    lsp.MessageType.Error: logging.ERROR,
    lsp.MessageType.Warning: logging.WARNING,
    lsp.MessageType.Info: logging.INFO,
    lsp.MessageType.Log: logging.DEBUG,
    lsp.MessageType.Debug: logging.DEBUG,
}


@dataclass
class OpenFile:
    """Handle to a document opened in a workspace."""

    uri: str
    language_id: str
    notification_handlers: dict[str, NotificationHandler] = field(default_factory=dict)
    _workspace: Workspace | None = field(default=None, repr=False)

    @property
    def is_open(self) -> bool:
        return self._workspace is not None and self._workspace.get_open_file(self.uri) is self

    async def did_change(self, version: int, text: str) -> None:
        """Send the full document text as version ``version``."""
        if not self.is_open:
            raise EditorLspError(f"document is closed: {self.uri}")
        assert self._workspace is not None
        await self._workspace.session.send_notification(
            lsp.TEXT_DOCUMENT_DID_CHANGE,
            lsp.DidChangeTextDocumentParams(
                text_document=lsp.VersionedTextDocumentIdentifier(uri=self.uri, version=version),
                content_changes=[lsp.TextDocumentContentChangeWholeDocument(text=text)],
            ),
        )

    async def close(self) -> None:
        """Unregister the document and send didClose.

        The document is gone from the caller's point of view either way, so
        failures to notify the server are only logged.
        """
        if not self.is_open:
            return
        assert self._workspace is not None
        workspace = self._workspace
        workspace._unregister(self.uri)
        try:
            await workspace.session.send_notification(
                lsp.TEXT_DOCUMENT_DID_CLOSE,
                lsp.DidCloseTextDocumentParams(
                    text_document=lsp.TextDocumentIdentifier(uri=self.uri),
                ),
            )
        except Exception as e:
            logger.error(f"failed to send didClose for {self.uri}: {e}")


class Workspace:
    """A negotiated LSP session plus the documents open in it."""

    def __init__(
        self,
        session: TransportSession,
        capabilities: lsp.ServerCapabilities,
        server_info: lsp.ServerInfo | None = None,
    ) -> None:
        self.session = session
        self.capabilities = capabilities
        self.server_info = server_info
        self._open_files: dict[str, OpenFile] = {}
        session.on_notification(self._handle_notification)

    @classmethod
    async def create(
        cls,
        server_uri: str,
        root_uri: str | None,
        workspace_folders: Sequence[lsp.WorkspaceFolder] | None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        connect: Connector = WebSocketConnection.connect,
    ) -> Workspace:
        """Connect to ``server_uri`` and perform the initialize handshake.

        Raises:
            TransportError: The connection could not be established.
            RequestTimeout: The server did not answer ``initialize`` in time.
            JsonRpcException: The server rejected ``initialize``.
        """
        connection = await connect(server_uri)
        session = TransportSession(connection, default_timeout=timeout)

        params = lsp.InitializeParams(
            capabilities=CLIENT_CAPABILITIES,
            process_id=None,
            root_uri=root_uri,
            workspace_folders=list(workspace_folders) if workspace_folders is not None else None,
            initialization_options=None,
        )

        try:
            raw = await session.send_request(
                lsp.INITIALIZE, params, timeout * INITIALIZE_TIMEOUT_FACTOR
            )
            result: lsp.InitializeResult = structure_result(lsp.INITIALIZE, raw)
            await session.send_notification(lsp.INITIALIZED, lsp.InitializedParams())
        except BaseException as e:
            logger.error(f"initialize failed for {server_uri}: {e}")
            await session.close()
            raise

        logger.info(f"server initialized: {result.server_info}")
        return cls(session, result.capabilities, result.server_info)

    @property
    def supports_hover(self) -> bool:
        return bool(self.capabilities.hover_provider)

    @property
    def supports_completion(self) -> bool:
        return self.capabilities.completion_provider is not None

    @property
    def completion_trigger_characters(self) -> list[str]:
        provider = self.capabilities.completion_provider
        if provider is None:
            return []
        return list(provider.trigger_characters or [])

    @property
    def open_uris(self) -> list[str]:
        return list(self._open_files)

    def get_open_file(self, uri: str) -> OpenFile | None:
        return self._open_files.get(uri)

    async def open_file(
        self,
        uri: str,
        language_id: str,
        text: str,
        notification_handlers: dict[str, NotificationHandler] | None = None,
    ) -> OpenFile:
        """Open a document at version 0.

        Raises:
            DocumentAlreadyOpen: ``uri`` is already open in this workspace.
        """
        if uri in self._open_files:
            raise DocumentAlreadyOpen(uri)

        open_file = OpenFile(
            uri=uri,
            language_id=language_id,
            notification_handlers=dict(notification_handlers or {}),
            _workspace=self,
        )
        # Register before awaiting so a concurrent open of the same uri fails.
        self._open_files[uri] = open_file

        try:
            await self.session.send_notification(
                lsp.TEXT_DOCUMENT_DID_OPEN,
                lsp.DidOpenTextDocumentParams(
                    text_document=lsp.TextDocumentItem(
                        uri=uri,
                        language_id=language_id,
                        version=0,
                        text=text,
                    )
                ),
            )
        except BaseException:
            self._unregister(uri)
            raise

        logger.debug(f"opened {uri} ({language_id})")
        return open_file

    async def close(self) -> None:
        """Tear down the session; open documents are dropped without didClose."""
        self._open_files.clear()
        await self.session.close()

    def _unregister(self, uri: str) -> None:
        self._open_files.pop(uri, None)

    def _handle_notification(self, method: str, params: Any) -> None:
        params_type = DOCUMENT_NOTIFICATIONS.get(method)
        if params_type is None:
            if method in (lsp.WINDOW_LOG_MESSAGE, lsp.WINDOW_SHOW_MESSAGE):
                self._handle_log_message(params)
            else:
                logger.debug(f"ignoring notification {method}")
            return

        uri = params.get("uri") if isinstance(params, dict) else None
        open_file = self._open_files.get(uri) if uri is not None else None
        if open_file is None:
            # Diagnostics for a closed or never-opened document.
            logger.debug(f"discarding {method} for {uri}")
            return

        handler = open_file.notification_handlers.get(method)
        if handler is None:
            return
        handler(structure_params(params_type, params))

    def _handle_log_message(self, params: Any) -> None:
        """Forward window/logMessage and window/showMessage to the logger."""
        if not isinstance(params, dict):
            return
        try:
            level = _LOG_LEVELS.get(lsp.MessageType(params.get("type")), logging.DEBUG)
        except ValueError:
            level = logging.DEBUG
        logger.log(level, f"[server] {params.get('message', '')}")

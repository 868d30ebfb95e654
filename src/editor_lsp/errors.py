"""
Exceptions raised by the editor LSP client.

Protocol-level error responses from the server are raised as
``pygls.exceptions.JsonRpcException`` and are not wrapped here.
"""

from __future__ import annotations


class EditorLspError(Exception):
    """Base class for client-side failures."""


class TransportError(EditorLspError):
    """The connection could not be opened or a frame could not be written."""


class SessionClosed(TransportError):
    """The session was closed while a request was outstanding."""


class MalformedMessage(EditorLspError):
    """A payload from the server does not have the expected shape."""


class RequestTimeout(EditorLspError):
    """No response arrived before the request's deadline."""

    def __init__(self, method: str, request_id: str, timeout: float) -> None:
        super().__init__(f"{method} (id={request_id}) timed out after {timeout}s")
        self.method = method
        self.request_id = request_id
        self.timeout = timeout


class DocumentAlreadyOpen(EditorLspError):
    """A document with the same uri is already open in the workspace."""

    def __init__(self, uri: str) -> None:
        super().__init__(f"document already open: {uri}")
        self.uri = uri


class PositionError(EditorLspError, ValueError):
    """A position or offset does not resolve against the document snapshot."""

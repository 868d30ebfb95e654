"""
Configuration consumed when an editor session is created.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from lsprotocol import types as lsp

# Seconds to wait for a response to a steady-state request
DEFAULT_TIMEOUT = 10.0
# Seconds of edit quiescence before a change notification is sent
DEFAULT_DEBOUNCE = 0.5
# Server startup is slower than steady-state requests
INITIALIZE_TIMEOUT_FACTOR = 3

_WEBSOCKET_SCHEMES = ("ws://", "wss://")


@dataclass(frozen=True)
class ClientOptions:
    """Immutable settings for one editor-to-server binding."""

    server_uri: str
    document_uri: str
    language_id: str
    root_uri: str | None = None
    workspace_folders: tuple[lsp.WorkspaceFolder, ...] | None = None
    timeout: float = DEFAULT_TIMEOUT
    debounce: float = DEFAULT_DEBOUNCE

    def __post_init__(self) -> None:
        if not self.server_uri.startswith(_WEBSOCKET_SCHEMES):
            raise ValueError(f"server uri must be ws:// or wss://, got {self.server_uri!r}")
        if not self.document_uri:
            raise ValueError("document uri is required")
        if not self.language_id:
            raise ValueError("language id is required")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.debounce < 0:
            raise ValueError(f"debounce must not be negative, got {self.debounce}")
        if self.workspace_folders is not None and not isinstance(self.workspace_folders, tuple):
            object.__setattr__(self, "workspace_folders", tuple(self.workspace_folders))

    @classmethod
    def from_dict(cls, opts: dict[str, Any]) -> ClientOptions:
        """Build options from the camelCase keys an editor passes."""
        folders = opts.get("workspaceFolders")
        if folders is not None:
            folders = tuple(
                folder
                if isinstance(folder, lsp.WorkspaceFolder)
                else lsp.WorkspaceFolder(uri=folder["uri"], name=folder["name"])
                for folder in folders
            )

        return cls(
            server_uri=opts["serverUri"],
            document_uri=opts["documentUri"],
            language_id=opts["languageId"],
            root_uri=opts.get("rootUri"),
            workspace_folders=folders,
            timeout=float(opts.get("timeout", DEFAULT_TIMEOUT)),
            debounce=float(opts.get("debounce", DEFAULT_DEBOUNCE)),
        )

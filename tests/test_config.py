"""Tests for client options."""

import dataclasses

import pytest
from lsprotocol import types as lsp

from editor_lsp.config import DEFAULT_DEBOUNCE, DEFAULT_TIMEOUT, ClientOptions


def _options(**overrides):
    values = {
        "server_uri": "ws://localhost:3000/lsp",
        "document_uri": "file:///test/doc.py",
        "language_id": "python",
    }
    values.update(overrides)
    return ClientOptions(**values)


class TestClientOptions:
    """Test option validation and defaults."""

    def test_defaults(self):
        options = _options()
        assert options.timeout == DEFAULT_TIMEOUT
        assert options.debounce == DEFAULT_DEBOUNCE
        assert options.root_uri is None
        assert options.workspace_folders is None

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            _options().timeout = 1.0

    def test_secure_websocket_accepted(self):
        assert _options(server_uri="wss://example.com/lsp").server_uri == "wss://example.com/lsp"

    @pytest.mark.parametrize("uri", ["http://localhost:3000", "localhost:3000", ""])
    def test_non_websocket_uri_rejected(self, uri):
        with pytest.raises(ValueError, match="ws://"):
            _options(server_uri=uri)

    def test_empty_document_uri_rejected(self):
        with pytest.raises(ValueError):
            _options(document_uri="")

    def test_empty_language_id_rejected(self):
        with pytest.raises(ValueError):
            _options(language_id="")

    @pytest.mark.parametrize("timeout", [0, -1.0])
    def test_non_positive_timeout_rejected(self, timeout):
        with pytest.raises(ValueError):
            _options(timeout=timeout)

    def test_zero_debounce_allowed(self):
        assert _options(debounce=0).debounce == 0

    def test_negative_debounce_rejected(self):
        with pytest.raises(ValueError):
            _options(debounce=-0.1)

    def test_workspace_folders_become_tuple(self):
        folder = lsp.WorkspaceFolder(uri="file:///test", name="test")
        assert _options(workspace_folders=[folder]).workspace_folders == (folder,)


class TestFromDict:
    """Test building options from editor settings."""

    def test_camel_case_keys(self):
        options = ClientOptions.from_dict({
            "serverUri": "ws://localhost:3000/lsp",
            "documentUri": "file:///test/doc.py",
            "languageId": "python",
            "rootUri": "file:///test",
            "workspaceFolders": [{"uri": "file:///test", "name": "test"}],
            "timeout": 5,
            "debounce": "0.25",
        })

        assert options.root_uri == "file:///test"
        assert options.workspace_folders == (
            lsp.WorkspaceFolder(uri="file:///test", name="test"),
        )
        assert options.timeout == 5.0
        assert options.debounce == 0.25

    def test_defaults(self):
        options = ClientOptions.from_dict({
            "serverUri": "ws://localhost:3000/lsp",
            "documentUri": "file:///test/doc.py",
            "languageId": "python",
        })

        assert options.timeout == DEFAULT_TIMEOUT
        assert options.workspace_folders is None

    def test_missing_required_key(self):
        with pytest.raises(KeyError):
            ClientOptions.from_dict({"serverUri": "ws://localhost:3000/lsp"})

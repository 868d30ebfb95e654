"""Tests for the command-line driver."""

import argparse
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from lsprotocol import types as lsp

from editor_lsp import __version__
from editor_lsp.cli import _format_diagnostic, _parse_position, build_parser, run
from editor_lsp.completions import CompletionCandidate, CompletionResult
from editor_lsp.diagnostics import DiagnosticRecord, Severity
from editor_lsp.errors import TransportError
from editor_lsp.hover import HoverResult
from editor_lsp.positions import TextSnapshot


class TestParsePosition:
    """Test LINE:COL parsing."""

    def test_valid(self):
        assert _parse_position("3:14") == lsp.Position(line=3, character=14)

    @pytest.mark.parametrize("value", ["3", "a:b", "3:", ""])
    def test_invalid(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            _parse_position(value)


class TestParser:
    """Test command-line parsing."""

    def test_defaults(self):
        args = build_parser().parse_args(["doc.py", "--server", "ws://localhost:3000"])

        assert args.server == "ws://localhost:3000"
        assert args.hover is None
        assert args.complete is None
        assert args.wait == 1.0
        assert args.log_level == "WARNING"

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--version"])

        assert capsys.readouterr().out.strip() == f"editor-lsp {__version__}"

    def test_server_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["doc.py"])

    def test_positions(self):
        args = build_parser().parse_args(
            ["doc.py", "--server", "ws://x", "--hover", "0:1", "--complete", "2:3"]
        )

        assert args.hover == lsp.Position(line=0, character=1)
        assert args.complete == lsp.Position(line=2, character=3)


class TestFormatDiagnostic:
    def test_line_and_column(self):
        snapshot = TextSnapshot("import os\nos.pth\n")
        record = DiagnosticRecord(13, 16, Severity.ERROR, "unknown attribute")

        assert _format_diagnostic(snapshot, record) == "1:3: error: unknown attribute"


class TestRun:
    """Test the driver against a mocked session."""

    @pytest.fixture
    def source(self, tmp_path):
        path = tmp_path / "doc.py"
        path.write_text("import os\nos.pth\n", encoding="utf-8")
        return path

    def _args(self, source, *extra):
        return build_parser().parse_args(
            [str(source), "--server", "ws://localhost:3000", "--wait", "0", *extra]
        )

    def _session(self):
        session = MagicMock()
        session.start = AsyncMock()
        session.close = AsyncMock()
        session.request_hover = AsyncMock(return_value=None)
        session.request_completion = AsyncMock(return_value=None)
        session.diagnostics = []
        return session

    @pytest.mark.asyncio
    async def test_invalid_server_uri(self, source):
        args = build_parser().parse_args([str(source), "--server", "http://localhost"])
        assert await run(args) == 2

    @pytest.mark.asyncio
    async def test_start_failure(self, source):
        session = self._session()
        session.start.side_effect = TransportError("refused")

        with patch("editor_lsp.cli.EditorSession", return_value=session):
            assert await run(self._args(source)) == 1

    @pytest.mark.asyncio
    async def test_hover_and_diagnostics(self, source, capsys):
        session = self._session()
        session.request_hover.return_value = HoverResult(10, 12, "module os")
        session.diagnostics = [DiagnosticRecord(13, 16, Severity.WARNING, "unknown attribute")]

        with patch("editor_lsp.cli.EditorSession", return_value=session) as factory:
            assert await run(self._args(source, "--hover", "1:1")) == 0

        options = factory.call_args.args[0]
        assert options.language_id == "python"
        assert options.document_uri.endswith("/doc.py")
        session.request_hover.assert_awaited_once_with(11)
        session.close.assert_awaited_once()
        out = capsys.readouterr().out
        assert "module os" in out
        assert "1:3: warning: unknown attribute" in out

    @pytest.mark.asyncio
    async def test_completion(self, source, capsys):
        session = self._session()
        session.request_completion.return_value = CompletionResult(
            from_offset=13,
            candidates=[CompletionCandidate(label="path", insert_text="path", kind="module")],
        )

        with patch("editor_lsp.cli.EditorSession", return_value=session):
            assert await run(self._args(source, "--complete", "1:5")) == 0

        session.request_completion.assert_awaited_once_with(15, explicit=True)
        assert "path [module]" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_language_id_override(self, source):
        session = self._session()

        with patch("editor_lsp.cli.EditorSession", return_value=session) as factory:
            await run(self._args(source, "--language-id", "cython"))

        assert factory.call_args.args[0].language_id == "cython"

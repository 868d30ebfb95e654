"""
Command-line driver: open one file against a WebSocket language server and
print hover, completion and diagnostic results.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from lsprotocol import types as lsp
from pygls.uris import from_fs_path
from pygls.workspace import TextDocument

from editor_lsp import __version__
from editor_lsp.client import EditorSession
from editor_lsp.config import DEFAULT_DEBOUNCE, DEFAULT_TIMEOUT, ClientOptions
from editor_lsp.diagnostics import DiagnosticRecord
from editor_lsp.errors import EditorLspError
from editor_lsp.positions import TextSnapshot, position_to_offset

# WARNING by default; the results go to stdout, logs to stderr
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# File suffix -> LSP language identifier
LANGUAGE_IDS: dict[str, str] = {
    ".py": "python",
    ".js": "javascript",
    ".ts": "typescript",
    ".rs": "rust",
    ".go": "go",
    ".c": "c",
    ".cpp": "cpp",
    ".java": "java",
    ".sh": "shellscript",
}


def _parse_position(value: str) -> lsp.Position:
    """Parse a zero-based ``LINE:COL`` argument."""
    try:
        line, col = value.split(":", 1)
        return lsp.Position(line=int(line), character=int(col))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected LINE:COL, got {value!r}") from None


def _format_diagnostic(snapshot: TextSnapshot, record: DiagnosticRecord) -> str:
    line = snapshot.line_at(record.start_offset)
    col = record.start_offset - snapshot.line_start(line)
    return f"{line}:{col}: {record.severity.value}: {record.message}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Query a language server for one document",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("file", type=Path, help="Document to open")
    parser.add_argument(
        "--server",
        required=True,
        help="WebSocket address of the language server (ws:// or wss://)",
    )
    parser.add_argument(
        "--root",
        type=Path,
        help="Workspace root directory (default: the file's directory)",
    )
    parser.add_argument(
        "--language-id",
        help="LSP language identifier (default: guessed from the file suffix)",
    )
    parser.add_argument(
        "--hover",
        type=_parse_position,
        metavar="LINE:COL",
        help="Print hover information at a zero-based position",
    )
    parser.add_argument(
        "--complete",
        type=_parse_position,
        metavar="LINE:COL",
        help="Print completions at a zero-based position",
    )
    parser.add_argument(
        "--wait",
        type=float,
        default=1.0,
        help="Seconds to wait for published diagnostics (default: 1.0)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f"Per-request timeout in seconds (default: {DEFAULT_TIMEOUT})",
    )
    parser.add_argument(
        "--debounce",
        type=float,
        default=DEFAULT_DEBOUNCE,
        help=f"Edit debounce window in seconds (default: {DEFAULT_DEBOUNCE})",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Set the logging level (default: WARNING)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"editor-lsp {__version__}",
    )
    return parser


async def run(args: argparse.Namespace) -> int:
    path = args.file.resolve()
    root = (args.root or path.parent).resolve()
    language_id = args.language_id or LANGUAGE_IDS.get(path.suffix, "plaintext")
    uri = from_fs_path(str(path))
    root_uri = from_fs_path(str(root))

    document = TextDocument(uri, source=path.read_text(encoding="utf-8"), language_id=language_id)
    snapshot = TextSnapshot.from_document(document)

    try:
        options = ClientOptions(
            server_uri=args.server,
            document_uri=uri,
            language_id=language_id,
            root_uri=root_uri,
            workspace_folders=(lsp.WorkspaceFolder(uri=root_uri, name=root.name),),
            timeout=args.timeout,
            debounce=args.debounce,
        )
    except ValueError as e:
        logger.error(f"invalid options: {e}")
        return 2
    session = EditorSession(options, text=snapshot.text)

    try:
        await session.start()
    except Exception as e:
        logger.error(f"cannot start session: {e}")
        return 1

    try:
        if args.hover is not None:
            hover = await session.request_hover(position_to_offset(snapshot, args.hover))
            print(hover.text if hover is not None else "(no hover)")

        if args.complete is not None:
            completion = await session.request_completion(
                position_to_offset(snapshot, args.complete), explicit=True
            )
            if completion is None:
                print("(no completions)")
            else:
                for candidate in completion.candidates:
                    kind = f" [{candidate.kind}]" if candidate.kind else ""
                    print(f"{candidate.label}{kind}")

        if args.wait > 0:
            await asyncio.sleep(args.wait)
        for record in session.diagnostics:
            print(_format_diagnostic(snapshot, record))
    except EditorLspError as e:
        logger.error(f"{e}")
        return 1
    finally:
        await session.close()

    return 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the command-line client."""
    args = build_parser().parse_args(argv)

    logging.getLogger().setLevel(getattr(logging, args.log_level))

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()

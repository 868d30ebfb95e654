"""
Hover results mapped onto document offsets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from lsprotocol import types as lsp

from editor_lsp.errors import PositionError
from editor_lsp.positions import TextSnapshot, position_to_offset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HoverResult:
    """Hover text anchored at a document range."""

    start_offset: int
    end_offset: int | None
    text: str


def format_contents(contents: Any) -> str:
    """Flatten hover or documentation contents to text.

    Accepts ``MarkupContent``, a plain string, a ``{language, value}``
    marked string, or a list of marked strings.
    """
    if isinstance(contents, list):
        return "".join(format_contents(part) + "\n\n" for part in contents)
    if isinstance(contents, str):
        return contents
    return contents.value


def map_hover(
    hover: lsp.Hover | None, position: lsp.Position, snapshot: TextSnapshot
) -> HoverResult | None:
    """Anchor ``hover`` in ``snapshot``; ``None`` when it cannot be placed."""
    if hover is None:
        return None

    try:
        if hover.range is not None:
            start = position_to_offset(snapshot, hover.range.start)
            end: int | None = position_to_offset(snapshot, hover.range.end)
        else:
            start = position_to_offset(snapshot, position)
            end = None
    except PositionError as e:
        logger.debug(f"hover position does not resolve: {e}")
        return None

    return HoverResult(start_offset=start, end_offset=end, text=format_contents(hover.contents))

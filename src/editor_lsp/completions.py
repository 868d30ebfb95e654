"""
Completion candidates and their ranking against the text before the cursor.

The token being completed is found with a pattern built from the alphabet of
the candidates themselves, so labels such as ``->`` or ``::`` can match where
a generic word pattern would not.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Sequence

from lsprotocol import types as lsp

from editor_lsp.hover import format_contents

logger = logging.getLogger(__name__)

_WORD = re.compile(r"\w")
_WORD_ONLY = re.compile(r"\w+")


@dataclass(frozen=True)
class CompletionCandidate:
    """An editor-ready completion option."""

    label: str
    insert_text: str
    kind: str | None = None
    sort_key: str = ""
    filter_key: str = ""
    detail: str | None = None
    documentation: str | None = None


@dataclass(frozen=True)
class CompletionResult:
    """Ranked candidates replacing the text from ``from_offset`` to the cursor."""

    from_offset: int
    candidates: list[CompletionCandidate]


def _kind_name(kind: lsp.CompletionItemKind | int | None) -> str | None:
    if kind is None:
        return None
    try:
        return lsp.CompletionItemKind(kind).name.lower()
    except ValueError:
        return None


def candidate_from_item(item: lsp.CompletionItem) -> CompletionCandidate:
    """Convert a protocol completion item."""
    if item.text_edit is not None:
        insert_text = item.text_edit.new_text
    elif item.insert_text is not None:
        insert_text = item.insert_text
    else:
        insert_text = item.label

    return CompletionCandidate(
        label=item.label,
        insert_text=insert_text,
        kind=_kind_name(item.kind),
        sort_key=item.sort_text if item.sort_text is not None else item.label,
        filter_key=item.filter_text if item.filter_text is not None else item.label,
        detail=item.detail,
        documentation=format_contents(item.documentation) if item.documentation else None,
    )


def candidates_from_result(
    result: lsp.CompletionList | list[lsp.CompletionItem] | None,
) -> list[CompletionCandidate] | None:
    """Convert a completion response; ``None`` stays ``None``."""
    if result is None:
        return None
    items = result.items if isinstance(result, lsp.CompletionList) else result
    return [candidate_from_item(item) for item in items]


def _char_class(chars: set[str]) -> str:
    flat = "".join(sorted(chars))
    preamble = ""
    if _WORD.search(flat):
        preamble = r"\w"
        flat = _WORD.sub("", flat)
    return "[" + preamble + "".join(re.escape(ch) for ch in flat) + "]"


def prefix_pattern(candidates: Sequence[CompletionCandidate]) -> re.Pattern[str] | None:
    """Build ``[first][rest]*$`` from the candidates' insert texts.

    Returns ``None`` when no candidate has any text to match.
    """
    first: set[str] = set()
    rest: set[str] = set()
    for candidate in candidates:
        if not candidate.insert_text:
            continue
        first.add(candidate.insert_text[0])
        rest.update(candidate.insert_text[1:])

    if not first:
        return None

    source = _char_class(first)
    if rest:
        source += _char_class(rest) + "*"
    return re.compile(source + "$")


def rank_candidates(
    candidates: Sequence[CompletionCandidate], text_before_cursor: str, cursor: int
) -> CompletionResult:
    """Filter and order ``candidates`` for the token ending at ``cursor``.

    ``text_before_cursor`` is the line text up to the cursor.  When the token
    is made of word characters only, candidates whose filter key does not
    start with it (ignoring case) are dropped, and candidates whose insert
    text starts with it in exact case come first.  Ties keep server order.
    """
    options = list(candidates)
    pattern = prefix_pattern(options)
    match = pattern.search(text_before_cursor) if pattern is not None else None

    if match is None or not match.group():
        return CompletionResult(from_offset=cursor, candidates=options)

    token = match.group()
    from_offset = cursor - len(token)

    if _WORD_ONLY.fullmatch(token):
        word = token.lower()
        options = [c for c in options if c.filter_key.lower().startswith(word)]
        options.sort(key=lambda c: 0 if c.insert_text.startswith(token) else 1)

    logger.debug(f"ranked {len(options)} of {len(candidates)} candidates for {token!r}")
    return CompletionResult(from_offset=from_offset, candidates=options)

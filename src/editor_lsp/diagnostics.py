"""
Mapping of published diagnostics onto document offsets.

Each publish event produces the complete set for its document; callers
replace whatever they showed before instead of merging.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Iterable

from lsprotocol import types as lsp

from editor_lsp.errors import PositionError
from editor_lsp.positions import TextSnapshot, position_to_offset

logger = logging.getLogger(__name__)


class Severity(str, enum.Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class DiagnosticRecord:
    """A diagnostic resolved to offsets in one document snapshot."""

    start_offset: int
    end_offset: int
    severity: Severity
    message: str
    source: str | None = None
    code: int | str | None = None


def map_severity(severity: lsp.DiagnosticSeverity | None) -> Severity:
    """Hints, information and missing severities all show as info."""
    if severity == lsp.DiagnosticSeverity.Error:
        return Severity.ERROR
    if severity == lsp.DiagnosticSeverity.Warning:
        return Severity.WARNING
    return Severity.INFO


def map_diagnostics(
    diagnostics: Iterable[lsp.Diagnostic], snapshot: TextSnapshot
) -> list[DiagnosticRecord]:
    """Resolve ``diagnostics`` against ``snapshot``, ordered by start offset.

    Diagnostics whose start or end does not resolve are dropped.  The sort
    is stable, so diagnostics starting at the same offset keep server order.
    """
    records: list[DiagnosticRecord] = []
    for diag in diagnostics:
        try:
            start = position_to_offset(snapshot, diag.range.start)
            end = position_to_offset(snapshot, diag.range.end)
        except PositionError as e:
            logger.debug(f"dropping diagnostic {diag.message!r}: {e}")
            continue

        records.append(
            DiagnosticRecord(
                start_offset=start,
                end_offset=end,
                severity=map_severity(diag.severity),
                message=diag.message,
                source=diag.source,
                code=diag.code,
            )
        )

    records.sort(key=lambda record: record.start_offset)
    return records

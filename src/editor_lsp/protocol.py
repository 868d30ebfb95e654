"""
JSON-RPC payload codec built on the lsprotocol cattrs converter.

Outgoing parameters may be lsprotocol attrs objects or plain JSON values.
Incoming results and notification params are structured back into
lsprotocol types keyed by method name.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

from lsprotocol import types as lsp
from lsprotocol.converters import get_converter

from editor_lsp.errors import MalformedMessage

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"


def to_payload(value: Any) -> Any:
    """Unstructure ``value`` into JSON-compatible data."""
    if value is None:
        return None
    return converter.unstructure(value)


def structure_result(method: str, result: Any) -> Any:
    """Structure a raw response ``result`` for ``method``.

    Raises:
        MalformedMessage: The payload does not match the method's result type.
    """
    types = lsp.METHOD_TO_TYPES.get(method)
    if types is None or types[1] is None:
        return result
    try:
        response = converter.structure(
            {"jsonrpc": JSONRPC_VERSION, "id": 0, "result": result}, types[1]
        )
    except Exception as e:
        raise MalformedMessage(f"invalid {method} result: {e}") from e
    return response.result


def structure_params(params_type: type, params: Any) -> Any:
    """Structure raw notification ``params`` into ``params_type``."""
    try:
        return converter.structure(params, params_type)
    except Exception as e:
        raise MalformedMessage(f"invalid {params_type.__name__}: {e}") from e


# ---------------------------------------------------------------------------
# Workaround for lsprotocol issue #430: the cattrs converter is missing a
# structure hook for the Optional variant of the notebook document filter
# union.  Servers advertising notebookDocumentSync capabilities in their
# initialize result trigger this.
# ---------------------------------------------------------------------------
_NotebookFilterUnion = Optional[
    Union[
        str,
        lsp.NotebookDocumentFilterNotebookType,
        lsp.NotebookDocumentFilterScheme,
        lsp.NotebookDocumentFilterPattern,
    ]
]


def _patch_converter(converter: Any) -> None:
    """Register missing lsprotocol cattrs hooks on *converter*."""

    def _notebook_filter_hook(obj: Any, _: Any) -> Any:
        if obj is None:
            return None
        if isinstance(obj, str):
            return obj
        if "notebookType" in obj:
            return converter.structure(obj, lsp.NotebookDocumentFilterNotebookType)
        if "scheme" in obj:
            return converter.structure(obj, lsp.NotebookDocumentFilterScheme)
        return converter.structure(obj, lsp.NotebookDocumentFilterPattern)

    converter.register_structure_hook(_NotebookFilterUnion, _notebook_filter_hook)


converter = get_converter()
_patch_converter(converter)

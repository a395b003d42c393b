"""
Index status derivation for scanned files.

Combines the cached backend records with the locally tracked in-flight set.
"""

from collections.abc import Mapping, Set
from typing import Any, Optional

from scancore.core.models import IndexedFile, IndexStatus

_FINE_MARKER = "_fine"
_FAST_MARKER = "_fast"


def _mode_from_metadata(metadata: Mapping[str, Any]) -> Optional[IndexStatus]:
    """
    Infer fast/deep mode from backend metadata.

    ``chunk_strategy`` wins over ``pdf_vision_mode``; values of an
    unexpected type are ignored.
    """
    strategy = metadata.get("chunk_strategy")
    if isinstance(strategy, str) and strategy:
        if _FINE_MARKER in strategy:
            return IndexStatus.DEEP
        if _FAST_MARKER in strategy:
            return IndexStatus.FAST

    vision_mode = metadata.get("pdf_vision_mode")
    if vision_mode == "deep":
        return IndexStatus.DEEP
    if vision_mode == "fast":
        return IndexStatus.FAST
    return None


def derive_index_status(
    path: str,
    indexed: Mapping[str, IndexedFile],
    in_flight: Set[str] = frozenset(),
) -> IndexStatus:
    """
    Derive the index status of a scanned file.

    Precedence: in-flight, missing record, backend error, metadata mode,
    then FAST for any other existing record.
    """
    if path in in_flight:
        return IndexStatus.PENDING

    record = indexed.get(path)
    if record is None:
        return IndexStatus.NOT_INDEXED

    if record.index_status == "error":
        return IndexStatus.ERROR

    metadata = record.metadata if isinstance(record.metadata, Mapping) else {}
    return _mode_from_metadata(metadata) or IndexStatus.FAST

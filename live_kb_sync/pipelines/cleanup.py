"""Retirement of stale live copies in the vector store.

The uploaded file id changes on every refresh, so earlier copies of the live
document are found by their identity attribute, or by filename for copies
uploaded without one. Deletion is best effort: each failure is recorded and
the remaining copies are still processed.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from ..core.errors import DeleteFailed
from .vector_store import IndexedFileRef, VectorStoreClient

logger = logging.getLogger(__name__)


def is_live_copy(filename: Optional[str], live_filename: str, marker: str) -> bool:
    """True when ``filename`` names a copy of the live document.

    Matches the canonical live filename exactly, or any name containing the
    stable marker token. Comparison is case-insensitive.
    """
    if not filename:
        return False
    name = filename.lower()
    return name == live_filename.lower() or (bool(marker) and marker.lower() in name)


def is_live_ref(
    ref: IndexedFileRef,
    filename: Optional[str],
    *,
    live_filename: str,
    marker: str,
    tag_key: Optional[str] = None,
) -> bool:
    """Classify a vector store file, preferring the explicit identity attribute."""
    if tag_key and ref.attributes.get(tag_key) == marker:
        return True
    return is_live_copy(filename, live_filename, marker)


@dataclass(frozen=True)
class DeletedCopy:
    id: str
    filename: str


@dataclass(frozen=True)
class FailedDelete:
    id: str
    filename: str
    error: str


@dataclass(frozen=True)
class CleanupSummary:
    """Accumulator of one cleanup pass."""

    scanned: int = 0
    deleted: Tuple[DeletedCopy, ...] = field(default_factory=tuple)
    failed: Tuple[FailedDelete, ...] = field(default_factory=tuple)

    @property
    def matched(self) -> int:
        return len(self.deleted) + len(self.failed)

    def with_deleted(self, copy: DeletedCopy) -> "CleanupSummary":
        return replace(self, deleted=self.deleted + (copy,))

    def with_failed(self, failure: FailedDelete) -> "CleanupSummary":
        return replace(self, failed=self.failed + (failure,))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scanned": self.scanned,
            "deleted": [{"id": d.id, "filename": d.filename} for d in self.deleted],
            "failed": [
                {"id": f.id, "filename": f.filename, "error": f.error} for f in self.failed
            ],
        }


async def find_live_copies(
    client: VectorStoreClient,
    store_id: str,
    *,
    live_filename: str,
    marker: str,
    tag_key: Optional[str] = None,
    limit: int = 100,
) -> Tuple[int, List[Tuple[IndexedFileRef, str]]]:
    """List the store and return ``(scanned, [(ref, filename), ...])`` for live copies.

    A listing failure propagates; classification never raises.
    """
    refs = await client.list_store_files(store_id, limit=limit)

    matches = []
    for ref in refs:
        filename = await client.resolve_filename(ref)
        if is_live_ref(ref, filename, live_filename=live_filename, marker=marker, tag_key=tag_key):
            matches.append((ref, filename))
    return len(refs), matches


async def cleanup_live_copies(
    client: VectorStoreClient,
    store_id: str,
    *,
    live_filename: str,
    marker: str,
    tag_key: Optional[str] = None,
    limit: int = 100,
) -> CleanupSummary:
    """Delete every live copy currently in the store, folding results into a summary."""
    scanned, matches = await find_live_copies(
        client,
        store_id,
        live_filename=live_filename,
        marker=marker,
        tag_key=tag_key,
        limit=limit,
    )
    logger.info(f"Cleanup: {len(matches)} live copies among {scanned} store files")

    summary = CleanupSummary(scanned=scanned)
    for ref, filename in matches:
        summary = await _delete_one(client, store_id, ref, filename or "(unknown)", summary)

    logger.info(
        f"Cleanup finished: {len(summary.deleted)} deleted, {len(summary.failed)} failed"
    )
    return summary


async def _delete_one(
    client: VectorStoreClient,
    store_id: str,
    ref: IndexedFileRef,
    filename: str,
    summary: CleanupSummary,
) -> CleanupSummary:
    logger.info(f"Deleting from vector store: {filename} (id={ref.id})")
    try:
        await client.delete_store_file(store_id, ref.id)
    except DeleteFailed as e:
        logger.warning(f"Delete failed for {filename} (id={ref.id}), skipping: {e}")
        return summary.with_failed(FailedDelete(id=ref.id, filename=filename, error=str(e)))
    return summary.with_deleted(DeletedCopy(id=ref.id, filename=filename))

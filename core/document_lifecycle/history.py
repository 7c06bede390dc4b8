"""
Salesdocs Document Lifecycle - History Projector
================================================
Read projection of stored versions for the versions-and-status list.

Doctrine:
- Pure mapping: no writes, no caching here.
- Entries are ordered newest version first, one entry per version.
- More than one current entry per type is never resolved by picking
  one; it raises StructuralInconsistency.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Optional

from core.documents.blobs import URL_MODE_DOWNLOAD, URL_MODE_VIEW, BlobStore
from core.documents.errors import StructuralInconsistency
from core.documents.models import HistoryEntry, StoredDocument


class HistoryProjector:
    def __init__(self, blob_store: Optional[BlobStore] = None):
        self._blob_store = blob_store

    def _entry(self, row: StoredDocument) -> HistoryEntry:
        view_url = download_url = None
        if self._blob_store is not None:
            view_url = self._blob_store.url_for(row.artifact_file_id, URL_MODE_VIEW)
            download_url = self._blob_store.url_for(row.artifact_file_id, URL_MODE_DOWNLOAD)
        return HistoryEntry(
            document_id=row.document_id,
            document_type=row.document_type,
            number=row.number,
            version=row.version,
            created_at=row.created_at,
            gross_amount=row.gross_amount,
            is_current=row.is_current,
            is_voided=row.is_voided,
            void_reason=row.void_reason,
            file_name=row.artifact_file_name,
            view_url=view_url,
            download_url=download_url,
            number_is_fallback=row.number_is_fallback,
        )

    def project(self, stored_documents: Iterable[StoredDocument]) -> tuple[HistoryEntry, ...]:
        rows = tuple(stored_documents)

        seen: set[tuple[str, str, int]] = set()
        current_per_key: dict[tuple[str, str], int] = defaultdict(int)
        for row in rows:
            marker = (row.project_id, row.document_type, row.version)
            if marker in seen:
                raise StructuralInconsistency(
                    row.project_id, row.document_type, f"version {row.version} appears twice"
                )
            seen.add(marker)
            if row.is_current:
                current_per_key[row.key()] += 1
        for (project_id, document_type), count in current_per_key.items():
            if count > 1:
                raise StructuralInconsistency(
                    project_id, document_type, f"{count} versions are marked current"
                )

        ordered = sorted(
            rows,
            key=lambda row: (row.version, row.created_at),
            reverse=True,
        )
        return tuple(self._entry(row) for row in ordered)


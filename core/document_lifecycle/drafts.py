"""
Salesdocs Document Lifecycle - Draft Store
==========================================
Key/value persistence of unfinalized document payloads.

Doctrine:
- One row per (project_id, document_type); every save replaces it whole.
- The store does not know whether a finalized version exists. Keeping
  drafts from being written after finalize is the controller's job.
"""

from __future__ import annotations

import threading
from typing import Optional, Protocol

from core.documents.models import DocumentPayload, DraftRecord, validate_document_type
from core.time.clock import Clock, SystemClock


class DraftStore(Protocol):
    def save_draft(self, project_id: str, document_type: str, payload: DocumentPayload) -> None:
        """Overwrite the draft for the key."""
        ...

    def load_draft(self, project_id: str, document_type: str) -> Optional[DocumentPayload]:
        """Return the draft payload for the key, or None."""
        ...

    def discard_draft(self, project_id: str, document_type: str) -> None:
        """Drop the draft for the key, if any."""
        ...


class InMemoryDraftStore:
    """Thread-safe in-memory draft store."""

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._drafts: dict[tuple[str, str], DraftRecord] = {}

    def save_draft(self, project_id: str, document_type: str, payload: DocumentPayload) -> None:
        validate_document_type(document_type)
        record = DraftRecord(
            project_id=project_id,
            document_type=document_type,
            payload=payload,
            saved_at=self._clock.now_utc(),
        )
        with self._lock:
            self._drafts[(project_id, document_type)] = record

    def load_draft(self, project_id: str, document_type: str) -> Optional[DocumentPayload]:
        record = self.load_record(project_id, document_type)
        return record.payload if record is not None else None

    def load_record(self, project_id: str, document_type: str) -> Optional[DraftRecord]:
        with self._lock:
            return self._drafts.get((project_id, document_type))

    def discard_draft(self, project_id: str, document_type: str) -> None:
        with self._lock:
            self._drafts.pop((project_id, document_type), None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._drafts)

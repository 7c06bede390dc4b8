"""
Salesdocs Document Lifecycle - Document Repository
==================================================
Versioned, append-only store of finalized documents per
(project_id, document_type).

Doctrine:
- Versions start at 1 and grow by exactly 1 per commit. No gaps, no reuse.
- Exactly one row per key is current. The is_current flip on the previous
  row happens in the same atomic step as the new insert.
- Invoices and credit notes accept version 1 only (sealed).
- Rows are never deleted. Voiding an invoice is the only other in-place
  change, and only together with committing its credit note.
- gross_amount is stored as submitted; it is never recomputed here.
- Reads verify structure and snapshot hashes; violations raise
  StructuralInconsistency instead of being repaired.
"""

from __future__ import annotations

import hmac
import logging
import threading
import uuid
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from core.documents.errors import (
    AlreadyFinalized,
    LifecycleError,
    SealedDocument,
    StructuralInconsistency,
)
from core.documents.models import (
    DOCUMENT_CREDIT_NOTE,
    DOCUMENT_INVOICE,
    DocumentPayload,
    StoredDocument,
    artifact_file_name as default_file_name,
    is_sealed_type,
    validate_document_type,
)
from core.time.clock import Clock, SystemClock

logger = logging.getLogger("salesdocs.repository")


class DocumentRepository(Protocol):
    def commit_first_version(
        self,
        project_id: str,
        document_type: str,
        payload: DocumentPayload,
        artifact_file_id: str,
        number: str,
        gross_amount: Optional[Decimal],
        *,
        file_name: Optional[str] = None,
        number_is_fallback: bool = False,
    ) -> StoredDocument:
        ...

    def commit_next_version(
        self,
        project_id: str,
        document_type: str,
        payload: DocumentPayload,
        artifact_file_id: str,
        gross_amount: Optional[Decimal],
        *,
        file_name: Optional[str] = None,
    ) -> StoredDocument:
        ...

    def get_current(self, project_id: str, document_type: str) -> Optional[StoredDocument]:
        ...

    def list_history(self, project_id: str, document_type: str) -> tuple[StoredDocument, ...]:
        ...

    def void_invoice(
        self,
        project_id: str,
        *,
        credit_note_payload: DocumentPayload,
        artifact_file_id: str,
        number: str,
        gross_amount: Optional[Decimal],
        void_reason: str,
        file_name: Optional[str] = None,
        number_is_fallback: bool = False,
    ) -> StoredDocument:
        ...

    def number_exists(self, document_type: str, number: str) -> bool:
        ...


# ══════════════════════════════════════════════════════════════
# SHARED RULES (used by every backend)
# ══════════════════════════════════════════════════════════════

def build_stored_document(
    *,
    project_id: str,
    document_type: str,
    payload: DocumentPayload,
    number: str,
    version: int,
    artifact_file_id: str,
    gross_amount: Optional[Decimal],
    created_at: datetime,
    file_name: Optional[str] = None,
    number_is_fallback: bool = False,
    document_id: Optional[str] = None,
) -> StoredDocument:
    """Build the row for a new version. The snapshot always carries the number."""
    if payload.document_type != document_type:
        raise ValueError(
            f"payload is a {payload.document_type}, cannot be stored as {document_type}."
        )
    if payload.number != number:
        payload = payload.with_number(number)
    return StoredDocument(
        document_id=document_id or uuid.uuid4().hex,
        project_id=project_id,
        document_type=document_type,
        number=number,
        version=version,
        data_snapshot=payload,
        snapshot_hash=payload.snapshot_hash(),
        artifact_file_id=artifact_file_id,
        artifact_file_name=file_name or default_file_name(document_type, number),
        created_at=created_at,
        gross_amount=gross_amount,
        is_current=True,
        number_is_fallback=number_is_fallback,
    )


def check_structure(
    project_id: str,
    document_type: str,
    rows: Sequence[StoredDocument],
    *,
    verify_hashes: bool = True,
) -> tuple[StoredDocument, ...]:
    """
    Validate the rows of one key and return them ordered by version descending.

    Raises StructuralInconsistency on: more than one current row, no
    current row, version gaps or repeats, a second version of a sealed
    type, or a snapshot hash mismatch.
    """
    ordered = tuple(sorted(rows, key=lambda row: row.version, reverse=True))
    if not ordered:
        return ordered

    versions = sorted(row.version for row in ordered)
    if versions != list(range(1, len(versions) + 1)):
        raise StructuralInconsistency(
            project_id, document_type, f"versions are not contiguous from 1: {versions}"
        )

    current = [row for row in ordered if row.is_current]
    if len(current) != 1:
        raise StructuralInconsistency(
            project_id, document_type, f"expected exactly one current version, found {len(current)}"
        )
    if current[0] is not ordered[0]:
        raise StructuralInconsistency(
            project_id,
            document_type,
            f"current version {current[0].version} is not the latest ({ordered[0].version})",
        )

    if is_sealed_type(document_type) and len(ordered) > 1:
        raise StructuralInconsistency(
            project_id, document_type, f"sealed type has {len(ordered)} versions"
        )

    if verify_hashes:
        for row in ordered:
            if not hmac.compare_digest(row.data_snapshot.snapshot_hash(), row.snapshot_hash):
                raise StructuralInconsistency(
                    project_id,
                    document_type,
                    f"snapshot hash mismatch on version {row.version}",
                )
    return ordered


# ══════════════════════════════════════════════════════════════
# IN-MEMORY BACKEND
# ══════════════════════════════════════════════════════════════

class InMemoryDocumentRepository:
    """
    Thread-safe in-memory repository.
    Used in tests and bootstrap.

    A single lock makes every commit atomic: the new row and the
    is_current flip become visible together.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or SystemClock()
        self._lock = threading.RLock()
        self._rows: dict[tuple[str, str], list[StoredDocument]] = {}

    def _key_rows(self, project_id: str, document_type: str) -> list[StoredDocument]:
        return self._rows.setdefault((project_id, document_type), [])

    def _checked(self, project_id: str, document_type: str) -> tuple[StoredDocument, ...]:
        return check_structure(project_id, document_type, self._rows.get((project_id, document_type), ()))

    def commit_first_version(
        self,
        project_id: str,
        document_type: str,
        payload: DocumentPayload,
        artifact_file_id: str,
        number: str,
        gross_amount: Optional[Decimal],
        *,
        file_name: Optional[str] = None,
        number_is_fallback: bool = False,
    ) -> StoredDocument:
        validate_document_type(document_type)
        with self._lock:
            if self._checked(project_id, document_type):
                raise AlreadyFinalized(project_id, document_type)
            row = build_stored_document(
                project_id=project_id,
                document_type=document_type,
                payload=payload,
                number=number,
                version=1,
                artifact_file_id=artifact_file_id,
                gross_amount=gross_amount,
                created_at=self._clock.now_utc(),
                file_name=file_name,
                number_is_fallback=number_is_fallback,
            )
            self._key_rows(project_id, document_type).append(row)
        logger.info(f"Committed {document_type} {number} v1 for project {project_id}")
        return row

    def commit_next_version(
        self,
        project_id: str,
        document_type: str,
        payload: DocumentPayload,
        artifact_file_id: str,
        gross_amount: Optional[Decimal],
        *,
        file_name: Optional[str] = None,
    ) -> StoredDocument:
        validate_document_type(document_type)
        if is_sealed_type(document_type):
            raise SealedDocument(project_id, document_type)
        with self._lock:
            history = self._checked(project_id, document_type)
            if not history:
                raise LifecycleError(
                    f"{document_type} of project {project_id} has no version 1 to follow."
                )
            previous = history[0]
            row = build_stored_document(
                project_id=project_id,
                document_type=document_type,
                payload=payload,
                number=previous.number,
                version=previous.version + 1,
                artifact_file_id=artifact_file_id,
                gross_amount=gross_amount,
                created_at=self._clock.now_utc(),
                file_name=file_name,
                number_is_fallback=previous.number_is_fallback,
            )
            rows = self._key_rows(project_id, document_type)
            rows[rows.index(previous)] = replace(previous, is_current=False)
            rows.append(row)
        logger.info(
            f"Committed {document_type} {row.number} v{row.version} for project {project_id}"
        )
        return row

    def get_current(self, project_id: str, document_type: str) -> Optional[StoredDocument]:
        validate_document_type(document_type)
        with self._lock:
            history = self._checked(project_id, document_type)
        return history[0] if history else None

    def list_history(self, project_id: str, document_type: str) -> tuple[StoredDocument, ...]:
        validate_document_type(document_type)
        with self._lock:
            return self._checked(project_id, document_type)

    def void_invoice(
        self,
        project_id: str,
        *,
        credit_note_payload: DocumentPayload,
        artifact_file_id: str,
        number: str,
        gross_amount: Optional[Decimal],
        void_reason: str,
        file_name: Optional[str] = None,
        number_is_fallback: bool = False,
    ) -> StoredDocument:
        if not void_reason or not void_reason.strip():
            raise ValueError("void_reason must be a non-empty string.")
        with self._lock:
            invoices = self._checked(project_id, DOCUMENT_INVOICE)
            if not invoices:
                raise LifecycleError(f"Project {project_id} has no invoice to void.")
            if self._checked(project_id, DOCUMENT_CREDIT_NOTE):
                raise AlreadyFinalized(project_id, DOCUMENT_CREDIT_NOTE)
            invoice = invoices[0]
            credit_note = build_stored_document(
                project_id=project_id,
                document_type=DOCUMENT_CREDIT_NOTE,
                payload=credit_note_payload,
                number=number,
                version=1,
                artifact_file_id=artifact_file_id,
                gross_amount=gross_amount,
                created_at=self._clock.now_utc(),
                file_name=file_name,
                number_is_fallback=number_is_fallback,
            )
            rows = self._key_rows(project_id, DOCUMENT_INVOICE)
            rows[rows.index(invoice)] = replace(invoice, is_voided=True, void_reason=void_reason)
            self._key_rows(project_id, DOCUMENT_CREDIT_NOTE).append(credit_note)
        logger.info(f"Voided invoice {invoice.number} of project {project_id} by {number}")
        return credit_note

    def number_exists(self, document_type: str, number: str) -> bool:
        with self._lock:
            return any(
                row.number == number
                for (_, row_type), rows in self._rows.items()
                if row_type == document_type
                for row in rows
            )


"""
Salesdocs Document Lifecycle - Django Repository
================================================
ORM implementations of DocumentRepository, DraftStore and
NumberingProvider.

Every commit runs inside transaction.atomic() and locks the key's rows
with select_for_update(), so the new version and the is_current flip
commit together. Database constraints back up the same rules.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from django.db import IntegrityError, transaction

from core.document_lifecycle.persistence.models import (
    DraftRecordRow,
    NumberSequenceRow,
    StoredDocumentRecord,
)
from core.document_lifecycle.repository import build_stored_document, check_structure
from core.documents.errors import (
    AlreadyFinalized,
    LifecycleError,
    SealedDocument,
)
from core.documents.models import (
    DOCUMENT_CREDIT_NOTE,
    DOCUMENT_INVOICE,
    DocumentPayload,
    StoredDocument,
    is_sealed_type,
    validate_document_type,
)
from core.documents.numbering.engine import SequenceState
from core.documents.numbering.models import NumberingPolicy, default_policies
from core.time.clock import Clock, SystemClock

logger = logging.getLogger("salesdocs.repository")

UNIQUE_CURRENT_CONSTRAINT = "uq_doc_key_current"
UNIQUE_VERSION_CONSTRAINT = "uq_doc_key_version"


def _to_domain(record: StoredDocumentRecord) -> StoredDocument:
    return StoredDocument(
        document_id=record.document_id,
        project_id=record.project_id,
        document_type=record.document_type,
        number=record.number,
        version=record.version,
        data_snapshot=DocumentPayload.from_dict(record.data_snapshot),
        snapshot_hash=record.snapshot_hash,
        artifact_file_id=record.artifact_file_id,
        artifact_file_name=record.artifact_file_name,
        created_at=record.created_at,
        gross_amount=record.gross_amount,
        is_current=record.is_current,
        is_voided=record.is_voided,
        void_reason=record.void_reason,
        number_is_fallback=record.number_is_fallback,
    )


def _record_fields(row: StoredDocument) -> dict:
    return {
        "document_id": row.document_id,
        "project_id": row.project_id,
        "document_type": row.document_type,
        "number": row.number,
        "number_is_fallback": row.number_is_fallback,
        "version": row.version,
        "data_snapshot": row.data_snapshot.to_dict(),
        "snapshot_hash": row.snapshot_hash,
        "artifact_file_id": row.artifact_file_id,
        "artifact_file_name": row.artifact_file_name,
        "gross_amount": row.gross_amount,
        "created_at": row.created_at,
        "is_current": row.is_current,
        "is_voided": row.is_voided,
        "void_reason": row.void_reason,
    }


def _is_key_conflict(exc: IntegrityError) -> bool:
    message = str(exc)
    if UNIQUE_CURRENT_CONSTRAINT in message or UNIQUE_VERSION_CONSTRAINT in message:
        return True
    # SQLite reports the columns instead of the constraint name.
    return "UNIQUE constraint failed" in message and "salesdocs_stored_document" in message


class DjangoDocumentRepository:
    """DocumentRepository backed by StoredDocumentRecord."""

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or SystemClock()

    def _records(self, project_id: str, document_type: str, *, lock: bool = False) -> list:
        query = StoredDocumentRecord.objects.filter(
            project_id=project_id, document_type=document_type
        ).order_by("-version")
        if lock:
            query = query.select_for_update()
        return list(query)

    def _history(self, project_id: str, document_type: str, records: list) -> tuple[StoredDocument, ...]:
        return check_structure(project_id, document_type, [_to_domain(r) for r in records])

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
        try:
            with transaction.atomic():
                records = self._records(project_id, document_type, lock=True)
                if self._history(project_id, document_type, records):
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
                StoredDocumentRecord.objects.create(**_record_fields(row))
        except IntegrityError as exc:
            if _is_key_conflict(exc):
                raise AlreadyFinalized(project_id, document_type) from exc
            raise
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
        with transaction.atomic():
            records = self._records(project_id, document_type, lock=True)
            history = self._history(project_id, document_type, records)
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
            previous_record = next(r for r in records if r.version == previous.version)
            previous_record.is_current = False
            previous_record.save(update_fields=["is_current"])
            StoredDocumentRecord.objects.create(**_record_fields(row))
        logger.info(
            f"Committed {document_type} {row.number} v{row.version} for project {project_id}"
        )
        return row

    def get_current(self, project_id: str, document_type: str) -> Optional[StoredDocument]:
        history = self.list_history(project_id, document_type)
        return history[0] if history else None

    def list_history(self, project_id: str, document_type: str) -> tuple[StoredDocument, ...]:
        validate_document_type(document_type)
        return self._history(project_id, document_type, self._records(project_id, document_type))

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
        try:
            with transaction.atomic():
                invoice_records = self._records(project_id, DOCUMENT_INVOICE, lock=True)
                invoices = self._history(project_id, DOCUMENT_INVOICE, invoice_records)
                if not invoices:
                    raise LifecycleError(f"Project {project_id} has no invoice to void.")
                credit_records = self._records(project_id, DOCUMENT_CREDIT_NOTE, lock=True)
                if credit_records:
                    raise AlreadyFinalized(project_id, DOCUMENT_CREDIT_NOTE)
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
                StoredDocumentRecord.objects.create(**_record_fields(credit_note))
                invoice_record = invoice_records[0]
                invoice_record.is_voided = True
                invoice_record.void_reason = void_reason
                invoice_record.save(update_fields=["is_voided", "void_reason"])
        except IntegrityError as exc:
            if _is_key_conflict(exc):
                raise AlreadyFinalized(project_id, DOCUMENT_CREDIT_NOTE) from exc
            raise
        logger.info(f"Voided invoice {invoices[0].number} of project {project_id} by {number}")
        return credit_note

    def number_exists(self, document_type: str, number: str) -> bool:
        return StoredDocumentRecord.objects.filter(document_type=document_type, number=number).exists()


class DjangoDraftStore:
    """DraftStore backed by DraftRecordRow (one row per key, overwritten)."""

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or SystemClock()

    def save_draft(self, project_id: str, document_type: str, payload: DocumentPayload) -> None:
        validate_document_type(document_type)
        if payload.document_type != document_type:
            raise ValueError("draft payload document_type does not match key.")
        DraftRecordRow.objects.update_or_create(
            project_id=project_id,
            document_type=document_type,
            defaults={"payload": payload.to_dict(), "saved_at": self._clock.now_utc()},
        )

    def load_draft(self, project_id: str, document_type: str) -> Optional[DocumentPayload]:
        row = DraftRecordRow.objects.filter(project_id=project_id, document_type=document_type).first()
        if row is None:
            return None
        return DocumentPayload.from_dict(row.payload)

    def saved_at(self, project_id: str, document_type: str) -> Optional[datetime]:
        return (
            DraftRecordRow.objects.filter(project_id=project_id, document_type=document_type)
            .values_list("saved_at", flat=True)
            .first()
        )

    def discard_draft(self, project_id: str, document_type: str) -> None:
        DraftRecordRow.objects.filter(project_id=project_id, document_type=document_type).delete()


class DjangoNumberingProvider:
    """
    NumberingProvider backed by NumberSequenceRow.

    get_and_advance locks the document type's row, so concurrent callers
    receive distinct numbers.
    """

    def __init__(self, policies: tuple[NumberingPolicy, ...] = ()):
        self._policies = {policy.document_type: policy for policy in policies or default_policies()}

    def get_policy(self, document_type: str) -> Optional[NumberingPolicy]:
        return self._policies.get(document_type)

    def get_and_advance(self, *, policy: NumberingPolicy, issued_at: datetime) -> str:
        with transaction.atomic():
            row = (
                NumberSequenceRow.objects.select_for_update()
                .filter(document_type=policy.document_type)
                .first()
            )
            if row is None:
                row = NumberSequenceRow.objects.create(
                    document_type=policy.document_type,
                    season=None,
                    next_sequence=policy.start_at,
                )
            state = SequenceState(
                policy,
                current_season=row.season,
                current_sequence=row.next_sequence,
            )
            number, new_state = state.next_number(issued_at)
            row.season = new_state.current_season
            row.next_sequence = new_state.current_sequence
            row.save(update_fields=["season", "next_sequence"])
        return number

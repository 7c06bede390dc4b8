"""
Salesdocs Document Repository Tests
===================================
Versioning, sealing, voiding and structural checks of the in-memory
repository, plus the history and project status projections.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from core.document_lifecycle.history import HistoryProjector
from core.document_lifecycle.repository import (
    InMemoryDocumentRepository,
    build_stored_document,
    check_structure,
)
from core.document_lifecycle.status import ProjectStatus, ProjectStatusProjector
from core.documents.blobs import InMemoryBlobStore
from core.documents.errors import (
    AlreadyFinalized,
    LifecycleError,
    SealedDocument,
    StructuralInconsistency,
    UnknownDocumentType,
)
from core.documents.models import (
    DOCUMENT_CREDIT_NOTE,
    DOCUMENT_DELIVERY_NOTE,
    DOCUMENT_INVOICE,
    DOCUMENT_ORDER_CONFIRMATION,
    DOCUMENT_QUOTE,
    DocumentPayload,
    PricedLineItem,
)
from core.time.clock import FixedClock

NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


def _payload(document_type=DOCUMENT_QUOTE, quantity=5):
    return DocumentPayload(
        document_type=document_type,
        line_items=(
            PricedLineItem(
                item_id="li-1",
                number="TM-ZM",
                description="Tennissand",
                quantity=quantity,
                unit="t",
                unit_price=80,
            ),
        ),
    )


def _repo():
    return InMemoryDocumentRepository(FixedClock(NOW))


def _row(version, *, is_current, document_type=DOCUMENT_QUOTE, number="ANG-2026-0001"):
    row = build_stored_document(
        project_id="P-1",
        document_type=document_type,
        payload=_payload(document_type),
        number=number,
        version=version,
        artifact_file_id=f"file-{version}",
        gross_amount=Decimal("476.00"),
        created_at=NOW + timedelta(minutes=version),
    )
    return replace(row, is_current=is_current)


def _finalize(repo, document_type=DOCUMENT_QUOTE, number="ANG-2026-0001", project_id="P-1"):
    return repo.commit_first_version(
        project_id, document_type, _payload(document_type), "file-1", number, Decimal("476.00")
    )


# ══════════════════════════════════════════════════════════════
# BUILD
# ══════════════════════════════════════════════════════════════

class TestBuildStoredDocument:
    def test_number_is_written_into_snapshot(self):
        row = _row(1, is_current=True)
        assert row.data_snapshot.number == "ANG-2026-0001"
        assert len(row.snapshot_hash) == 64

    def test_default_file_name(self):
        assert _row(1, is_current=True).artifact_file_name == "Angebot_ANG-2026-0001.pdf"

    def test_type_mismatch_rejected(self):
        with pytest.raises(ValueError):
            build_stored_document(
                project_id="P-1",
                document_type=DOCUMENT_INVOICE,
                payload=_payload(DOCUMENT_QUOTE),
                number="RE-2026-0001",
                version=1,
                artifact_file_id="f",
                gross_amount=None,
                created_at=NOW,
            )


# ══════════════════════════════════════════════════════════════
# VERSIONING
# ══════════════════════════════════════════════════════════════

class TestCommitFirstVersion:
    def test_first_version(self):
        repo = _repo()
        row = _finalize(repo)
        assert row.version == 1
        assert row.is_current
        assert row.gross_amount == Decimal("476.00")
        assert row.created_at == NOW
        assert repo.get_current("P-1", DOCUMENT_QUOTE) == row

    def test_second_first_version_rejected(self):
        repo = _repo()
        _finalize(repo)
        with pytest.raises(AlreadyFinalized):
            _finalize(repo, number="ANG-2026-0002")
        assert len(repo.list_history("P-1", DOCUMENT_QUOTE)) == 1

    def test_unknown_type(self):
        with pytest.raises(UnknownDocumentType):
            _repo().get_current("P-1", "memo")

    def test_missing_key(self):
        repo = _repo()
        assert repo.get_current("P-1", DOCUMENT_QUOTE) is None
        assert repo.list_history("P-1", DOCUMENT_QUOTE) == ()


class TestCommitNextVersion:
    def test_versions_grow_by_one_and_keep_number(self):
        repo = _repo()
        _finalize(repo)
        v2 = repo.commit_next_version("P-1", DOCUMENT_QUOTE, _payload(quantity=10), "file-2", Decimal("952.00"))
        v3 = repo.commit_next_version("P-1", DOCUMENT_QUOTE, _payload(quantity=12), "file-3", None)
        assert (v2.version, v3.version) == (2, 3)
        assert v2.number == v3.number == "ANG-2026-0001"
        assert v3.data_snapshot.number == "ANG-2026-0001"

    def test_exactly_one_current(self):
        repo = _repo()
        _finalize(repo)
        repo.commit_next_version("P-1", DOCUMENT_QUOTE, _payload(quantity=10), "file-2", Decimal("952.00"))
        history = repo.list_history("P-1", DOCUMENT_QUOTE)
        assert [row.version for row in history] == [2, 1]
        assert [row.is_current for row in history] == [True, False]

    def test_previous_version_is_unchanged(self):
        repo = _repo()
        v1 = _finalize(repo)
        repo.commit_next_version("P-1", DOCUMENT_QUOTE, _payload(quantity=10), "file-2", Decimal("952.00"))
        old = repo.list_history("P-1", DOCUMENT_QUOTE)[1]
        assert old.data_snapshot == v1.data_snapshot
        assert old.snapshot_hash == v1.snapshot_hash
        assert old.gross_amount == Decimal("476.00")

    def test_requires_version_one(self):
        with pytest.raises(LifecycleError):
            _repo().commit_next_version("P-1", DOCUMENT_QUOTE, _payload(), "file-2", None)

    @pytest.mark.parametrize("document_type", [DOCUMENT_INVOICE, DOCUMENT_CREDIT_NOTE])
    def test_sealed_types_reject_next_version(self, document_type):
        repo = _repo()
        if document_type == DOCUMENT_INVOICE:
            _finalize(repo, DOCUMENT_INVOICE, "RE-2026-0001")
        with pytest.raises(SealedDocument):
            repo.commit_next_version("P-1", document_type, _payload(document_type), "file-2", None)

    def test_sealed_invoice_history_stays_single(self):
        repo = _repo()
        _finalize(repo, DOCUMENT_INVOICE, "RE-2026-0001")
        with pytest.raises(SealedDocument):
            repo.commit_next_version("P-1", DOCUMENT_INVOICE, _payload(DOCUMENT_INVOICE), "file-2", None)
        assert len(repo.list_history("P-1", DOCUMENT_INVOICE)) == 1


class TestNumberExists:
    def test_scoped_to_type(self):
        repo = _repo()
        _finalize(repo)
        assert repo.number_exists(DOCUMENT_QUOTE, "ANG-2026-0001")
        assert not repo.number_exists(DOCUMENT_QUOTE, "ANG-2026-0002")
        assert not repo.number_exists(DOCUMENT_INVOICE, "ANG-2026-0001")


# ══════════════════════════════════════════════════════════════
# VOIDING
# ══════════════════════════════════════════════════════════════

class TestVoidInvoice:
    def _void(self, repo, reason="Falsche Menge"):
        return repo.void_invoice(
            "P-1",
            credit_note_payload=_payload(DOCUMENT_CREDIT_NOTE),
            artifact_file_id="file-storno",
            number="STORNO-2026-0001",
            gross_amount=Decimal("476.00"),
            void_reason=reason,
        )

    def test_voids_invoice_and_commits_credit_note(self):
        repo = _repo()
        invoice = _finalize(repo, DOCUMENT_INVOICE, "RE-2026-0001")
        credit_note = self._void(repo)
        assert credit_note.document_type == DOCUMENT_CREDIT_NOTE
        assert credit_note.version == 1
        voided = repo.get_current("P-1", DOCUMENT_INVOICE)
        assert voided.is_voided
        assert voided.void_reason == "Falsche Menge"
        assert voided.data_snapshot == invoice.data_snapshot
        assert voided.version == 1

    def test_requires_reason(self):
        repo = _repo()
        _finalize(repo, DOCUMENT_INVOICE, "RE-2026-0001")
        with pytest.raises(ValueError):
            self._void(repo, reason="  ")
        assert not repo.get_current("P-1", DOCUMENT_INVOICE).is_voided

    def test_requires_invoice(self):
        with pytest.raises(LifecycleError):
            self._void(_repo())

    def test_only_once(self):
        repo = _repo()
        _finalize(repo, DOCUMENT_INVOICE, "RE-2026-0001")
        self._void(repo)
        with pytest.raises(AlreadyFinalized):
            self._void(repo)


# ══════════════════════════════════════════════════════════════
# STRUCTURE
# ══════════════════════════════════════════════════════════════

class TestCheckStructure:
    def test_orders_newest_first(self):
        rows = [_row(1, is_current=False), _row(2, is_current=True)]
        assert [row.version for row in check_structure("P-1", DOCUMENT_QUOTE, rows)] == [2, 1]

    def test_two_current_rows(self):
        rows = [_row(1, is_current=True), _row(2, is_current=True)]
        with pytest.raises(StructuralInconsistency):
            check_structure("P-1", DOCUMENT_QUOTE, rows)

    def test_no_current_row(self):
        with pytest.raises(StructuralInconsistency):
            check_structure("P-1", DOCUMENT_QUOTE, [_row(1, is_current=False)])

    def test_current_is_not_latest(self):
        rows = [_row(1, is_current=True), _row(2, is_current=False)]
        with pytest.raises(StructuralInconsistency):
            check_structure("P-1", DOCUMENT_QUOTE, rows)

    def test_version_gap(self):
        rows = [_row(1, is_current=False), _row(3, is_current=True)]
        with pytest.raises(StructuralInconsistency):
            check_structure("P-1", DOCUMENT_QUOTE, rows)

    def test_repeated_version(self):
        rows = [_row(1, is_current=False), _row(1, is_current=True)]
        with pytest.raises(StructuralInconsistency):
            check_structure("P-1", DOCUMENT_QUOTE, rows)

    def test_sealed_type_with_two_versions(self):
        rows = [
            _row(1, is_current=False, document_type=DOCUMENT_INVOICE, number="RE-2026-0001"),
            _row(2, is_current=True, document_type=DOCUMENT_INVOICE, number="RE-2026-0001"),
        ]
        with pytest.raises(StructuralInconsistency):
            check_structure("P-1", DOCUMENT_INVOICE, rows)

    def test_hash_mismatch(self):
        row = replace(_row(1, is_current=True), snapshot_hash="0" * 64)
        with pytest.raises(StructuralInconsistency):
            check_structure("P-1", DOCUMENT_QUOTE, [row])
        assert check_structure("P-1", DOCUMENT_QUOTE, [row], verify_hashes=False) == (row,)

    def test_repository_reads_raise_instead_of_repairing(self):
        repo = _repo()
        _finalize(repo)
        repo._rows[("P-1", DOCUMENT_QUOTE)].append(_row(2, is_current=True))
        with pytest.raises(StructuralInconsistency):
            repo.get_current("P-1", DOCUMENT_QUOTE)
        with pytest.raises(StructuralInconsistency):
            repo.commit_next_version("P-1", DOCUMENT_QUOTE, _payload(), "file-3", None)


# ══════════════════════════════════════════════════════════════
# PROJECTIONS
# ══════════════════════════════════════════════════════════════

class TestHistoryProjector:
    def test_newest_first_with_fields(self):
        rows = [_row(1, is_current=False), _row(2, is_current=True)]
        entries = HistoryProjector().project(rows)
        assert [entry.version for entry in entries] == [2, 1]
        assert entries[0].is_current
        assert entries[0].gross_amount == Decimal("476.00")
        assert entries[0].file_name == "Angebot_ANG-2026-0001.pdf"
        assert entries[0].view_url is None

    def test_urls_from_blob_store(self):
        store = InMemoryBlobStore("https://files.example/blobs")
        file_id = store.store(b"%PDF-1.4", "Angebot_ANG-2026-0001.pdf")
        row = replace(_row(1, is_current=True), artifact_file_id=file_id)
        (entry,) = HistoryProjector(store).project([row])
        assert entry.view_url == f"https://files.example/blobs/{file_id}"
        assert entry.download_url == f"https://files.example/blobs/{file_id}?download=1"

    def test_two_current_rows_raise(self):
        rows = [_row(1, is_current=True), _row(2, is_current=True)]
        with pytest.raises(StructuralInconsistency):
            HistoryProjector().project(rows)

    def test_duplicate_version_raises(self):
        rows = [_row(1, is_current=True), _row(1, is_current=False)]
        with pytest.raises(StructuralInconsistency):
            HistoryProjector().project(rows)

    def test_empty(self):
        assert HistoryProjector().project([]) == ()


class TestProjectStatusProjector:
    def test_new_project(self):
        assert ProjectStatusProjector(_repo()).status("P-1") == ProjectStatus.NEW

    def test_furthest_stage_wins(self):
        repo = _repo()
        _finalize(repo)
        _finalize(repo, DOCUMENT_ORDER_CONFIRMATION, "AB-2026-0001")
        projector = ProjectStatusProjector(repo)
        assert projector.status("P-1") == ProjectStatus.ORDER_CONFIRMATION
        assert projector.status("P-2") == ProjectStatus.NEW

    def test_voided_invoice(self):
        repo = _repo()
        _finalize(repo, DOCUMENT_INVOICE, "RE-2026-0001")
        assert ProjectStatusProjector(repo).status("P-1") == ProjectStatus.INVOICE
        repo.void_invoice(
            "P-1",
            credit_note_payload=_payload(DOCUMENT_CREDIT_NOTE),
            artifact_file_id="file-storno",
            number="STORNO-2026-0001",
            gross_amount=Decimal("476.00"),
            void_reason="Doppelt berechnet",
        )
        assert ProjectStatusProjector(repo).status("P-1") == ProjectStatus.VOIDED

    def test_stage_summaries(self):
        repo = _repo()
        _finalize(repo)
        summaries = ProjectStatusProjector(repo).stage_summaries("P-1")
        assert summaries[DOCUMENT_QUOTE].number == "ANG-2026-0001"
        assert summaries[DOCUMENT_QUOTE].version == 1
        assert summaries[DOCUMENT_DELIVERY_NOTE] is None
        assert set(summaries) == {
            DOCUMENT_QUOTE,
            DOCUMENT_ORDER_CONFIRMATION,
            DOCUMENT_DELIVERY_NOTE,
            DOCUMENT_INVOICE,
        }

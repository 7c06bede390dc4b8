"""
Salesdocs Django Persistence Tests
==================================
ORM-backed repository, draft store and numbering provider, and the
database constraints behind them.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction

from core.config.settings import LifecycleSettings
from core.document_lifecycle.controller import LifecycleController, LifecycleState
from core.document_lifecycle.persistence.models import (
    DraftRecordRow,
    NumberSequenceRow,
    StoredDocumentRecord,
)
from core.document_lifecycle.persistence.repository import (
    DjangoDocumentRepository,
    DjangoDraftStore,
    DjangoNumberingProvider,
)
from core.document_lifecycle.scheduler import ManualScheduler
from core.documents.blobs import InMemoryBlobStore
from core.documents.errors import (
    AlreadyFinalized,
    LifecycleError,
    SealedDocument,
    StructuralInconsistency,
)
from core.documents.models import (
    DOCUMENT_CREDIT_NOTE,
    DOCUMENT_INVOICE,
    DOCUMENT_QUOTE,
    DocumentPayload,
    PricedLineItem,
)
from core.documents.numbering import SequenceGeneratorAdapter
from core.documents.numbering.models import default_policies
from core.time.clock import FixedClock

pytestmark = pytest.mark.django_db(transaction=True)

NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


def _payload(document_type=DOCUMENT_QUOTE, quantity=5):
    return DocumentPayload(
        document_type=document_type,
        header={"customer_name": "TC Blau-Weiss"},
        line_items=(
            PricedLineItem(
                item_id="li-1",
                number="TM-ZM",
                description="Tennissand 0/2",
                quantity=quantity,
                unit="t",
                unit_price=80,
            ),
        ),
    )


def _record(version, *, is_current):
    return StoredDocumentRecord(
        document_id=f"doc-{version}-{int(is_current)}",
        project_id="P-1",
        document_type=DOCUMENT_QUOTE,
        number="ANG-2026-0001",
        version=version,
        data_snapshot={},
        snapshot_hash="0" * 64,
        artifact_file_id="file",
        artifact_file_name="Angebot_ANG-2026-0001.pdf",
        created_at=NOW,
        is_current=is_current,
    )


# ══════════════════════════════════════════════════════════════
# REPOSITORY
# ══════════════════════════════════════════════════════════════

class TestDjangoDocumentRepository:
    def test_round_trip(self):
        repo = DjangoDocumentRepository(FixedClock(NOW))
        row = repo.commit_first_version(
            "P-1", DOCUMENT_QUOTE, _payload(), "file-1", "ANG-2026-0001", Decimal("476.00")
        )
        loaded = repo.get_current("P-1", DOCUMENT_QUOTE)
        assert loaded == row
        assert loaded.data_snapshot.number == "ANG-2026-0001"
        assert loaded.gross_amount == Decimal("476.00")
        assert loaded.created_at == NOW
        assert repo.number_exists(DOCUMENT_QUOTE, "ANG-2026-0001")

    def test_next_version_flips_current(self):
        repo = DjangoDocumentRepository(FixedClock(NOW))
        repo.commit_first_version(
            "P-1", DOCUMENT_QUOTE, _payload(), "file-1", "ANG-2026-0001", Decimal("476.00")
        )
        v2 = repo.commit_next_version(
            "P-1", DOCUMENT_QUOTE, _payload(quantity=10), "file-2", Decimal("952.00")
        )
        assert v2.version == 2
        assert v2.number == "ANG-2026-0001"
        history = repo.list_history("P-1", DOCUMENT_QUOTE)
        assert [(row.version, row.is_current) for row in history] == [(2, True), (1, False)]
        assert history[1].gross_amount == Decimal("476.00")

    def test_first_version_only_once(self):
        repo = DjangoDocumentRepository(FixedClock(NOW))
        repo.commit_first_version("P-1", DOCUMENT_QUOTE, _payload(), "file-1", "ANG-2026-0001", None)
        with pytest.raises(AlreadyFinalized):
            repo.commit_first_version("P-1", DOCUMENT_QUOTE, _payload(), "file-2", "ANG-2026-0002", None)
        assert StoredDocumentRecord.objects.count() == 1

    def test_next_version_needs_first(self):
        with pytest.raises(LifecycleError):
            DjangoDocumentRepository().commit_next_version("P-1", DOCUMENT_QUOTE, _payload(), "f", None)

    def test_invoice_is_sealed(self):
        repo = DjangoDocumentRepository(FixedClock(NOW))
        repo.commit_first_version(
            "P-1", DOCUMENT_INVOICE, _payload(DOCUMENT_INVOICE), "file-1", "RE-2026-0001", Decimal("476.00")
        )
        with pytest.raises(SealedDocument):
            repo.commit_next_version("P-1", DOCUMENT_INVOICE, _payload(DOCUMENT_INVOICE), "file-2", None)
        assert StoredDocumentRecord.objects.filter(document_type=DOCUMENT_INVOICE).count() == 1

    def test_void_invoice(self):
        repo = DjangoDocumentRepository(FixedClock(NOW))
        repo.commit_first_version(
            "P-1", DOCUMENT_INVOICE, _payload(DOCUMENT_INVOICE), "file-1", "RE-2026-0001", Decimal("476.00")
        )
        kwargs = dict(
            credit_note_payload=_payload(DOCUMENT_CREDIT_NOTE),
            artifact_file_id="file-storno",
            number="STORNO-2026-0001",
            gross_amount=Decimal("476.00"),
            void_reason="Falsche Menge",
        )
        credit_note = repo.void_invoice("P-1", **kwargs)
        assert credit_note.version == 1
        invoice = repo.get_current("P-1", DOCUMENT_INVOICE)
        assert invoice.is_voided
        assert invoice.void_reason == "Falsche Menge"
        with pytest.raises(AlreadyFinalized):
            repo.void_invoice("P-1", **kwargs)

    def test_tampered_snapshot_is_reported(self):
        repo = DjangoDocumentRepository(FixedClock(NOW))
        repo.commit_first_version("P-1", DOCUMENT_QUOTE, _payload(), "file-1", "ANG-2026-0001", None)
        StoredDocumentRecord.objects.filter(project_id="P-1").update(
            data_snapshot=_payload(quantity=99).with_number("ANG-2026-0001").to_dict()
        )
        with pytest.raises(StructuralInconsistency):
            repo.get_current("P-1", DOCUMENT_QUOTE)


class TestStorageGuards:
    def test_second_current_row_violates_constraint(self):
        _record(1, is_current=True).save()
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                _record(2, is_current=True).save()

    def test_duplicate_version_violates_constraint(self):
        _record(1, is_current=True).save()
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                _record(1, is_current=False).save()

    def test_content_is_append_only(self):
        record = _record(1, is_current=True)
        record.save()
        record.number = "ANG-2026-0099"
        with pytest.raises(PermissionError):
            record.save()
        with pytest.raises(PermissionError):
            record.save(update_fields=["number"])

    def test_flags_may_change(self):
        record = _record(1, is_current=True)
        record.save()
        record.is_current = False
        record.save(update_fields=["is_current"])
        assert not StoredDocumentRecord.objects.get(pk=record.pk).is_current

    def test_rows_are_never_deleted(self):
        record = _record(1, is_current=True)
        record.save()
        with pytest.raises(PermissionError):
            record.delete()
        assert StoredDocumentRecord.objects.count() == 1


# ══════════════════════════════════════════════════════════════
# DRAFTS AND NUMBERS
# ══════════════════════════════════════════════════════════════

class TestDjangoDraftStore:
    def test_overwrite_and_discard(self):
        store = DjangoDraftStore(FixedClock(NOW))
        assert store.load_draft("P-1", DOCUMENT_QUOTE) is None
        store.save_draft("P-1", DOCUMENT_QUOTE, _payload())
        store.save_draft("P-1", DOCUMENT_QUOTE, _payload(quantity=7))
        assert DraftRecordRow.objects.count() == 1
        assert store.load_draft("P-1", DOCUMENT_QUOTE).line_items[0].quantity == Decimal("7")
        assert store.saved_at("P-1", DOCUMENT_QUOTE) == NOW
        store.discard_draft("P-1", DOCUMENT_QUOTE)
        assert store.load_draft("P-1", DOCUMENT_QUOTE) is None

    def test_key_mismatch(self):
        with pytest.raises(ValueError):
            DjangoDraftStore().save_draft("P-1", DOCUMENT_INVOICE, _payload())


class TestDjangoNumberingProvider:
    def test_sequence_and_season_reset(self):
        provider = DjangoNumberingProvider()
        policy = provider.get_policy(DOCUMENT_QUOTE)
        assert provider.get_and_advance(policy=policy, issued_at=NOW) == "ANG-2026-0001"
        assert provider.get_and_advance(policy=policy, issued_at=NOW) == "ANG-2026-0002"
        november = datetime(2026, 11, 2, tzinfo=timezone.utc)
        assert provider.get_and_advance(policy=policy, issued_at=november) == "ANG-2027-0001"
        row = NumberSequenceRow.objects.get(pk=DOCUMENT_QUOTE)
        assert (row.season, row.next_sequence) == (2027, 2)

    def test_types_count_independently(self):
        provider = DjangoNumberingProvider(default_policies(padding=4, season_start_month=11))
        provider.get_and_advance(policy=provider.get_policy(DOCUMENT_QUOTE), issued_at=NOW)
        invoice_policy = provider.get_policy(DOCUMENT_INVOICE)
        assert provider.get_and_advance(policy=invoice_policy, issued_at=NOW) == "RE-2026-0001"


# ══════════════════════════════════════════════════════════════
# CONTROLLER OVER DJANGO BACKENDS
# ══════════════════════════════════════════════════════════════

class _Renderer:
    def render(self, document_type, payload):
        return f"%PDF-stub {payload.number}".encode("ascii")


class TestControllerOnDjango:
    def _controller(self):
        clock = FixedClock(NOW)
        repository = DjangoDocumentRepository(clock)
        return LifecycleController(
            repository=repository,
            draft_store=DjangoDraftStore(clock),
            renderer=_Renderer(),
            blob_store=InMemoryBlobStore(),
            numbers=SequenceGeneratorAdapter(
                DjangoNumberingProvider(), clock, number_exists=repository.number_exists
            ),
            scheduler=ManualScheduler(),
            settings=LifecycleSettings(),
            clock=clock,
        )

    def test_draft_finalize_and_new_version(self):
        controller = self._controller()
        session = controller.session("P-1", DOCUMENT_QUOTE)
        session.edit(_payload())
        controller.scheduler.advance(1.5)
        assert DraftRecordRow.objects.count() == 1

        v1 = session.finalize()
        assert v1.number == "ANG-2026-0001"
        assert v1.gross_amount == Decimal("476.00")
        assert DraftRecordRow.objects.count() == 0

        session.begin_edit()
        v2 = session.save_new_version(_payload(quantity=10))
        assert v2.gross_amount == Decimal("952.00")
        assert session.state == LifecycleState.FINALIZED_VN
        assert [entry.version for entry in controller.history("P-1", DOCUMENT_QUOTE)] == [2, 1]

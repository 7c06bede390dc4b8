"""
Salesdocs Draft Store and Debounce Scheduler Tests
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone

import pytest

from core.document_lifecycle.drafts import InMemoryDraftStore
from core.document_lifecycle.scheduler import ManualScheduler, ThreadingScheduler
from core.documents.errors import UnknownDocumentType
from core.documents.models import DOCUMENT_QUOTE, DocumentPayload
from core.time.clock import FixedClock

NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


class TestInMemoryDraftStore:
    def test_load_missing_returns_none(self):
        assert InMemoryDraftStore().load_draft("P-1", DOCUMENT_QUOTE) is None

    def test_save_overwrites_whole_payload(self):
        store = InMemoryDraftStore(FixedClock(NOW))
        store.save_draft("P-1", DOCUMENT_QUOTE, DocumentPayload(DOCUMENT_QUOTE, header={"a": 1}))
        store.save_draft("P-1", DOCUMENT_QUOTE, DocumentPayload(DOCUMENT_QUOTE, header={"b": 2}))
        assert store.load_draft("P-1", DOCUMENT_QUOTE).header == {"b": 2}
        assert len(store) == 1

    def test_keys_are_independent(self):
        store = InMemoryDraftStore()
        store.save_draft("P-1", DOCUMENT_QUOTE, DocumentPayload(DOCUMENT_QUOTE))
        assert store.load_draft("P-2", DOCUMENT_QUOTE) is None

    def test_record_carries_saved_at(self):
        store = InMemoryDraftStore(FixedClock(NOW))
        store.save_draft("P-1", DOCUMENT_QUOTE, DocumentPayload(DOCUMENT_QUOTE))
        assert store.load_record("P-1", DOCUMENT_QUOTE).saved_at == NOW

    def test_discard(self):
        store = InMemoryDraftStore()
        store.save_draft("P-1", DOCUMENT_QUOTE, DocumentPayload(DOCUMENT_QUOTE))
        store.discard_draft("P-1", DOCUMENT_QUOTE)
        store.discard_draft("P-1", DOCUMENT_QUOTE)
        assert store.load_draft("P-1", DOCUMENT_QUOTE) is None

    def test_unknown_type(self):
        with pytest.raises(UnknownDocumentType):
            InMemoryDraftStore().save_draft("P-1", "memo", DocumentPayload(DOCUMENT_QUOTE))


class TestManualScheduler:
    def test_fires_after_delay(self):
        scheduler = ManualScheduler()
        calls = []
        scheduler.call_later(1.5, lambda: calls.append("saved"))
        assert scheduler.advance(1.4) == 0
        assert scheduler.advance(0.1) == 1
        assert calls == ["saved"]
        assert scheduler.now == pytest.approx(1.5)

    def test_cancelled_timer_never_fires(self):
        scheduler = ManualScheduler()
        calls = []
        handle = scheduler.call_later(1.0, lambda: calls.append(1))
        handle.cancel()
        handle.cancel()
        scheduler.advance(5)
        assert calls == []
        assert scheduler.pending() == 0

    def test_fires_in_due_order(self):
        scheduler = ManualScheduler()
        calls = []
        scheduler.call_later(2.0, lambda: calls.append("late"))
        scheduler.call_later(1.0, lambda: calls.append("early"))
        scheduler.advance(3)
        assert calls == ["early", "late"]

    def test_callback_may_reschedule(self):
        scheduler = ManualScheduler()
        calls = []

        def tick():
            calls.append(scheduler.now)
            if len(calls) < 3:
                scheduler.call_later(1.0, tick)

        scheduler.call_later(1.0, tick)
        scheduler.advance(10)
        assert calls == [1.0, 2.0, 3.0]

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError):
            ManualScheduler().call_later(-1, lambda: None)


class TestThreadingScheduler:
    def test_runs_callback(self):
        done = threading.Event()
        ThreadingScheduler().call_later(0.01, done.set)
        assert done.wait(timeout=2.0)

    def test_cancel(self):
        done = threading.Event()
        handle = ThreadingScheduler().call_later(0.2, done.set)
        handle.cancel()
        assert not done.wait(timeout=0.4)

"""
Salesdocs Documents - Numbering Provider
========================================
Protocol + InMemory implementation for numbering policy resolution
and sequence state management.

Doctrine:
- Provider is a dependency injection point (testable, swappable).
- InMemory provider is deterministic and used in tests.
- The Django provider lives with the lifecycle persistence layer.
- Sequence state mutation is atomic per document type.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Optional, Protocol

from core.documents.numbering.engine import SequenceState
from core.documents.numbering.models import NumberingPolicy, default_policies


class NumberingProvider(Protocol):
    def get_policy(self, document_type: str) -> Optional[NumberingPolicy]:
        """Return the policy for document_type, or None if not configured."""
        ...

    def get_and_advance(self, *, policy: NumberingPolicy, issued_at: datetime) -> str:
        """
        Atomically get the next document number and advance the sequence.

        Returns the formatted document number string.
        """
        ...


class InMemoryNumberingProvider:
    """
    Thread-safe in-memory numbering provider.
    Used in tests and bootstrap.

    Without explicit policies, every document type gets its default policy.
    """

    def __init__(self, policies: tuple[NumberingPolicy, ...] = ()):
        self._lock = threading.Lock()
        self._policies: dict[str, NumberingPolicy] = {}
        self._states: dict[str, SequenceState] = {}

        for policy in policies or default_policies():
            self._policies[policy.document_type] = policy
            self._states[policy.document_type] = SequenceState(policy)

    def get_policy(self, document_type: str) -> Optional[NumberingPolicy]:
        return self._policies.get(document_type)

    def get_and_advance(self, *, policy: NumberingPolicy, issued_at: datetime) -> str:
        with self._lock:
            state = self._states.get(policy.document_type)
            if state is None or state.policy != policy:
                state = SequenceState(policy)
            number, new_state = state.next_number(issued_at)
            self._states[policy.document_type] = new_state
            return number

    def register_policy(self, policy: NumberingPolicy) -> None:
        """Register or replace a policy; the counter starts over."""
        with self._lock:
            self._policies[policy.document_type] = policy
            self._states[policy.document_type] = SequenceState(policy)

    def current_sequence(self, document_type: str) -> int:
        """Inspect the next running number for a document type (test helper)."""
        with self._lock:
            state = self._states.get(document_type)
            if state is None:
                return 1
            return state.current_sequence

"""
Salesdocs Documents - Sequence Generator Adapter
================================================
Issues the next number for a document type and degrades to a local
fallback number when the provider fails.

Doctrine:
- Numbers already known to exist are skipped (bounded attempts).
- A provider failure never blocks finalize: the fallback is issued,
  flagged as such and logged.
- Fallback numbers are not guaranteed unique; that risk is accepted
  and visible through IssuedNumber.is_fallback.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from core.documents.errors import NumberGenerationFailed
from core.documents.models import validate_document_type
from core.documents.numbering.engine import fallback_number
from core.documents.numbering.models import NUMBER_PREFIXES, IssuedNumber, NumberingPolicy
from core.documents.numbering.provider import NumberingProvider
from core.time.clock import Clock, SystemClock

logger = logging.getLogger("salesdocs.numbering")

MAX_ATTEMPTS = 100

NumberExists = Callable[[str, str], bool]


class SequenceGeneratorAdapter:
    """
    Wraps a NumberingProvider.

    number_exists(document_type, number) lets the host report numbers
    already taken (imported data, fallbacks); such numbers are skipped.
    """

    def __init__(
        self,
        provider: NumberingProvider,
        clock: Optional[Clock] = None,
        *,
        number_exists: Optional[NumberExists] = None,
        max_attempts: int = MAX_ATTEMPTS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1.")
        self._provider = provider
        self._clock = clock or SystemClock()
        self._number_exists = number_exists
        self._max_attempts = max_attempts

    def _policy(self, document_type: str) -> Optional[NumberingPolicy]:
        return self._provider.get_policy(document_type)

    def _issue(self, document_type: str, policy: Optional[NumberingPolicy]) -> str:
        if policy is None:
            raise NumberGenerationFailed(document_type, ValueError("no numbering policy configured"))
        try:
            for _ in range(self._max_attempts):
                number = self._provider.get_and_advance(policy=policy, issued_at=self._clock.now_utc())
                if self._number_exists is None or not self._number_exists(document_type, number):
                    return number
                logger.info(f"Skipping existing number {number} for {document_type}")
        except NumberGenerationFailed:
            raise
        except Exception as exc:
            raise NumberGenerationFailed(document_type, exc) from exc
        raise NumberGenerationFailed(
            document_type,
            RuntimeError(f"no free number after {self._max_attempts} attempts"),
        )

    def next_number(self, document_type: str) -> IssuedNumber:
        """Return the next number for document_type. Never raises for provider failures."""
        validate_document_type(document_type)
        policy = self._policy(document_type)
        try:
            return IssuedNumber(self._issue(document_type, policy))
        except NumberGenerationFailed as exc:
            fallback_policy = policy or NumberingPolicy(
                document_type=document_type,
                prefix=NUMBER_PREFIXES[document_type],
            )
            number = fallback_number(fallback_policy, self._clock.now_utc())
            logger.warning(
                f"Number generation failed for {document_type}, using fallback {number}: {exc}",
                exc_info=True,
            )
            return IssuedNumber(number, is_fallback=True)

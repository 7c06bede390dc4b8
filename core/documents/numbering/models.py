"""
Salesdocs Documents - Numbering Models
======================================
NumberingPolicy: how the numbers of one document type look.
IssuedNumber: a number handed to the lifecycle, flagged when it did not
come from the sequence.

Format: <PREFIX>-<SEASON>-<NNNN>, e.g. "RE-2026-0007".

Doctrine:
- Same policy + season + sequence position → same number (deterministic).
- A season starts in the configured month and is named after the
  calendar year it mostly covers (November 2025 → season 2026).
- Fallback numbers keep the same shape and are always marked as such.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.documents.models import (
    DOCUMENT_CREDIT_NOTE,
    DOCUMENT_DELIVERY_NOTE,
    DOCUMENT_INVOICE,
    DOCUMENT_ORDER_CONFIRMATION,
    DOCUMENT_QUOTE,
    validate_document_type,
)

NUMBER_PREFIXES = {
    DOCUMENT_QUOTE: "ANG",
    DOCUMENT_ORDER_CONFIRMATION: "AB",
    DOCUMENT_DELIVERY_NOTE: "LS",
    DOCUMENT_INVOICE: "RE",
    DOCUMENT_CREDIT_NOTE: "STORNO",
}


@dataclass(frozen=True)
class NumberingPolicy:
    """
    Declares how the numbers of one document type are formatted.

    Fields:
        document_type: one of VALID_DOCUMENT_TYPES
        prefix: leading token, e.g. "RE"
        padding: minimum digit width of the running number
        season_start_month: month (1-12) in which the next season begins
        start_at: first running number of every season
    """

    document_type: str
    prefix: str
    padding: int = 4
    season_start_month: int = 11
    start_at: int = 1

    def __post_init__(self):
        validate_document_type(self.document_type)
        if not self.prefix or not isinstance(self.prefix, str):
            raise ValueError("prefix must be a non-empty string.")
        if "-" in self.prefix:
            raise ValueError("prefix must not contain '-'.")
        if not isinstance(self.padding, int) or self.padding < 1:
            raise ValueError("padding must be int >= 1.")
        if not isinstance(self.season_start_month, int) or not 1 <= self.season_start_month <= 12:
            raise ValueError("season_start_month must be int in 1..12.")
        if not isinstance(self.start_at, int) or self.start_at < 1:
            raise ValueError("start_at must be int >= 1.")

    def format_number(self, season: int, sequence: int) -> str:
        """
        Format a document number.

        Args:
            season: the season year, e.g. 2026
            sequence: running number within the season (>= 1)

        Returns:
            e.g. "ANG-2026-0042"
        """
        if not isinstance(sequence, int) or sequence < 1:
            raise ValueError("sequence must be int >= 1.")
        if not isinstance(season, int) or season < 1:
            raise ValueError("season must be int >= 1.")
        return f"{self.prefix}-{season}-{str(sequence).zfill(self.padding)}"

    def parse_number(self, number: str):
        """
        Return (season, sequence) for a number in this policy's format,
        or None when it does not belong to this policy.
        """
        parts = number.split("-")
        if len(parts) != 3 or parts[0] != self.prefix:
            return None
        season, sequence = parts[1], parts[2]
        if not season.isdigit() or not sequence.isdigit():
            return None
        return int(season), int(sequence)


def default_policies(*, padding: int = 4, season_start_month: int = 11) -> tuple[NumberingPolicy, ...]:
    """One policy per document type, using NUMBER_PREFIXES."""
    return tuple(
        NumberingPolicy(
            document_type=document_type,
            prefix=prefix,
            padding=padding,
            season_start_month=season_start_month,
        )
        for document_type, prefix in NUMBER_PREFIXES.items()
    )


@dataclass(frozen=True)
class IssuedNumber:
    """A document number plus whether it is a locally derived fallback."""

    number: str
    is_fallback: bool = False

    def __post_init__(self):
        if not self.number or not isinstance(self.number, str):
            raise ValueError("number must be a non-empty string.")

    def __str__(self) -> str:
        return self.number

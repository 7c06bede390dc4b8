"""
Salesdocs Documents - Numbering Public API
==========================================
"""

from core.documents.numbering.adapter import MAX_ATTEMPTS, SequenceGeneratorAdapter
from core.documents.numbering.engine import SequenceState, fallback_number, season_for
from core.documents.numbering.models import (
    NUMBER_PREFIXES,
    IssuedNumber,
    NumberingPolicy,
    default_policies,
)
from core.documents.numbering.provider import (
    InMemoryNumberingProvider,
    NumberingProvider,
)

__all__ = [
    "NUMBER_PREFIXES",
    "NumberingPolicy",
    "IssuedNumber",
    "default_policies",
    "SequenceState",
    "season_for",
    "fallback_number",
    "NumberingProvider",
    "InMemoryNumberingProvider",
    "SequenceGeneratorAdapter",
    "MAX_ATTEMPTS",
]

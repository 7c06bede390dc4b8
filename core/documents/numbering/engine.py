"""
Salesdocs Documents - Numbering Engine
======================================
Season resolution, per-season sequence state and fallback numbers.

Doctrine:
- Stateless functions: given the same inputs, always the same output.
- Sequence state is held by a provider, never here.
- Time is passed explicitly; the system clock is never read here.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from core.documents.numbering.models import NumberingPolicy
from core.time.clock import epoch_millis


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def season_for(issued_at: datetime, season_start_month: int) -> int:
    """
    Return the season year for issued_at.

    With season_start_month=11:
    - 2025-10-31 → 2025
    - 2025-11-01 → 2026
    - 2026-01-15 → 2026
    """
    if not isinstance(issued_at, datetime):
        raise ValueError("issued_at must be datetime.")
    moment = _as_utc(issued_at)
    if season_start_month > 1 and moment.month >= season_start_month:
        return moment.year + 1
    return moment.year


class SequenceState:
    """
    Running counter of one policy.

    - current_season: the season the counter was last advanced in (None: never)
    - current_sequence: the next running number to issue
    """

    def __init__(
        self,
        policy: NumberingPolicy,
        *,
        current_season: Optional[int] = None,
        current_sequence: Optional[int] = None,
    ):
        self._policy = policy
        self._current_season = current_season
        self._current_sequence = current_sequence if current_sequence is not None else policy.start_at

    @property
    def policy(self) -> NumberingPolicy:
        return self._policy

    @property
    def current_season(self) -> Optional[int]:
        return self._current_season

    @property
    def current_sequence(self) -> int:
        return self._current_sequence

    def next_number(self, issued_at: datetime) -> tuple[str, "SequenceState"]:
        """
        Return (number, new_state) for issued_at.

        The counter restarts at policy.start_at when the season changes.
        """
        season = season_for(issued_at, self._policy.season_start_month)
        if season != self._current_season:
            sequence = self._policy.start_at
        else:
            sequence = self._current_sequence

        number = self._policy.format_number(season, sequence)
        new_state = SequenceState(
            self._policy,
            current_season=season,
            current_sequence=sequence + 1,
        )
        return number, new_state


def fallback_number(policy: NumberingPolicy, issued_at: datetime) -> str:
    """
    Locally derived number used when the sequence is unavailable.

    The running part is epoch milliseconds modulo 10**padding. Two
    fallbacks within the same modulus window can collide.
    """
    season = season_for(issued_at, policy.season_start_month)
    value = epoch_millis(_as_utc(issued_at)) % (10 ** policy.padding)
    return f"{policy.prefix}-{season}-{str(value).zfill(policy.padding)}"

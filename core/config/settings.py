"""
Salesdocs Core Config - Lifecycle Settings
==========================================
Doctrine: No magic numbers in lifecycle logic.
The VAT rate, autosave debounce delay, season boundary and numbering
width come from one frozen settings object, loaded from the
environment by the host and injected into the controller.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Mapping, Optional

CENT = Decimal("0.01")

ENV_PREFIX = "SALESDOCS_"


# ══════════════════════════════════════════════════════════════
# TAX RULE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TaxRule:
    """
    The single VAT rule applied to every priced document.

    rate is a fraction: Decimal("0.19") means 19 %.
    """

    rate: Decimal = Decimal("0.19")
    label: str = "USt."

    def __post_init__(self) -> None:
        if not isinstance(self.rate, Decimal):
            raise ValueError("Tax rate must be Decimal.")
        if not Decimal("0") <= self.rate <= Decimal("1"):
            raise ValueError(f"Tax rate must be between 0 and 1, got {self.rate}.")

    def compute_tax(self, amount: Decimal) -> Decimal:
        """Compute tax for a net amount, rounded half-up to cents."""
        return (amount * self.rate).quantize(CENT, rounding=ROUND_HALF_UP)

    @property
    def percent(self) -> Decimal:
        return (self.rate * 100).normalize()


# ══════════════════════════════════════════════════════════════
# LIFECYCLE SETTINGS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LifecycleSettings:
    """
    Fields:
        draft_debounce_seconds: autosave delay, re-armed on every edit
        tax_rule: the fixed VAT rule
        season_start_month: month (1-12) from which numbers carry next year's season
        number_padding: digit width of the running number ("0001")
        blob_base_url: base URL the blob store builds view/download links from
        currency: ISO code printed on artifacts
    """

    draft_debounce_seconds: float = 1.5
    tax_rule: TaxRule = TaxRule()
    season_start_month: int = 11
    number_padding: int = 4
    blob_base_url: str = "http://localhost:8000/blobs"
    currency: str = "EUR"

    def __post_init__(self) -> None:
        if self.draft_debounce_seconds <= 0:
            raise ValueError("draft_debounce_seconds must be > 0.")
        if not isinstance(self.season_start_month, int) or not 1 <= self.season_start_month <= 12:
            raise ValueError("season_start_month must be int in 1..12.")
        if not isinstance(self.number_padding, int) or self.number_padding < 1:
            raise ValueError("number_padding must be int >= 1.")
        if not self.blob_base_url:
            raise ValueError("blob_base_url must be a non-empty string.")
        if not self.currency:
            raise ValueError("currency must be a non-empty string.")


def _read(environ: Mapping[str, str], name: str) -> Optional[str]:
    value = environ.get(f"{ENV_PREFIX}{name}")
    if value is None or not value.strip():
        return None
    return value.strip()


def load_settings(environ: Optional[Mapping[str, str]] = None) -> LifecycleSettings:
    """
    Build LifecycleSettings from SALESDOCS_* environment variables.

    Unset variables keep their defaults. Malformed values raise ValueError
    naming the offending variable.
    """
    env = os.environ if environ is None else environ
    defaults = LifecycleSettings()
    kwargs: dict = {}

    raw = _read(env, "DRAFT_DEBOUNCE_SECONDS")
    if raw is not None:
        try:
            kwargs["draft_debounce_seconds"] = float(raw)
        except ValueError as exc:
            raise ValueError(f"{ENV_PREFIX}DRAFT_DEBOUNCE_SECONDS is not a number: {raw!r}") from exc

    raw = _read(env, "VAT_RATE")
    if raw is not None:
        try:
            kwargs["tax_rule"] = TaxRule(rate=Decimal(raw))
        except InvalidOperation as exc:
            raise ValueError(f"{ENV_PREFIX}VAT_RATE is not a decimal: {raw!r}") from exc

    for name, field_name in (
        ("SEASON_START_MONTH", "season_start_month"),
        ("NUMBER_PADDING", "number_padding"),
    ):
        raw = _read(env, name)
        if raw is None:
            continue
        try:
            kwargs[field_name] = int(raw)
        except ValueError as exc:
            raise ValueError(f"{ENV_PREFIX}{name} is not an integer: {raw!r}") from exc

    raw = _read(env, "BLOB_BASE_URL")
    if raw is not None:
        kwargs["blob_base_url"] = raw.rstrip("/")

    raw = _read(env, "CURRENCY")
    if raw is not None:
        kwargs["currency"] = raw.upper()

    if not kwargs:
        return defaults
    return LifecycleSettings(**kwargs)

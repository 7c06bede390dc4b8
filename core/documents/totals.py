"""
Salesdocs Documents - Totals
============================
Net, VAT and gross amounts of a priced payload.

Rules:
- net = sum of non-optional line totals + freight + packaging
- VAT = net × fixed rate, rounded half-up to cents
- gross = net + VAT
- Unpriced payloads (delivery notes) have no totals at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from core.config.settings import CENT, TaxRule
from core.documents.models import DocumentPayload


@dataclass(frozen=True)
class DocumentTotals:
    net_amount: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    gross_amount: Decimal

    def as_dict(self) -> dict:
        return {
            "net_amount": str(self.net_amount),
            "vat_rate": str(self.vat_rate),
            "vat_amount": str(self.vat_amount),
            "gross_amount": str(self.gross_amount),
        }


def compute_totals(payload: DocumentPayload, tax_rule: TaxRule) -> Optional[DocumentTotals]:
    if not payload.is_priced:
        return None
    net = sum(
        (item.total for item in payload.line_items if not item.optional),
        Decimal("0"),
    )
    net = (net + payload.freight_cost + payload.packaging_cost).quantize(
        CENT, rounding=ROUND_HALF_UP
    )
    vat = tax_rule.compute_tax(net)
    return DocumentTotals(
        net_amount=net,
        vat_rate=tax_rule.rate,
        vat_amount=vat,
        gross_amount=net + vat,
    )


def compute_gross_amount(payload: DocumentPayload, tax_rule: TaxRule) -> Optional[Decimal]:
    totals = compute_totals(payload, tax_rule)
    if totals is None:
        return None
    return totals.gross_amount

"""
Salesdocs Documents - Immutable Document Models
===============================================
Document types, the fixed stage chain, line-item shapes and the
records the lifecycle engine persists.

Doctrine:
- A committed snapshot never changes; new content means a new version.
- Delivery notes never carry money: the unpriced line shape has no
  price fields at all.
- Duplicated scalars (gross amount, number) are derived from the payload
  when a version is written, never edited independently.
"""

from __future__ import annotations

import hashlib
import json
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from core.documents.errors import UnknownDocumentType


DOCUMENT_QUOTE = "quote"
DOCUMENT_ORDER_CONFIRMATION = "order_confirmation"
DOCUMENT_DELIVERY_NOTE = "delivery_note"
DOCUMENT_INVOICE = "invoice"
DOCUMENT_CREDIT_NOTE = "credit_note"

VALID_DOCUMENT_TYPES = frozenset(
    {
        DOCUMENT_QUOTE,
        DOCUMENT_ORDER_CONFIRMATION,
        DOCUMENT_DELIVERY_NOTE,
        DOCUMENT_INVOICE,
        DOCUMENT_CREDIT_NOTE,
    }
)

# The fixed sales chain. Adding or removing a stage is a one-line change here.
STAGE_CHAIN = (
    DOCUMENT_QUOTE,
    DOCUMENT_ORDER_CONFIRMATION,
    DOCUMENT_DELIVERY_NOTE,
    DOCUMENT_INVOICE,
)

# Types that accept exactly one version, ever.
SEALED_DOCUMENT_TYPES = frozenset({DOCUMENT_INVOICE, DOCUMENT_CREDIT_NOTE})

# Types whose line items never carry prices.
UNPRICED_DOCUMENT_TYPES = frozenset({DOCUMENT_DELIVERY_NOTE})

DOCUMENT_LABELS = {
    DOCUMENT_QUOTE: "Angebot",
    DOCUMENT_ORDER_CONFIRMATION: "Auftragsbestaetigung",
    DOCUMENT_DELIVERY_NOTE: "Lieferschein",
    DOCUMENT_INVOICE: "Rechnung",
    DOCUMENT_CREDIT_NOTE: "Stornorechnung",
}

PAYLOAD_SCHEMA_VERSION = 1


def validate_document_type(document_type: str) -> str:
    if document_type not in VALID_DOCUMENT_TYPES:
        raise UnknownDocumentType(document_type)
    return document_type


def preceding_stage(document_type: str) -> Optional[str]:
    """Return the stage immediately before document_type in STAGE_CHAIN, or None."""
    validate_document_type(document_type)
    if document_type not in STAGE_CHAIN:
        return None
    index = STAGE_CHAIN.index(document_type)
    if index == 0:
        return None
    return STAGE_CHAIN[index - 1]


def is_sealed_type(document_type: str) -> bool:
    return document_type in SEALED_DOCUMENT_TYPES


def is_priced_type(document_type: str) -> bool:
    return document_type not in UNPRICED_DOCUMENT_TYPES


def artifact_file_name(document_type: str, number: str) -> str:
    """e.g. "Rechnung_RE-2026-0001.pdf"."""
    return f"{DOCUMENT_LABELS[document_type]}_{number}.pdf"


def new_line_item_id() -> str:
    return uuid.uuid4().hex


def _is_json_like(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (bool, int, float, str)):
        return True
    if isinstance(value, (list, tuple)):
        return all(_is_json_like(item) for item in value)
    if isinstance(value, Mapping):
        for key, item in value.items():
            if not isinstance(key, str):
                return False
            if not _is_json_like(item):
                return False
        return True
    return False


def _freeze(value: Any) -> Any:
    """Copy a JSON-like value into read-only mappings and tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    """Inverse of _freeze: plain dicts and lists, safe to hand to callers."""
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value


def to_decimal(value: Any, *, field_name: str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be numeric.")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{field_name} must be numeric, got {value!r}.") from exc


def _optional_decimal(value: Any, *, field_name: str) -> Optional[Decimal]:
    if value is None:
        return None
    return to_decimal(value, field_name=field_name)


def line_total(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return (quantity * unit_price).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# ══════════════════════════════════════════════════════════════
# LINE ITEMS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PricedLineItem:
    """
    Line item of a quote, order confirmation or invoice.

    total is always quantity × unit_price; it cannot be passed in.
    reference_price is the struck-through original price of a discount,
    reason_code explains it. optional lines are shown but not summed.
    """

    item_id: str
    number: str
    description: str
    quantity: Decimal
    unit: str
    unit_price: Decimal
    reference_price: Optional[Decimal] = None
    reason_code: Optional[str] = None
    optional: bool = False
    total: Decimal = field(init=False)

    def __post_init__(self):
        if not self.item_id or not isinstance(self.item_id, str):
            raise ValueError("item_id must be a non-empty string.")
        if not isinstance(self.number, str):
            raise ValueError("number must be a string.")
        if not isinstance(self.unit, str) or not self.unit:
            raise ValueError("unit must be a non-empty string.")
        object.__setattr__(self, "quantity", to_decimal(self.quantity, field_name="quantity"))
        object.__setattr__(self, "unit_price", to_decimal(self.unit_price, field_name="unit_price"))
        object.__setattr__(
            self,
            "reference_price",
            _optional_decimal(self.reference_price, field_name="reference_price"),
        )
        object.__setattr__(self, "total", line_total(self.quantity, self.unit_price))

    def with_quantity(self, quantity: Any) -> "PricedLineItem":
        return replace(self, quantity=to_decimal(quantity, field_name="quantity"))

    def with_unit_price(self, unit_price: Any) -> "PricedLineItem":
        return replace(self, unit_price=to_decimal(unit_price, field_name="unit_price"))

    def to_dict(self) -> dict:
        data = {
            "item_id": self.item_id,
            "number": self.number,
            "description": self.description,
            "quantity": str(self.quantity),
            "unit": self.unit,
            "unit_price": str(self.unit_price),
            "total": str(self.total),
            "optional": self.optional,
        }
        if self.reference_price is not None:
            data["reference_price"] = str(self.reference_price)
        if self.reason_code is not None:
            data["reason_code"] = self.reason_code
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PricedLineItem":
        return cls(
            item_id=str(data.get("item_id") or new_line_item_id()),
            number=str(data.get("number", "")),
            description=str(data.get("description", "")),
            quantity=data["quantity"],
            unit=str(data["unit"]),
            unit_price=data["unit_price"],
            reference_price=data.get("reference_price"),
            reason_code=data.get("reason_code"),
            optional=bool(data.get("optional", False)),
        )


@dataclass(frozen=True)
class UnpricedLineItem:
    """Line item of a delivery note: article, quantity and unit only."""

    item_id: str
    number: str
    description: str
    quantity: Decimal
    unit: str

    def __post_init__(self):
        if not self.item_id or not isinstance(self.item_id, str):
            raise ValueError("item_id must be a non-empty string.")
        if not isinstance(self.number, str):
            raise ValueError("number must be a string.")
        if not isinstance(self.unit, str) or not self.unit:
            raise ValueError("unit must be a non-empty string.")
        object.__setattr__(self, "quantity", to_decimal(self.quantity, field_name="quantity"))

    def with_quantity(self, quantity: Any) -> "UnpricedLineItem":
        return replace(self, quantity=to_decimal(quantity, field_name="quantity"))

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "number": self.number,
            "description": self.description,
            "quantity": str(self.quantity),
            "unit": self.unit,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UnpricedLineItem":
        return cls(
            item_id=str(data.get("item_id") or new_line_item_id()),
            number=str(data.get("number", "")),
            description=str(data.get("description", "")),
            quantity=data["quantity"],
            unit=str(data["unit"]),
        )


LineItem = Union[PricedLineItem, UnpricedLineItem]


# ══════════════════════════════════════════════════════════════
# PAYLOAD
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DocumentPayload:
    """
    Full structured content of one document state (draft or version).

    header holds customer/address/date fields as JSON-like values; the
    engine does not interpret them, the renderer prints them. It is
    copied into a read-only mapping on construction so a committed
    snapshot cannot be changed through a reference the caller kept.
    """

    document_type: str
    line_items: tuple = ()
    header: Mapping[str, Any] = field(default_factory=dict)
    number: Optional[str] = None
    freight_cost: Decimal = Decimal("0")
    packaging_cost: Decimal = Decimal("0")
    schema_version: int = PAYLOAD_SCHEMA_VERSION

    def __post_init__(self):
        validate_document_type(self.document_type)
        items = tuple(self.line_items)
        expected = PricedLineItem if is_priced_type(self.document_type) else UnpricedLineItem
        for item in items:
            if not isinstance(item, expected):
                raise ValueError(
                    f"{self.document_type} line items must be {expected.__name__}, "
                    f"got {type(item).__name__}."
                )
        object.__setattr__(self, "line_items", items)
        if not isinstance(self.header, Mapping):
            raise ValueError("header must be a mapping.")
        if not _is_json_like(self.header):
            raise ValueError("header must contain JSON-like values only.")
        object.__setattr__(self, "header", _freeze(self.header))
        if self.number is not None and (not isinstance(self.number, str) or not self.number):
            raise ValueError("number must be non-empty string or None.")
        object.__setattr__(self, "freight_cost", to_decimal(self.freight_cost, field_name="freight_cost"))
        object.__setattr__(
            self, "packaging_cost", to_decimal(self.packaging_cost, field_name="packaging_cost")
        )
        if not is_priced_type(self.document_type) and (self.freight_cost or self.packaging_cost):
            raise ValueError(f"{self.document_type} must not carry monetary values.")
        if not isinstance(self.schema_version, int) or self.schema_version < 1:
            raise ValueError("schema_version must be int >= 1.")

    @property
    def is_priced(self) -> bool:
        return is_priced_type(self.document_type)

    def with_number(self, number: str) -> "DocumentPayload":
        return replace(self, number=number)

    def with_line_items(self, line_items) -> "DocumentPayload":
        return replace(self, line_items=tuple(line_items))

    def with_header(self, **fields: Any) -> "DocumentPayload":
        return replace(self, header={**_thaw(self.header), **fields})

    def to_dict(self) -> dict:
        data = {
            "schema_version": self.schema_version,
            "document_type": self.document_type,
            "number": self.number,
            "header": _thaw(self.header),
            "line_items": [item.to_dict() for item in self.line_items],
        }
        if self.is_priced:
            data["freight_cost"] = str(self.freight_cost)
            data["packaging_cost"] = str(self.packaging_cost)
        return data

    def canonical_json(self) -> str:
        """Sorted keys, no whitespace, ASCII only: the byte form a version is hashed over."""
        return json.dumps(
            self.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=True, allow_nan=False
        )

    def snapshot_hash(self) -> str:
        """SHA-256 hex digest of canonical_json(); stored with every committed version."""
        return hashlib.sha256(self.canonical_json().encode("ascii")).hexdigest()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DocumentPayload":
        if not isinstance(data, Mapping):
            raise ValueError("payload data must be a mapping.")
        document_type = validate_document_type(str(data.get("document_type")))
        item_cls = PricedLineItem if is_priced_type(document_type) else UnpricedLineItem
        return cls(
            document_type=document_type,
            line_items=tuple(item_cls.from_dict(item) for item in data.get("line_items") or ()),
            header=dict(data.get("header") or {}),
            number=data.get("number"),
            freight_cost=data.get("freight_cost", "0"),
            packaging_cost=data.get("packaging_cost", "0"),
            schema_version=int(data.get("schema_version", PAYLOAD_SCHEMA_VERSION)),
        )


# ══════════════════════════════════════════════════════════════
# PERSISTED RECORDS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StoredDocument:
    """
    One committed version of one document type for one project.

    Rows are append-only. The only in-place changes a repository may
    make are the is_current flip on the previous version and voiding
    an invoice when a credit note is committed.
    """

    document_id: str
    project_id: str
    document_type: str
    number: str
    version: int
    data_snapshot: DocumentPayload
    snapshot_hash: str
    artifact_file_id: str
    artifact_file_name: str
    created_at: datetime
    gross_amount: Optional[Decimal] = None
    is_current: bool = True
    is_voided: bool = False
    void_reason: Optional[str] = None
    number_is_fallback: bool = False

    def __post_init__(self):
        validate_document_type(self.document_type)
        if not self.project_id or not isinstance(self.project_id, str):
            raise ValueError("project_id must be a non-empty string.")
        if not self.number or not isinstance(self.number, str):
            raise ValueError("number must be a non-empty string.")
        if not isinstance(self.version, int) or self.version < 1:
            raise ValueError("version must be int >= 1.")
        if not isinstance(self.data_snapshot, DocumentPayload):
            raise ValueError("data_snapshot must be DocumentPayload.")
        if self.data_snapshot.document_type != self.document_type:
            raise ValueError("data_snapshot document_type does not match record.")
        if not self.artifact_file_id:
            raise ValueError("artifact_file_id must be a non-empty string.")
        if not isinstance(self.created_at, datetime):
            raise ValueError("created_at must be datetime.")
        if self.gross_amount is not None:
            if self.gross_amount < 0:
                raise ValueError("gross_amount must be >= 0.")
            if self.gross_amount.as_tuple().exponent < -2:
                raise ValueError("gross_amount must have at most two fraction digits.")
        if self.is_voided and self.document_type not in SEALED_DOCUMENT_TYPES:
            raise ValueError("only invoices and credit notes can be voided.")

    def key(self) -> tuple[str, str]:
        return (self.project_id, self.document_type)


@dataclass(frozen=True)
class DraftRecord:
    """Single overwritable autosave snapshot per (project_id, document_type)."""

    project_id: str
    document_type: str
    payload: DocumentPayload
    saved_at: datetime

    def __post_init__(self):
        validate_document_type(self.document_type)
        if self.payload.document_type != self.document_type:
            raise ValueError("draft payload document_type does not match record.")


@dataclass(frozen=True)
class HistoryEntry:
    """Read projection of one StoredDocument for the versions list."""

    document_id: str
    document_type: str
    number: str
    version: int
    created_at: datetime
    gross_amount: Optional[Decimal]
    is_current: bool
    is_voided: bool
    void_reason: Optional[str]
    file_name: str
    view_url: Optional[str] = None
    download_url: Optional[str] = None
    number_is_fallback: bool = False


@dataclass(frozen=True)
class Project:
    """
    The identifying and cached fields of a customer project the engine reads.

    The default article/quantity/price fields seed a single line item
    when no preceding document exists.
    """

    project_id: str
    customer_number: Optional[str] = None
    customer_name: str = ""
    customer_address: str = ""
    article_number: Optional[str] = None
    article_description: str = ""
    quantity: Optional[Decimal] = None
    unit: str = "t"
    unit_price: Optional[Decimal] = None
    stage_numbers: dict = field(default_factory=dict)
    stage_dates: dict = field(default_factory=dict)

    def __post_init__(self):
        if not self.project_id or not isinstance(self.project_id, str):
            raise ValueError("project_id must be a non-empty string.")
        object.__setattr__(self, "quantity", _optional_decimal(self.quantity, field_name="quantity"))
        object.__setattr__(
            self, "unit_price", _optional_decimal(self.unit_price, field_name="unit_price")
        )

    def header_fields(self) -> dict:
        return {
            "customer_number": self.customer_number,
            "customer_name": self.customer_name,
            "customer_address": self.customer_address,
        }


__all__ = [
    "DOCUMENT_QUOTE",
    "DOCUMENT_ORDER_CONFIRMATION",
    "DOCUMENT_DELIVERY_NOTE",
    "DOCUMENT_INVOICE",
    "DOCUMENT_CREDIT_NOTE",
    "VALID_DOCUMENT_TYPES",
    "STAGE_CHAIN",
    "SEALED_DOCUMENT_TYPES",
    "UNPRICED_DOCUMENT_TYPES",
    "DOCUMENT_LABELS",
    "PAYLOAD_SCHEMA_VERSION",
    "validate_document_type",
    "preceding_stage",
    "is_sealed_type",
    "is_priced_type",
    "artifact_file_name",
    "new_line_item_id",
    "to_decimal",
    "line_total",
    "PricedLineItem",
    "UnpricedLineItem",
    "LineItem",
    "DocumentPayload",
    "StoredDocument",
    "DraftRecord",
    "HistoryEntry",
    "Project",
]

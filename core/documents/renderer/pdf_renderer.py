"""
Salesdocs Documents - PDF Renderer
==================================
Generates a minimal, deterministic PDF from a DocumentPayload.

Implementation: pure Python stdlib, no external dependencies.
Generates a valid PDF 1.4 file with Helvetica text (built-in PDF font).

Doctrine:
- Same payload → same PDF bytes (deterministic).
- All content is escaped for PDF string encoding.
- Delivery notes print quantities only; no price column exists for them.
- The lifecycle engine treats the output as opaque bytes.
"""

from __future__ import annotations

import io
from decimal import Decimal
from typing import Any, Optional

from core.config.settings import LifecycleSettings
from core.documents.models import DOCUMENT_LABELS, DocumentPayload
from core.documents.totals import compute_totals


# ---------------------------------------------------------------------------
# PDF string encoding
# ---------------------------------------------------------------------------

_GERMAN_FOLDS = {"ä": "ae", "ö": "oe", "ü": "ue", "Ä": "Ae", "Ö": "Oe", "Ü": "Ue", "ß": "ss"}


def _pdf_str(value: Any) -> str:
    """Encode a value as a PDF literal string (parentheses form)."""
    text = str(value) if value is not None else ""
    for char, folded in _GERMAN_FOLDS.items():
        text = text.replace(char, folded)
    text = text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
    safe = "".join(c if ord(c) < 128 else "?" for c in text)
    return f"({safe})"


def _money(value: Optional[Decimal], currency: str) -> str:
    if value is None:
        return ""
    return f"{value:.2f} {currency}"


def _quantity(value: Decimal) -> str:
    return format(value.normalize(), "f")


# ---------------------------------------------------------------------------
# Minimal PDF writer
# ---------------------------------------------------------------------------

class _PdfWriter:
    """
    Writes a minimal, valid PDF 1.4 file.

    Page size: A4 (595 x 842 pts). Fonts: Helvetica / Helvetica-Bold.
    Object 1 is the catalog and object 2 the page tree; content streams
    and pages follow from object 3 on.
    """

    PAGE_W = 595
    PAGE_H = 842
    MARGIN_LEFT = 50
    MARGIN_RIGHT = 50
    MARGIN_TOP = 790
    MARGIN_BOTTOM = 50
    LINE_HEIGHT = 16
    LINE_HEIGHT_HEADING = 20
    FONT_SIZE = 10
    FONT_SIZE_HEADING = 13
    FONT_SIZE_TITLE = 16

    _FONTS = (
        "/Font << "
        "/F1 << /Type /Font /Subtype /Type1 /BaseFont /Helvetica >> "
        "/F2 << /Type /Font /Subtype /Type1 /BaseFont /Helvetica-Bold >> "
        ">>"
    )

    def __init__(self):
        self._bodies: list[str] = []   # objects 3..N
        self._page_ids: list[int] = []
        self._ops: list[str] = []
        self._y: float = self.MARGIN_TOP

    @property
    def content_width(self) -> float:
        return self.PAGE_W - self.MARGIN_LEFT - self.MARGIN_RIGHT

    def _new_object(self, body: str) -> int:
        self._bodies.append(body)
        return len(self._bodies) + 2

    def _text(self, x: float, text: str, *, bold: bool = False, size: Optional[int] = None) -> None:
        font = "/F2" if bold else "/F1"
        self._ops.append(
            f"BT {font} {size or self.FONT_SIZE} Tf {x:.2f} {self._y:.2f} Td {_pdf_str(text)} Tj ET"
        )

    def _rule(self) -> None:
        x2 = self.PAGE_W - self.MARGIN_RIGHT
        self._ops.append(f"{self.MARGIN_LEFT} {self._y:.2f} m {x2} {self._y:.2f} l S")

    def _close_page(self) -> None:
        stream = "\n".join(self._ops)
        stream_id = self._new_object(
            f"<< /Length {len(stream.encode('latin-1'))} >>\nstream\n{stream}\nendstream"
        )
        page_id = self._new_object(
            f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 {self.PAGE_W} {self.PAGE_H}] "
            f"/Contents {stream_id} 0 R /Resources << {self._FONTS} >> >>"
        )
        self._page_ids.append(page_id)
        self._ops = []
        self._y = self.MARGIN_TOP

    def _ensure_space(self, needed: float) -> None:
        if self._y - needed < self.MARGIN_BOTTOM:
            self._close_page()

    # -- content helpers -----------------------------------------------------

    def add_title(self, text: str) -> None:
        self._ensure_space(28)
        self._text(self.MARGIN_LEFT, text, bold=True, size=self.FONT_SIZE_TITLE)
        self._y -= self.LINE_HEIGHT_HEADING
        self._rule()
        self._y -= 4

    def add_heading(self, text: str) -> None:
        self._ensure_space(self.LINE_HEIGHT_HEADING + 8)
        self._y -= 6
        self._text(self.MARGIN_LEFT, text, bold=True, size=self.FONT_SIZE_HEADING)
        self._y -= self.LINE_HEIGHT_HEADING

    def add_kv(self, label: str, value: Any) -> None:
        self._ensure_space(self.LINE_HEIGHT)
        self._text(self.MARGIN_LEFT, f"{label}:", bold=True)
        self._text(self.MARGIN_LEFT + 140, "" if value is None else str(value))
        self._y -= self.LINE_HEIGHT

    def add_row(self, cells: list[str], widths: list[float], *, bold: bool = False) -> None:
        self._ensure_space(self.LINE_HEIGHT)
        x = float(self.MARGIN_LEFT)
        for text, width in zip(cells, widths):
            max_chars = max(4, int(width / 6))
            if len(text) > max_chars:
                text = text[: max_chars - 1] + "."
            self._text(x, text, bold=bold)
            x += width
        self._y -= self.LINE_HEIGHT
        if bold:
            self._rule()
            self._y -= 2

    def add_vspace(self, pts: float = 8) -> None:
        self._y -= pts

    # -- finalise ------------------------------------------------------------

    def build(self) -> bytes:
        if self._ops or not self._page_ids:
            self._close_page()

        kids = " ".join(f"{pid} 0 R" for pid in self._page_ids)
        objects = [
            "<< /Type /Catalog /Pages 2 0 R >>",
            f"<< /Type /Pages /Kids [{kids}] /Count {len(self._page_ids)} >>",
            *self._bodies,
        ]

        out = io.BytesIO()
        out.write(b"%PDF-1.4\n")
        out.write(b"%\xe2\xe3\xcf\xd3\n")
        offsets: list[int] = []
        for obj_id, body in enumerate(objects, start=1):
            offsets.append(out.tell())
            out.write(f"{obj_id} 0 obj\n{body}\nendobj\n".encode("latin-1"))

        xref_offset = out.tell()
        out.write(f"xref\n0 {len(objects) + 1}\n".encode("latin-1"))
        out.write(b"0000000000 65535 f \n")
        for offset in offsets:
            out.write(f"{offset:010d} 00000 n \n".encode("latin-1"))
        out.write(
            f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n"
            f"startxref\n{xref_offset}\n%%EOF\n".encode("latin-1")
        )
        return out.getvalue()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def render_pdf(payload: DocumentPayload, settings: LifecycleSettings) -> bytes:
    """
    Render a document payload to PDF bytes.

    Raises:
        ValueError: if payload is not a DocumentPayload.
    """
    if not isinstance(payload, DocumentPayload):
        raise ValueError("payload must be DocumentPayload.")

    writer = _PdfWriter()
    currency = settings.currency

    title = DOCUMENT_LABELS[payload.document_type]
    if payload.number:
        title = f"{title} {payload.number}"
    writer.add_title(title)
    writer.add_vspace(4)

    if payload.header:
        for key, value in sorted(payload.header.items()):
            if value is None:
                continue
            writer.add_kv(key.replace("_", " ").title(), value)
        writer.add_vspace()

    if payload.line_items:
        writer.add_heading("Positionen")
        width = writer.content_width
        if payload.is_priced:
            widths = [width * r for r in (0.15, 0.35, 0.1, 0.1, 0.15, 0.15)]
            writer.add_row(
                ["Art.-Nr.", "Bezeichnung", "Menge", "Einheit", "Einzelpreis", "Gesamt"],
                widths,
                bold=True,
            )
            for item in payload.line_items:
                description = item.description
                if item.optional:
                    description = f"{description} (Bedarf)"
                price = _money(item.unit_price, currency)
                if item.reference_price is not None:
                    price = f"{price} statt {_money(item.reference_price, currency)}"
                writer.add_row(
                    [
                        item.number,
                        description,
                        _quantity(item.quantity),
                        item.unit,
                        price,
                        _money(item.total, currency),
                    ],
                    widths,
                )
        else:
            widths = [width * r for r in (0.2, 0.5, 0.15, 0.15)]
            writer.add_row(["Art.-Nr.", "Bezeichnung", "Menge", "Einheit"], widths, bold=True)
            for item in payload.line_items:
                writer.add_row(
                    [item.number, item.description, _quantity(item.quantity), item.unit],
                    widths,
                )
        writer.add_vspace()

    totals = compute_totals(payload, settings.tax_rule)
    if totals is not None:
        writer.add_heading("Summe")
        if payload.freight_cost:
            writer.add_kv("Fracht", _money(payload.freight_cost, currency))
        if payload.packaging_cost:
            writer.add_kv("Verpackung", _money(payload.packaging_cost, currency))
        writer.add_kv("Nettobetrag", _money(totals.net_amount, currency))
        writer.add_kv(
            f"{settings.tax_rule.label} {settings.tax_rule.percent} %",
            _money(totals.vat_amount, currency),
        )
        writer.add_kv("Bruttobetrag", _money(totals.gross_amount, currency))

    return writer.build()


class PdfRenderer:
    """Renderer collaborator backed by render_pdf."""

    def __init__(self, settings: LifecycleSettings):
        self._settings = settings

    def render(self, document_type: str, payload: DocumentPayload) -> bytes:
        if payload.document_type != document_type:
            raise ValueError(
                f"payload is a {payload.document_type}, cannot render as {document_type}."
            )
        return render_pdf(payload, self._settings)

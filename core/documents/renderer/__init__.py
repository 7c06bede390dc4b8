"""
Salesdocs Documents - Renderer Public API
=========================================
"""

from typing import Protocol

from core.documents.models import DocumentPayload
from core.documents.renderer.pdf_renderer import PdfRenderer, render_pdf


class Renderer(Protocol):
    def render(self, document_type: str, payload: DocumentPayload) -> bytes:
        """Turn a payload into an opaque paginated artifact."""
        ...


__all__ = [
    "Renderer",
    "PdfRenderer",
    "render_pdf",
]

"""
Salesdocs Document Lifecycle - Project Status Projector
=======================================================
Derives a project's displayed status from the furthest stage that has
a current document:
  NEW → QUOTE → ORDER_CONFIRMATION → DELIVERY_NOTE → INVOICE
and VOIDED once the invoice has been voided by a credit note.

Reads repository.get_current only, so the status reflects the latest
successful commit immediately.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from core.documents.models import (
    DOCUMENT_DELIVERY_NOTE,
    DOCUMENT_INVOICE,
    DOCUMENT_ORDER_CONFIRMATION,
    DOCUMENT_QUOTE,
    STAGE_CHAIN,
)
from core.document_lifecycle.repository import DocumentRepository


class ProjectStatus(Enum):
    NEW = "new"
    QUOTE = "quote"
    ORDER_CONFIRMATION = "order_confirmation"
    DELIVERY_NOTE = "delivery_note"
    INVOICE = "invoice"
    VOIDED = "voided"


_STAGE_STATUS = {
    DOCUMENT_QUOTE: ProjectStatus.QUOTE,
    DOCUMENT_ORDER_CONFIRMATION: ProjectStatus.ORDER_CONFIRMATION,
    DOCUMENT_DELIVERY_NOTE: ProjectStatus.DELIVERY_NOTE,
    DOCUMENT_INVOICE: ProjectStatus.INVOICE,
}


@dataclass(frozen=True)
class StageSummary:
    """Cached per-stage fields a host copies onto its project record."""

    document_type: str
    number: str
    version: int
    created_at: datetime


class ProjectStatusProjector:
    def __init__(self, repository: DocumentRepository):
        self._repository = repository

    def status(self, project_id: str) -> ProjectStatus:
        status = ProjectStatus.NEW
        for document_type in STAGE_CHAIN:
            current = self._repository.get_current(project_id, document_type)
            if current is None:
                continue
            status = _STAGE_STATUS[document_type]
            if document_type == DOCUMENT_INVOICE and current.is_voided:
                status = ProjectStatus.VOIDED
        return status

    def stage_summaries(self, project_id: str) -> dict[str, Optional[StageSummary]]:
        summaries: dict[str, Optional[StageSummary]] = {}
        for document_type in STAGE_CHAIN:
            current = self._repository.get_current(project_id, document_type)
            summaries[document_type] = (
                StageSummary(
                    document_type=document_type,
                    number=current.number,
                    version=current.version,
                    created_at=current.created_at,
                )
                if current is not None
                else None
            )
        return summaries

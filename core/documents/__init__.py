"""
Salesdocs Documents - Public API
================================
Document types, payloads, totals, rendering,
blob storage and numbering.
"""

from core.documents.errors import (
    AlreadyFinalized,
    ArtifactRenderFailed,
    BlobStoreFailed,
    DocumentImmutable,
    DraftWriteFailed,
    FinalizeFailed,
    InvalidTransition,
    LifecycleError,
    NumberGenerationFailed,
    RepositoryCommitFailed,
    SealedDocument,
    StructuralInconsistency,
    UnknownDocumentType,
)
from core.documents.models import (
    DOCUMENT_CREDIT_NOTE,
    DOCUMENT_DELIVERY_NOTE,
    DOCUMENT_INVOICE,
    DOCUMENT_LABELS,
    DOCUMENT_ORDER_CONFIRMATION,
    DOCUMENT_QUOTE,
    SEALED_DOCUMENT_TYPES,
    STAGE_CHAIN,
    UNPRICED_DOCUMENT_TYPES,
    VALID_DOCUMENT_TYPES,
    DocumentPayload,
    DraftRecord,
    HistoryEntry,
    LineItem,
    PricedLineItem,
    Project,
    StoredDocument,
    UnpricedLineItem,
    artifact_file_name,
    is_priced_type,
    is_sealed_type,
    preceding_stage,
)
from core.documents.totals import DocumentTotals, compute_gross_amount, compute_totals
from core.documents.blobs import BlobStore, InMemoryBlobStore
from core.documents.renderer import PdfRenderer, Renderer

__all__ = [
    "DOCUMENT_QUOTE",
    "DOCUMENT_ORDER_CONFIRMATION",
    "DOCUMENT_DELIVERY_NOTE",
    "DOCUMENT_INVOICE",
    "DOCUMENT_CREDIT_NOTE",
    "DOCUMENT_LABELS",
    "VALID_DOCUMENT_TYPES",
    "STAGE_CHAIN",
    "SEALED_DOCUMENT_TYPES",
    "UNPRICED_DOCUMENT_TYPES",
    "DocumentPayload",
    "DraftRecord",
    "HistoryEntry",
    "LineItem",
    "PricedLineItem",
    "UnpricedLineItem",
    "Project",
    "StoredDocument",
    "artifact_file_name",
    "is_priced_type",
    "is_sealed_type",
    "preceding_stage",
    "DocumentTotals",
    "compute_totals",
    "compute_gross_amount",
    "BlobStore",
    "InMemoryBlobStore",
    "Renderer",
    "PdfRenderer",
    "LifecycleError",
    "UnknownDocumentType",
    "InvalidTransition",
    "DraftWriteFailed",
    "NumberGenerationFailed",
    "DocumentImmutable",
    "AlreadyFinalized",
    "SealedDocument",
    "FinalizeFailed",
    "ArtifactRenderFailed",
    "BlobStoreFailed",
    "RepositoryCommitFailed",
    "StructuralInconsistency",
]

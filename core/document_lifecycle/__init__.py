"""
Salesdocs Document Lifecycle - Public API
=========================================
Drafts, inheritance, versioned storage, history and the controller
that ties them together. The Django backend lives in
core.document_lifecycle.persistence and is imported separately.
"""

from core.document_lifecycle.controller import (
    ACTION_BEGIN_EDIT,
    ACTION_CANCEL_EDIT,
    ACTION_EDIT,
    ACTION_FINALIZE,
    ACTION_SAVE_NEW_VERSION,
    DocumentSession,
    LifecycleController,
    LifecycleState,
    Notice,
    NOTICE_DRAFT_READ_FAILED,
    NOTICE_DRAFT_WRITE_FAILED,
    NOTICE_FALLBACK_NUMBER,
)
from core.document_lifecycle.drafts import DraftStore, InMemoryDraftStore
from core.document_lifecycle.history import HistoryProjector
from core.document_lifecycle.inheritance import (
    LineItemInheritanceResolver,
    default_line_items,
    inheritance_source,
)
from core.document_lifecycle.repository import (
    DocumentRepository,
    InMemoryDocumentRepository,
    check_structure,
)
from core.document_lifecycle.scheduler import (
    DebounceScheduler,
    ManualScheduler,
    ThreadingScheduler,
)
from core.document_lifecycle.status import ProjectStatus, ProjectStatusProjector

__all__ = [
    "LifecycleController",
    "DocumentSession",
    "LifecycleState",
    "Notice",
    "ACTION_BEGIN_EDIT",
    "ACTION_CANCEL_EDIT",
    "ACTION_EDIT",
    "ACTION_FINALIZE",
    "ACTION_SAVE_NEW_VERSION",
    "NOTICE_DRAFT_READ_FAILED",
    "NOTICE_DRAFT_WRITE_FAILED",
    "NOTICE_FALLBACK_NUMBER",
    "DraftStore",
    "InMemoryDraftStore",
    "HistoryProjector",
    "LineItemInheritanceResolver",
    "default_line_items",
    "inheritance_source",
    "DocumentRepository",
    "InMemoryDocumentRepository",
    "check_structure",
    "DebounceScheduler",
    "ManualScheduler",
    "ThreadingScheduler",
    "ProjectStatus",
    "ProjectStatusProjector",
]

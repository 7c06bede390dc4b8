"""
Salesdocs Document Lifecycle - Controller
=========================================
Single entry point per (project_id, document_type). Decides for every
user action whether to write a draft, commit version 1, commit version
N+1, or refuse.

States:
  EMPTY → DRAFTING → FINALIZED_V1 ⇄ EDITING → FINALIZED_VN ⇄ EDITING
  EMPTY/DRAFTING → SEALED (invoice, credit note; terminal)

Doctrine:
- Drafts are written only in EMPTY/DRAFTING. Once a version exists,
  autosave is off for that key and any stored draft is disregarded.
- Draft and number failures are absorbed and reported as notices.
- Finalize and version-commit failures always propagate; the session
  stays editable so the action can be retried.
- One finalize/commit per session at a time. A second call while one is
  running is ignored.
- Sessions of different keys never block each other.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional

from core.config.settings import LifecycleSettings
from core.document_lifecycle.drafts import DraftStore
from core.document_lifecycle.history import HistoryProjector
from core.document_lifecycle.inheritance import (
    LineItemInheritanceResolver,
    default_line_items,
    project_line_items,
)
from core.document_lifecycle.repository import DocumentRepository
from core.document_lifecycle.scheduler import DebounceScheduler, ThreadingScheduler, TimerHandle
from core.document_lifecycle.status import ProjectStatus, ProjectStatusProjector
from core.documents.blobs import BlobStore
from core.documents.errors import (
    AlreadyFinalized,
    ArtifactRenderFailed,
    BlobStoreFailed,
    DocumentImmutable,
    DraftWriteFailed,
    InvalidTransition,
    LifecycleError,
    RepositoryCommitFailed,
    SealedDocument,
    StructuralInconsistency,
)
from core.documents.models import (
    DOCUMENT_CREDIT_NOTE,
    DOCUMENT_INVOICE,
    DocumentPayload,
    HistoryEntry,
    Project,
    StoredDocument,
    artifact_file_name,
    is_sealed_type,
    validate_document_type,
)
from core.documents.numbering.adapter import SequenceGeneratorAdapter
from core.documents.numbering.models import IssuedNumber
from core.documents.renderer import Renderer
from core.documents.totals import compute_gross_amount
from core.time.clock import Clock, SystemClock

logger = logging.getLogger("salesdocs.lifecycle")
draft_logger = logging.getLogger("salesdocs.drafts")


class LifecycleState(Enum):
    EMPTY = "EMPTY"                 # No draft, no stored version
    DRAFTING = "DRAFTING"           # Autosave active
    FINALIZED_V1 = "FINALIZED_V1"   # Version 1 committed
    FINALIZED_VN = "FINALIZED_VN"   # Version > 1 committed
    EDITING = "EDITING"             # Edit mode over a finalized version
    SEALED = "SEALED"               # Invoice / credit note, terminal


ACTION_EDIT = "edit"
ACTION_FINALIZE = "finalize"
ACTION_BEGIN_EDIT = "begin_edit"
ACTION_CANCEL_EDIT = "cancel_edit"
ACTION_SAVE_NEW_VERSION = "save_new_version"

_ACTIONS = {
    LifecycleState.EMPTY: frozenset({ACTION_EDIT, ACTION_FINALIZE}),
    LifecycleState.DRAFTING: frozenset({ACTION_EDIT, ACTION_FINALIZE}),
    LifecycleState.FINALIZED_V1: frozenset({ACTION_BEGIN_EDIT}),
    LifecycleState.FINALIZED_VN: frozenset({ACTION_BEGIN_EDIT}),
    LifecycleState.EDITING: frozenset({ACTION_EDIT, ACTION_CANCEL_EDIT, ACTION_SAVE_NEW_VERSION}),
    LifecycleState.SEALED: frozenset(),
}

_FINALIZED_STATES = frozenset(
    {LifecycleState.FINALIZED_V1, LifecycleState.FINALIZED_VN, LifecycleState.EDITING}
)

NOTICE_DRAFT_WRITE_FAILED = "draft_write_failed"
NOTICE_DRAFT_READ_FAILED = "draft_read_failed"
NOTICE_FALLBACK_NUMBER = "fallback_number"


@dataclass(frozen=True)
class Notice:
    """Non-blocking status message for the UI."""

    kind: str
    message: str
    created_at: datetime


def state_for(stored: Optional[StoredDocument]) -> LifecycleState:
    if stored is None:
        return LifecycleState.EMPTY
    if is_sealed_type(stored.document_type):
        return LifecycleState.SEALED
    if stored.version == 1:
        return LifecycleState.FINALIZED_V1
    return LifecycleState.FINALIZED_VN


# ══════════════════════════════════════════════════════════════
# SESSION
# ══════════════════════════════════════════════════════════════

class DocumentSession:
    """
    Lifecycle of one (project_id, document_type).

    Obtain through LifecycleController.session(); do not construct directly.
    """

    def __init__(self, controller: "LifecycleController", project_id: str, document_type: str):
        self._controller = controller
        self.project_id = project_id
        self.document_type = document_type

        self._state_lock = threading.RLock()
        self._finalize_lock = threading.Lock()
        self._timer: Optional[TimerHandle] = None
        self._pending: Optional[DocumentPayload] = None
        self._working: Optional[DocumentPayload] = None
        self._issued: Optional[IssuedNumber] = None
        self._notices: list[Notice] = []
        self._closed = False

        current = controller.repository.get_current(project_id, document_type)
        self._state = state_for(current)
        if current is not None:
            self._working = current.data_snapshot
        elif self._load_draft() is not None:
            self._state = LifecycleState.DRAFTING

    # -- inspection ----------------------------------------------------------

    @property
    def state(self) -> LifecycleState:
        with self._state_lock:
            return self._state

    def available_actions(self) -> frozenset:
        """Actions that exist in the current state. Sealed documents have none."""
        return _ACTIONS[self.state]

    @property
    def payload(self) -> DocumentPayload:
        """The in-memory form state."""
        with self._state_lock:
            if self._working is None:
                self._working = self.initial_payload()
            return self._working

    @property
    def has_pending_draft(self) -> bool:
        with self._state_lock:
            return self._pending is not None

    @property
    def notices(self) -> tuple[Notice, ...]:
        with self._state_lock:
            return tuple(self._notices)

    def drain_notices(self) -> tuple[Notice, ...]:
        with self._state_lock:
            notices = tuple(self._notices)
            self._notices.clear()
            return notices

    def initial_payload(self) -> DocumentPayload:
        """
        What the form opens with: the current version, else the draft,
        else lines inherited from the preceding stage, else the project's
        default line, else an empty payload.
        """
        controller = self._controller
        current = controller.repository.get_current(self.project_id, self.document_type)
        if current is not None:
            return current.data_snapshot
        draft = self._load_draft()
        if draft is not None:
            return draft
        project = controller.project(self.project_id)
        line_items = controller.resolver.inherit(self.project_id, self.document_type)
        if not line_items:
            line_items = default_line_items(project, self.document_type)
        return DocumentPayload(
            document_type=self.document_type,
            line_items=line_items,
            header=project.header_fields() if project is not None else {},
        )

    # -- drafting ------------------------------------------------------------

    def edit(self, payload: DocumentPayload) -> LifecycleState:
        """
        Replace the form state. In EMPTY/DRAFTING this (re)arms autosave;
        in EDITING it only changes the in-memory state.
        """
        self._check_payload(payload)
        with self._state_lock:
            self._require_open()
            state = self._state
            if state == LifecycleState.SEALED:
                raise SealedDocument(self.project_id, self.document_type)
            if state in (LifecycleState.FINALIZED_V1, LifecycleState.FINALIZED_VN):
                raise InvalidTransition(ACTION_EDIT, state, "Enter edit mode first.")
            self._working = payload
            if state == LifecycleState.EDITING:
                return state
            self._state = LifecycleState.DRAFTING
            self._pending = payload
            self._arm_timer()
            return self._state

    def flush_draft(self) -> bool:
        """
        Write the buffered draft now. Returns True if a draft was written.
        Failures are absorbed, reported as a notice and retried after the
        next debounce delay.
        """
        with self._state_lock:
            payload = self._pending
            if payload is None or self._state != LifecycleState.DRAFTING:
                self._pending = None
                return False
            self._cancel_timer()
            try:
                self._controller.draft_store.save_draft(self.project_id, self.document_type, payload)
            except Exception as exc:
                error = DraftWriteFailed(self.project_id, self.document_type, exc)
                draft_logger.warning(str(error), exc_info=True)
                self._notice(NOTICE_DRAFT_WRITE_FAILED, str(error))
                if not self._closed:
                    self._arm_timer()
                return False
            if self._pending is payload:
                self._pending = None
            draft_logger.debug(f"Draft saved for {self.document_type} of project {self.project_id}")
            return True

    def _arm_timer(self) -> None:
        self._cancel_timer()
        delay = self._controller.settings.draft_debounce_seconds
        self._timer = self._controller.scheduler.call_later(delay, self.flush_draft)
        draft_logger.debug(
            f"Autosave armed ({delay}s) for {self.document_type} of project {self.project_id}"
        )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _load_draft(self) -> Optional[DocumentPayload]:
        try:
            return self._controller.draft_store.load_draft(self.project_id, self.document_type)
        except Exception as exc:
            draft_logger.warning(
                f"Draft for {self.document_type} of project {self.project_id} could not be read: {exc}",
                exc_info=True,
            )
            self._notice(NOTICE_DRAFT_READ_FAILED, str(exc))
            return None

    # -- finalize ------------------------------------------------------------

    def finalize(self, payload: Optional[DocumentPayload] = None) -> Optional[StoredDocument]:
        """
        Save & deposit: number, render, store the artifact, commit version 1.

        Returns the stored document, or None if another finalize of this
        session is still running.
        """
        if not self._finalize_lock.acquire(blocking=False):
            logger.info(
                f"Finalize of {self.document_type} for project {self.project_id} "
                "ignored: already in progress"
            )
            return None
        try:
            with self._state_lock:
                self._require_open()
                state = self._state
                if state == LifecycleState.SEALED:
                    raise SealedDocument(self.project_id, self.document_type)
                if state in _FINALIZED_STATES:
                    raise AlreadyFinalized(self.project_id, self.document_type)
                if payload is not None:
                    self._check_payload(payload)
                    self._working = payload
                payload = self.payload
                self._cancel_timer()

            try:
                stored = self._commit_first(payload)
            except Exception:
                with self._state_lock:
                    if self._pending is not None and not self._closed:
                        self._arm_timer()
                raise

            with self._state_lock:
                self._state = state_for(stored)
                self._working = stored.data_snapshot
                self._pending = None
                self._issued = None
            self._retire_draft()
            self._controller.invalidate_history(self.project_id, self.document_type)
            return stored
        finally:
            self._finalize_lock.release()

    def _issue_number(self) -> IssuedNumber:
        # Reused across retries so a failed finalize does not burn a number.
        if self._issued is None:
            issued = self._controller.numbers.next_number(self.document_type)
            if issued.is_fallback:
                self._notice(
                    NOTICE_FALLBACK_NUMBER,
                    f"Number service unavailable, fallback number {issued.number} assigned.",
                )
            self._issued = issued
        return self._issued

    def _commit_first(self, payload: DocumentPayload) -> StoredDocument:
        controller = self._controller
        issued = self._issue_number()
        payload = payload.with_number(issued.number)
        file_id = controller.render_and_store(self.project_id, payload)
        try:
            stored = controller.repository.commit_first_version(
                self.project_id,
                self.document_type,
                payload,
                file_id,
                issued.number,
                controller.gross_amount(payload),
                file_name=artifact_file_name(self.document_type, issued.number),
                number_is_fallback=issued.is_fallback,
            )
        except (DocumentImmutable, StructuralInconsistency):
            raise
        except Exception as exc:
            logger.error(
                f"Commit of {self.document_type} for project {self.project_id} failed, "
                f"artifact {file_id} orphaned",
                exc_info=True,
            )
            raise RepositoryCommitFailed(
                self.project_id, self.document_type, exc, orphaned_file_id=file_id
            ) from exc
        logger.info(
            f"Finalized {self.document_type} {stored.number} v1 for project {self.project_id}"
        )
        return stored

    def _retire_draft(self) -> None:
        try:
            self._controller.draft_store.discard_draft(self.project_id, self.document_type)
        except Exception:
            # The draft is disregarded once a version exists; a stale row is harmless.
            draft_logger.warning(
                f"Stale draft for {self.document_type} of project {self.project_id} not removed",
                exc_info=True,
            )

    # -- edit mode -----------------------------------------------------------

    def begin_edit(self) -> DocumentPayload:
        with self._state_lock:
            self._require_open()
            state = self._state
            if state == LifecycleState.SEALED:
                raise SealedDocument(self.project_id, self.document_type)
            if state not in (LifecycleState.FINALIZED_V1, LifecycleState.FINALIZED_VN):
                raise InvalidTransition(ACTION_BEGIN_EDIT, state)
            self._state = LifecycleState.EDITING
            return self.payload

    def cancel_edit(self) -> DocumentPayload:
        """Leave edit mode and reset the form to the last committed snapshot."""
        with self._state_lock:
            self._require_open()
            if self._state != LifecycleState.EDITING:
                raise InvalidTransition(ACTION_CANCEL_EDIT, self._state)
            current = self._controller.repository.get_current(self.project_id, self.document_type)
            if current is None:
                raise StructuralInconsistency(
                    self.project_id, self.document_type, "edit mode without a stored version"
                )
            self._working = current.data_snapshot
            self._state = state_for(current)
            return self._working

    def save_new_version(self, payload: Optional[DocumentPayload] = None) -> Optional[StoredDocument]:
        """
        Commit the edited form as version N+1. Returns None if a commit of
        this session is already running.
        """
        if not self._finalize_lock.acquire(blocking=False):
            logger.info(
                f"New version of {self.document_type} for project {self.project_id} "
                "ignored: commit already in progress"
            )
            return None
        try:
            with self._state_lock:
                self._require_open()
                if self._state == LifecycleState.SEALED or is_sealed_type(self.document_type):
                    raise SealedDocument(self.project_id, self.document_type)
                if self._state != LifecycleState.EDITING:
                    raise InvalidTransition(ACTION_SAVE_NEW_VERSION, self._state)
                if payload is not None:
                    self._check_payload(payload)
                    self._working = payload
                payload = self.payload

            stored = self._commit_next(payload)

            with self._state_lock:
                self._state = state_for(stored)
                self._working = stored.data_snapshot
            self._controller.invalidate_history(self.project_id, self.document_type)
            return stored
        finally:
            self._finalize_lock.release()

    def _commit_next(self, payload: DocumentPayload) -> StoredDocument:
        controller = self._controller
        current = controller.repository.get_current(self.project_id, self.document_type)
        if current is None:
            raise StructuralInconsistency(
                self.project_id, self.document_type, "edit mode without a stored version"
            )
        payload = payload.with_number(current.number)
        file_id = controller.render_and_store(self.project_id, payload)
        try:
            stored = controller.repository.commit_next_version(
                self.project_id,
                self.document_type,
                payload,
                file_id,
                controller.gross_amount(payload),
                file_name=artifact_file_name(self.document_type, current.number),
            )
        except (DocumentImmutable, StructuralInconsistency):
            raise
        except Exception as exc:
            logger.error(
                f"Commit of {self.document_type} v{current.version + 1} for project "
                f"{self.project_id} failed, artifact {file_id} orphaned",
                exc_info=True,
            )
            raise RepositoryCommitFailed(
                self.project_id, self.document_type, exc, orphaned_file_id=file_id
            ) from exc
        logger.info(
            f"Saved {self.document_type} {stored.number} v{stored.version} "
            f"for project {self.project_id}"
        )
        return stored

    # -- teardown ------------------------------------------------------------

    def close(self) -> None:
        """Disarm autosave. Buffered edits that were not flushed are dropped."""
        with self._state_lock:
            self._cancel_timer()
            self._pending = None
            self._closed = True
        self._controller.forget_session(self)

    # -- helpers -------------------------------------------------------------

    def _require_open(self) -> None:
        if self._closed:
            raise LifecycleError(
                f"Session for {self.document_type} of project {self.project_id} is closed."
            )

    def _check_payload(self, payload: DocumentPayload) -> None:
        if not isinstance(payload, DocumentPayload):
            raise ValueError("payload must be DocumentPayload.")
        if payload.document_type != self.document_type:
            raise ValueError(
                f"payload is a {payload.document_type}, session edits {self.document_type}."
            )

    def _notice(self, kind: str, message: str) -> None:
        with self._state_lock:
            self._notices.append(
                Notice(kind=kind, message=message, created_at=self._controller.clock.now_utc())
            )


# ══════════════════════════════════════════════════════════════
# CONTROLLER
# ══════════════════════════════════════════════════════════════

class LifecycleController:
    """
    Holds the collaborators and hands out one DocumentSession per key.

    project_lookup(project_id) supplies header fields and the default
    line item; it may return None.
    """

    def __init__(
        self,
        *,
        repository: DocumentRepository,
        draft_store: DraftStore,
        renderer: Renderer,
        blob_store: BlobStore,
        numbers: SequenceGeneratorAdapter,
        scheduler: Optional[DebounceScheduler] = None,
        settings: Optional[LifecycleSettings] = None,
        clock: Optional[Clock] = None,
        project_lookup: Optional[Callable[[str], Optional[Project]]] = None,
    ):
        self.repository = repository
        self.draft_store = draft_store
        self.renderer = renderer
        self.blob_store = blob_store
        self.numbers = numbers
        self.scheduler = scheduler or ThreadingScheduler()
        self.settings = settings or LifecycleSettings()
        self.clock = clock or SystemClock()
        self.resolver = LineItemInheritanceResolver(repository)
        self.history_projector = HistoryProjector(blob_store)
        self.status_projector = ProjectStatusProjector(repository)
        self._project_lookup = project_lookup

        self._lock = threading.Lock()
        self._sessions: dict[tuple[str, str], DocumentSession] = {}
        self._history_cache: dict[tuple[str, str], tuple[HistoryEntry, ...]] = {}
        # Bumped by every invalidation; a read only fills the cache if no commit landed during it.
        self._history_generation: dict[tuple[str, str], int] = {}

    # -- sessions ------------------------------------------------------------

    def session(self, project_id: str, document_type: str) -> DocumentSession:
        validate_document_type(document_type)
        if not project_id:
            raise ValueError("project_id must be a non-empty string.")
        key = (project_id, document_type)
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = DocumentSession(self, project_id, document_type)
                self._sessions[key] = session
            return session

    def forget_session(self, session: DocumentSession) -> None:
        with self._lock:
            key = (session.project_id, session.document_type)
            if self._sessions.get(key) is session:
                del self._sessions[key]

    def project(self, project_id: str) -> Optional[Project]:
        if self._project_lookup is None:
            return None
        return self._project_lookup(project_id)

    # -- read side -----------------------------------------------------------

    def history(self, project_id: str, document_type: str) -> tuple[HistoryEntry, ...]:
        key = (project_id, document_type)
        with self._lock:
            cached = self._history_cache.get(key)
            generation = self._history_generation.get(key, 0)
        if cached is not None:
            return cached
        entries = self.history_projector.project(
            self.repository.list_history(project_id, document_type)
        )
        with self._lock:
            if self._history_generation.get(key, 0) == generation:
                self._history_cache[key] = entries
        return entries

    def invalidate_history(self, project_id: str, document_type: str) -> None:
        key = (project_id, document_type)
        with self._lock:
            self._history_cache.pop(key, None)
            self._history_generation[key] = self._history_generation.get(key, 0) + 1

    def project_status(self, project_id: str) -> ProjectStatus:
        return self.status_projector.status(project_id)

    # -- shared finalize steps -----------------------------------------------

    def gross_amount(self, payload: DocumentPayload) -> Optional[Decimal]:
        return compute_gross_amount(payload, self.settings.tax_rule)

    def render_and_store(self, project_id: str, payload: DocumentPayload) -> str:
        """Render payload and store the artifact. Returns the file id."""
        document_type = payload.document_type
        try:
            artifact = self.renderer.render(document_type, payload)
        except Exception as exc:
            logger.error(f"Rendering {document_type} for project {project_id} failed", exc_info=True)
            raise ArtifactRenderFailed(project_id, document_type, exc) from exc
        try:
            return self.blob_store.store(artifact, artifact_file_name(document_type, payload.number))
        except Exception as exc:
            logger.error(
                f"Storing artifact of {document_type} for project {project_id} failed",
                exc_info=True,
            )
            raise BlobStoreFailed(project_id, document_type, exc) from exc

    # -- credit notes --------------------------------------------------------

    def issue_credit_note(
        self,
        project_id: str,
        void_reason: str,
        payload: Optional[DocumentPayload] = None,
    ) -> StoredDocument:
        """
        Void the project's invoice by committing a credit note.

        Without a payload the credit note repeats the invoice's lines and
        header. Nothing calls this automatically.
        """
        if not void_reason or not void_reason.strip():
            raise ValueError("void_reason must be a non-empty string.")
        invoice = self.repository.get_current(project_id, DOCUMENT_INVOICE)
        if invoice is None:
            raise LifecycleError(f"Project {project_id} has no invoice to void.")
        if invoice.is_voided:
            raise AlreadyFinalized(project_id, DOCUMENT_CREDIT_NOTE)
        if payload is None:
            source = invoice.data_snapshot
            payload = DocumentPayload(
                document_type=DOCUMENT_CREDIT_NOTE,
                line_items=project_line_items(source.line_items, DOCUMENT_CREDIT_NOTE),
                header={**source.header, "voids_invoice": invoice.number, "void_reason": void_reason},
                freight_cost=source.freight_cost,
                packaging_cost=source.packaging_cost,
            )
        elif payload.document_type != DOCUMENT_CREDIT_NOTE:
            raise ValueError("payload must be a credit_note payload.")

        issued = self.numbers.next_number(DOCUMENT_CREDIT_NOTE)
        payload = payload.with_number(issued.number)
        file_id = self.render_and_store(project_id, payload)
        try:
            credit_note = self.repository.void_invoice(
                project_id,
                credit_note_payload=payload,
                artifact_file_id=file_id,
                number=issued.number,
                gross_amount=self.gross_amount(payload),
                void_reason=void_reason,
                file_name=artifact_file_name(DOCUMENT_CREDIT_NOTE, issued.number),
                number_is_fallback=issued.is_fallback,
            )
        except (DocumentImmutable, StructuralInconsistency):
            raise
        except Exception as exc:
            raise RepositoryCommitFailed(
                project_id, DOCUMENT_CREDIT_NOTE, exc, orphaned_file_id=file_id
            ) from exc

        self.invalidate_history(project_id, DOCUMENT_INVOICE)
        self.invalidate_history(project_id, DOCUMENT_CREDIT_NOTE)
        with self._lock:
            stale = self._sessions.pop((project_id, DOCUMENT_CREDIT_NOTE), None)
        if stale is not None:
            stale.close()
        logger.info(
            f"Invoice {invoice.number} of project {project_id} voided by {credit_note.number}"
        )
        return credit_note

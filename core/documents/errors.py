"""
Salesdocs Documents - Lifecycle Errors
======================================
Error types for drafting, numbering and committing documents.

Soft errors (DraftWriteFailed, NumberGenerationFailed) are absorbed by
the lifecycle controller and reported as notices. Everything raised
during finalize or version commit propagates to the caller.
"""

from __future__ import annotations

from typing import Optional


class LifecycleError(Exception):
    """Base error for all document lifecycle operations."""
    pass


class UnknownDocumentType(LifecycleError, ValueError):
    def __init__(self, document_type):
        self.document_type = document_type
        super().__init__(f"Unknown document type: {document_type!r}.")


class InvalidTransition(LifecycleError):
    """The requested action does not exist in the current lifecycle state."""

    def __init__(self, action: str, state, detail: str = ""):
        self.action = action
        self.state = state
        message = f"Action '{action}' is not allowed in state {getattr(state, 'value', state)}."
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)


# ══════════════════════════════════════════════════════════════
# SOFT ERRORS (absorbed, surfaced as notices)
# ══════════════════════════════════════════════════════════════

class DraftWriteFailed(LifecycleError):
    """Autosave could not be persisted; retried on the next debounce tick."""

    def __init__(self, project_id: str, document_type: str, cause: Optional[BaseException] = None):
        self.project_id = project_id
        self.document_type = document_type
        self.cause = cause
        super().__init__(
            f"Draft for {document_type} of project {project_id} could not be saved"
            f"{': ' + str(cause) if cause else ''}."
        )


class NumberGenerationFailed(LifecycleError):
    """The sequence generator failed; a fallback number is used instead."""

    def __init__(self, document_type: str, cause: Optional[BaseException] = None):
        self.document_type = document_type
        self.cause = cause
        super().__init__(
            f"Number generation for {document_type} failed"
            f"{': ' + str(cause) if cause else ''}."
        )


# ══════════════════════════════════════════════════════════════
# IMMUTABILITY VIOLATIONS (hard, user-facing)
# ══════════════════════════════════════════════════════════════

class DocumentImmutable(LifecycleError):
    """This document cannot be modified."""

    user_message = "This document cannot be modified."

    def __init__(self, project_id: str, document_type: str, detail: str):
        self.project_id = project_id
        self.document_type = document_type
        super().__init__(detail)


class AlreadyFinalized(DocumentImmutable):
    def __init__(self, project_id: str, document_type: str):
        super().__init__(
            project_id,
            document_type,
            f"{document_type} of project {project_id} is already finalized; "
            "a first version cannot be committed twice.",
        )


class SealedDocument(DocumentImmutable):
    def __init__(self, project_id: str, document_type: str):
        super().__init__(
            project_id,
            document_type,
            f"{document_type} of project {project_id} is sealed; "
            "no further version may ever be written.",
        )


# ══════════════════════════════════════════════════════════════
# FINALIZE FAILURES (hard, retryable)
# ══════════════════════════════════════════════════════════════

class FinalizeFailed(LifecycleError):
    """Finalize aborted; the document stays editable and may be retried."""

    def __init__(self, project_id: str, document_type: str, detail: str):
        self.project_id = project_id
        self.document_type = document_type
        super().__init__(detail)


class ArtifactRenderFailed(FinalizeFailed):
    def __init__(self, project_id: str, document_type: str, cause: BaseException):
        self.cause = cause
        super().__init__(
            project_id,
            document_type,
            f"Rendering {document_type} of project {project_id} failed: {cause}",
        )


class BlobStoreFailed(FinalizeFailed):
    def __init__(self, project_id: str, document_type: str, cause: BaseException):
        self.cause = cause
        super().__init__(
            project_id,
            document_type,
            f"Storing the artifact of {document_type} for project {project_id} failed: {cause}",
        )


class RepositoryCommitFailed(FinalizeFailed):
    """The artifact was stored but the version row was not written."""

    def __init__(
        self,
        project_id: str,
        document_type: str,
        cause: BaseException,
        orphaned_file_id: Optional[str] = None,
    ):
        self.cause = cause
        self.orphaned_file_id = orphaned_file_id
        super().__init__(
            project_id,
            document_type,
            f"Committing {document_type} for project {project_id} failed: {cause}"
            f"{f' (orphaned artifact {orphaned_file_id})' if orphaned_file_id else ''}",
        )


# ══════════════════════════════════════════════════════════════
# DATA INTEGRITY
# ══════════════════════════════════════════════════════════════

class StructuralInconsistency(LifecycleError):
    """
    Stored rows violate a lifecycle invariant (several current rows,
    version gaps or repeats, snapshot hash mismatch).

    Signals an earlier bug. Never resolved silently.
    """

    def __init__(self, project_id: str, document_type: str, detail: str):
        self.project_id = project_id
        self.document_type = document_type
        self.detail = detail
        super().__init__(
            f"Structural inconsistency in {document_type} of project {project_id}: {detail}"
        )

"""
Salesdocs Document Lifecycle - Storage Models
=============================================
RULES:
- Stored document rows are never deleted.
- After insert, only is_current, is_voided and void_reason may change.
- At most one current row per (project_id, document_type), enforced
  by a partial unique constraint.
- (project_id, document_type, version) is unique.

This file contains NO lifecycle logic.
"""

from django.db import models


class DocumentType(models.TextChoices):
    QUOTE = "quote", "Angebot"
    ORDER_CONFIRMATION = "order_confirmation", "Auftragsbestaetigung"
    DELIVERY_NOTE = "delivery_note", "Lieferschein"
    INVOICE = "invoice", "Rechnung"
    CREDIT_NOTE = "credit_note", "Stornorechnung"


MUTABLE_FIELDS = frozenset({"is_current", "is_voided", "void_reason"})


class StoredDocumentRecord(models.Model):
    """One committed version of one document type for one project."""

    # ── Identity ──────────────────────────────────────────────
    document_id = models.CharField(max_length=32, primary_key=True, editable=False)
    project_id = models.CharField(max_length=255)
    document_type = models.CharField(max_length=32, choices=DocumentType.choices)
    number = models.CharField(max_length=64)
    number_is_fallback = models.BooleanField(default=False)
    version = models.PositiveIntegerField()

    # ── Content ───────────────────────────────────────────────
    data_snapshot = models.JSONField(
        help_text="Full structured payload of this version. Never edited.",
    )
    snapshot_hash = models.CharField(max_length=64)
    artifact_file_id = models.CharField(max_length=255)
    artifact_file_name = models.CharField(max_length=255)
    gross_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)

    # ── Temporal & flags ──────────────────────────────────────
    created_at = models.DateTimeField()
    is_current = models.BooleanField(default=True)
    is_voided = models.BooleanField(default=False)
    void_reason = models.TextField(null=True, blank=True)

    class Meta:
        db_table = "salesdocs_stored_document"
        ordering = ["project_id", "document_type", "-version"]
        constraints = [
            models.UniqueConstraint(
                fields=["project_id", "document_type", "version"],
                name="uq_doc_key_version",
            ),
            models.UniqueConstraint(
                fields=["project_id", "document_type"],
                condition=models.Q(is_current=True),
                name="uq_doc_key_current",
            ),
        ]
        indexes = [
            models.Index(fields=["document_type", "number"], name="idx_doc_type_number"),
        ]

    def save(self, *args, **kwargs):
        """GUARD: insert, or update of the flag columns only."""
        if not self._state.adding:
            update_fields = kwargs.get("update_fields")
            if not update_fields or not set(update_fields) <= MUTABLE_FIELDS:
                raise PermissionError(
                    "Stored documents are append-only. "
                    f"Only {sorted(MUTABLE_FIELDS)} may change after insert."
                )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PermissionError("Stored documents are never deleted.")

    def __str__(self):
        return f"{self.document_type} {self.number} v{self.version} ({self.project_id})"


class DraftRecordRow(models.Model):
    """Single overwritable autosave snapshot per (project_id, document_type)."""

    project_id = models.CharField(max_length=255)
    document_type = models.CharField(max_length=32, choices=DocumentType.choices)
    payload = models.JSONField()
    saved_at = models.DateTimeField()

    class Meta:
        db_table = "salesdocs_draft"
        constraints = [
            models.UniqueConstraint(
                fields=["project_id", "document_type"],
                name="uq_draft_key",
            ),
        ]


class NumberSequenceRow(models.Model):
    """Running number of one document type within the current season."""

    document_type = models.CharField(
        max_length=32, choices=DocumentType.choices, primary_key=True
    )
    season = models.PositiveIntegerField(null=True, blank=True)
    next_sequence = models.PositiveIntegerField(default=1)

    class Meta:
        db_table = "salesdocs_number_sequence"

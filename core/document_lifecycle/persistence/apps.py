"""
Salesdocs - Document Lifecycle App Configuration
================================================
Durable storage for the document lifecycle.

This app:
- Stores committed document versions (append-only)
- Stores one overwritable draft per project and document type
- Holds the running number per document type and season

This app does NOT:
- Decide lifecycle transitions (core.document_lifecycle.controller)
- Render or store artifacts
"""

from django.apps import AppConfig


class DocumentLifecycleConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.document_lifecycle.persistence"
    label = "document_lifecycle"
    verbose_name = "Salesdocs Document Lifecycle"

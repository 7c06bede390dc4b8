"""
Salesdocs Document Lifecycle - Django Persistence
=================================================
ORM-backed DocumentRepository, DraftStore and NumberingProvider.
Import the repository module only after Django is configured.
"""

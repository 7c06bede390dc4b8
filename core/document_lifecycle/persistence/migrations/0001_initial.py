from django.db import migrations, models


DOCUMENT_TYPE_CHOICES = [
    ("quote", "Angebot"),
    ("order_confirmation", "Auftragsbestaetigung"),
    ("delivery_note", "Lieferschein"),
    ("invoice", "Rechnung"),
    ("credit_note", "Stornorechnung"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="StoredDocumentRecord",
            fields=[
                ("document_id", models.CharField(editable=False, max_length=32, primary_key=True, serialize=False)),
                ("project_id", models.CharField(max_length=255)),
                ("document_type", models.CharField(choices=DOCUMENT_TYPE_CHOICES, max_length=32)),
                ("number", models.CharField(max_length=64)),
                ("number_is_fallback", models.BooleanField(default=False)),
                ("version", models.PositiveIntegerField()),
                ("data_snapshot", models.JSONField(help_text="Full structured payload of this version. Never edited.")),
                ("snapshot_hash", models.CharField(max_length=64)),
                ("artifact_file_id", models.CharField(max_length=255)),
                ("artifact_file_name", models.CharField(max_length=255)),
                ("gross_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("created_at", models.DateTimeField()),
                ("is_current", models.BooleanField(default=True)),
                ("is_voided", models.BooleanField(default=False)),
                ("void_reason", models.TextField(blank=True, null=True)),
            ],
            options={
                "db_table": "salesdocs_stored_document",
                "ordering": ["project_id", "document_type", "-version"],
            },
        ),
        migrations.CreateModel(
            name="DraftRecordRow",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("project_id", models.CharField(max_length=255)),
                ("document_type", models.CharField(choices=DOCUMENT_TYPE_CHOICES, max_length=32)),
                ("payload", models.JSONField()),
                ("saved_at", models.DateTimeField()),
            ],
            options={
                "db_table": "salesdocs_draft",
            },
        ),
        migrations.CreateModel(
            name="NumberSequenceRow",
            fields=[
                ("document_type", models.CharField(choices=DOCUMENT_TYPE_CHOICES, max_length=32, primary_key=True, serialize=False)),
                ("season", models.PositiveIntegerField(blank=True, null=True)),
                ("next_sequence", models.PositiveIntegerField(default=1)),
            ],
            options={
                "db_table": "salesdocs_number_sequence",
            },
        ),
        migrations.AddIndex(
            model_name="storeddocumentrecord",
            index=models.Index(fields=["document_type", "number"], name="idx_doc_type_number"),
        ),
        migrations.AddConstraint(
            model_name="storeddocumentrecord",
            constraint=models.UniqueConstraint(
                fields=("project_id", "document_type", "version"),
                name="uq_doc_key_version",
            ),
        ),
        migrations.AddConstraint(
            model_name="storeddocumentrecord",
            constraint=models.UniqueConstraint(
                condition=models.Q(("is_current", True)),
                fields=("project_id", "document_type"),
                name="uq_doc_key_current",
            ),
        ),
        migrations.AddConstraint(
            model_name="draftrecordrow",
            constraint=models.UniqueConstraint(
                fields=("project_id", "document_type"),
                name="uq_draft_key",
            ),
        ),
    ]

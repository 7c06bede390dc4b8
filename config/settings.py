"""
Salesdocs - Django Settings (Infrastructure Only)
=================================================
Django hosts the ORM backend of the document lifecycle.
The lifecycle architecture is the authority; Django does not dictate structure.

Lifecycle tuning (VAT, debounce, numbering) is read separately by
core.config.load_settings from SALESDOCS_* variables.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("SALESDOCS_SECRET_KEY", "salesdocs-dev-key-replace-before-deployment")

DEBUG = os.environ.get("SALESDOCS_DEBUG", "1") == "1"

ALLOWED_HOSTS = []

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    # ── Salesdocs Modules ─────────────────────────────────
    "core.document_lifecycle.persistence.apps.DocumentLifecycleConfig",
]

MIDDLEWARE = []

# ── Database ──────────────────────────────────────────────────
# SQLite unless SALESDOCS_DB_PATH points elsewhere.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("SALESDOCS_DB_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "de-de"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

# ── Default Primary Key ──────────────────────────────────────
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Logging ───────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "loggers": {
        "salesdocs": {
            "handlers": ["console"],
            "level": os.environ.get("SALESDOCS_LOG_LEVEL", "INFO"),
            "propagate": True,
        },
    },
}

"""
Salesdocs Core Config - Public API
==================================
Lifecycle settings (VAT, debounce, season boundary, numbering width).
"""

from core.config.settings import (
    CENT,
    LifecycleSettings,
    TaxRule,
    load_settings,
)

__all__ = [
    "CENT",
    "LifecycleSettings",
    "TaxRule",
    "load_settings",
]

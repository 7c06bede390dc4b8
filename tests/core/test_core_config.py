"""
Tests for core.config - lifecycle settings and the VAT rule.
"""

from decimal import Decimal

import pytest

from core.config import CENT, LifecycleSettings, TaxRule, load_settings


class TestTaxRule:
    def test_default_rate_is_nineteen_percent(self):
        rule = TaxRule()
        assert rule.rate == Decimal("0.19")
        assert rule.percent == Decimal("19")

    def test_compute_tax_rounds_half_up_to_cents(self):
        rule = TaxRule()
        assert rule.compute_tax(Decimal("400.00")) == Decimal("76.00")
        # 0.19 × 0.05 = 0.0095 → 0.01
        assert rule.compute_tax(Decimal("0.05")) == Decimal("0.01")
        assert rule.compute_tax(Decimal("0.05")).as_tuple().exponent == CENT.as_tuple().exponent

    def test_rate_must_be_decimal(self):
        with pytest.raises(ValueError, match="Decimal"):
            TaxRule(rate=0.19)

    def test_rate_out_of_range(self):
        with pytest.raises(ValueError, match="between 0 and 1"):
            TaxRule(rate=Decimal("1.5"))


class TestLifecycleSettings:
    def test_defaults(self):
        settings = LifecycleSettings()
        assert settings.draft_debounce_seconds == 1.5
        assert settings.season_start_month == 11
        assert settings.number_padding == 4
        assert settings.currency == "EUR"

    def test_invalid_debounce(self):
        with pytest.raises(ValueError, match="draft_debounce_seconds"):
            LifecycleSettings(draft_debounce_seconds=0)

    def test_invalid_season_month(self):
        with pytest.raises(ValueError, match="season_start_month"):
            LifecycleSettings(season_start_month=13)

    def test_settings_are_frozen(self):
        settings = LifecycleSettings()
        with pytest.raises(Exception):
            settings.currency = "USD"


class TestLoadSettings:
    def test_empty_environment_gives_defaults(self):
        assert load_settings({}) == LifecycleSettings()

    def test_reads_prefixed_variables(self):
        settings = load_settings(
            {
                "SALESDOCS_DRAFT_DEBOUNCE_SECONDS": "2.5",
                "SALESDOCS_VAT_RATE": "0.07",
                "SALESDOCS_SEASON_START_MONTH": "10",
                "SALESDOCS_NUMBER_PADDING": "5",
                "SALESDOCS_BLOB_BASE_URL": "https://files.example.org/blobs/",
                "SALESDOCS_CURRENCY": "chf",
            }
        )
        assert settings.draft_debounce_seconds == 2.5
        assert settings.tax_rule.rate == Decimal("0.07")
        assert settings.season_start_month == 10
        assert settings.number_padding == 5
        assert settings.blob_base_url == "https://files.example.org/blobs"
        assert settings.currency == "CHF"

    def test_blank_values_are_ignored(self):
        assert load_settings({"SALESDOCS_CURRENCY": "  "}).currency == "EUR"

    def test_malformed_number_names_variable(self):
        with pytest.raises(ValueError, match="SALESDOCS_NUMBER_PADDING"):
            load_settings({"SALESDOCS_NUMBER_PADDING": "four"})

    def test_malformed_vat_rate(self):
        with pytest.raises(ValueError, match="SALESDOCS_VAT_RATE"):
            load_settings({"SALESDOCS_VAT_RATE": "nineteen"})

    def test_out_of_range_value_rejected(self):
        with pytest.raises(ValueError, match="season_start_month"):
            load_settings({"SALESDOCS_SEASON_START_MONTH": "0"})

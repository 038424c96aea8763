"""
Tests for jewel_config.loader.

Validates YAML parsing into ShopSettings, schema defaults, plan template
overrides, rejection of bad values, and checksum stability.
"""

from decimal import Decimal

import pytest
import yaml

from jewel_config import (
    DEFAULT_PLAN_TEMPLATES,
    ShopSettings,
    compute_checksum,
    load_settings,
    settings_from_dict,
)
from jewel_kernel.exceptions import InvalidSettingsError

SHOP_YAML = """\
shop_name: Lakshmi Jewellers
current_gold_rate_24k: 7500
default_tax_rate: 3
grace_period_hours: 48
follow_up_interval_days: 2
plan_templates:
  - name: Festive (4 Months)
    months: 4
    advance_pct: 25
  - name: Retired
    months: 9
    advance_pct: 10
    interest_pct: 2
    enabled: false
"""


class TestLoadSettings:
    """load_settings reads YAML from disk."""

    def test_loads_yaml(self, tmp_path):
        path = tmp_path / "shop.yaml"
        path.write_text(SHOP_YAML)

        settings = load_settings(path)

        assert settings.shop_name == "Lakshmi Jewellers"
        assert settings.current_gold_rate_24k == Decimal("7500")
        assert settings.grace_period_hours == 48
        assert settings.follow_up_interval_days == 2
        assert settings.min_warning_spacing_hours == 4
        assert settings.purity_factor_22k == Decimal("0.916")

    def test_templates_override_defaults(self, tmp_path):
        path = tmp_path / "shop.yaml"
        path.write_text(SHOP_YAML)

        settings = load_settings(path)

        assert [t.name for t in settings.plan_templates] == ["Festive (4 Months)", "Retired"]
        assert settings.template("Festive (4 Months)").advance_pct == Decimal("25")
        assert settings.template("Retired") is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("current_gold_rate_24k: [7500\n")

        with pytest.raises(yaml.YAMLError):
            load_settings(path)

    def test_load_is_logged(self, tmp_path, captured_logs):
        path = tmp_path / "shop.yaml"
        path.write_text(SHOP_YAML)

        load_settings(path)

        record = next(r for r in captured_logs() if r["message"] == "settings_loaded")
        assert record["path"] == str(path)
        assert len(record["checksum"]) == 64


class TestSettingsFromDict:
    def test_rate_required(self):
        with pytest.raises(InvalidSettingsError) as exc:
            settings_from_dict({"shop_name": "x"})
        assert exc.value.code == "INVALID_SETTINGS"

    def test_non_numeric_rate(self):
        with pytest.raises(InvalidSettingsError):
            settings_from_dict({"current_gold_rate_24k": "lots"})

    def test_non_positive_rate(self):
        with pytest.raises(InvalidSettingsError):
            settings_from_dict({"current_gold_rate_24k": 0})

    def test_negative_grace_rejected(self):
        with pytest.raises(InvalidSettingsError):
            settings_from_dict({"current_gold_rate_24k": 7500, "grace_period_hours": -1})

    def test_fractional_grace_rejected(self):
        with pytest.raises(InvalidSettingsError) as exc:
            settings_from_dict({"current_gold_rate_24k": 7500, "grace_period_hours": 1.5})
        assert exc.value.key == "grace_period_hours"

    def test_whole_float_hours_accepted(self):
        settings = settings_from_dict(
            {"current_gold_rate_24k": 7500, "min_warning_spacing_hours": 6.0}
        )

        assert settings.min_warning_spacing_hours == 6

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-inf"])
    def test_non_finite_rate_rejected(self, value):
        with pytest.raises(InvalidSettingsError) as exc:
            settings_from_dict({"current_gold_rate_24k": value})
        assert exc.value.key == "current_gold_rate_24k"

    def test_non_finite_rate_rejected_by_schema(self):
        with pytest.raises(InvalidSettingsError):
            ShopSettings(current_gold_rate_24k=Decimal("NaN"))

    def test_template_missing_months(self):
        with pytest.raises(InvalidSettingsError):
            settings_from_dict({
                "current_gold_rate_24k": 7500,
                "plan_templates": [{"name": "x", "advance_pct": 10}],
            })

    def test_template_zero_months(self):
        with pytest.raises(InvalidSettingsError):
            settings_from_dict({
                "current_gold_rate_24k": 7500,
                "plan_templates": [{"name": "x", "months": 0, "advance_pct": 10}],
            })

    def test_default_templates(self):
        settings = settings_from_dict({"current_gold_rate_24k": "7500.50"})

        assert settings.plan_templates == DEFAULT_PLAN_TEMPLATES
        assert settings.current_gold_rate_24k == Decimal("7500.50")


class TestChecksum:
    def test_stable(self):
        a = ShopSettings(current_gold_rate_24k=Decimal("7500"))
        b = ShopSettings(current_gold_rate_24k=Decimal("7500"))

        assert compute_checksum(a) == compute_checksum(b)

    def test_rate_change_detected(self):
        a = ShopSettings(current_gold_rate_24k=Decimal("7500"))

        assert compute_checksum(a) != compute_checksum(a.with_rate(Decimal("7600")))

"""
Shop settings schema.

Read-only inputs to pricing, protection, repricing and the autopilot.
YAML files are parsed into these frozen dataclasses by the loader; the
market-rate feed produces updated copies via ``with_rate``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal

from jewel_kernel.exceptions import InvalidSettingsError

_DECIMAL_FIELDS = (
    "current_gold_rate_24k",
    "purity_factor_22k",
    "purity_factor_18k",
    "default_tax_rate",
    "protection_limit",
)


@dataclass(frozen=True)
class PlanTemplate:
    """A pre-created installment plan offered at the counter."""

    name: str
    months: int
    advance_pct: Decimal
    interest_pct: Decimal = Decimal("0")
    enabled: bool = True

    def __post_init__(self) -> None:
        if self.months < 1:
            raise InvalidSettingsError(f"plan_templates.{self.name}.months", "must be >= 1")
        if not (Decimal("0") <= self.advance_pct <= Decimal("100")):
            raise InvalidSettingsError(
                f"plan_templates.{self.name}.advance_pct", "must be between 0 and 100"
            )


DEFAULT_PLAN_TEMPLATES: tuple[PlanTemplate, ...] = (
    PlanTemplate("Short Term (3 Months)", 3, Decimal("20"), Decimal("0")),
    PlanTemplate("Standard (6 Months)", 6, Decimal("15"), Decimal("5")),
    PlanTemplate("Long Term (12 Months)", 12, Decimal("10"), Decimal("8")),
)


@dataclass(frozen=True)
class ShopSettings:
    """
    Settings consumed by the engines.

    Rates are rupees per gram.  Percentages are whole-number percents
    (3 means 3%).  Purity factors convert the 24K rate to 22K/18K.
    """

    current_gold_rate_24k: Decimal
    purity_factor_22k: Decimal = Decimal("0.916")
    purity_factor_18k: Decimal = Decimal("0.75")
    default_tax_rate: Decimal = Decimal("3")
    grace_period_hours: int = 24
    follow_up_interval_days: int = 3
    min_warning_spacing_hours: int = 4
    protection_limit: Decimal = Decimal("500")
    shop_name: str = "AuraGold"
    plan_templates: tuple[PlanTemplate, ...] = field(default=DEFAULT_PLAN_TEMPLATES)

    def __post_init__(self) -> None:
        for name in _DECIMAL_FIELDS:
            if not Decimal(getattr(self, name)).is_finite():
                raise InvalidSettingsError(name, "must be a finite number")
        for name in ("current_gold_rate_24k", "purity_factor_22k", "purity_factor_18k"):
            if getattr(self, name) <= 0:
                raise InvalidSettingsError(name, "must be positive")
        if self.default_tax_rate < 0:
            raise InvalidSettingsError("default_tax_rate", "cannot be negative")
        if self.grace_period_hours < 0:
            raise InvalidSettingsError("grace_period_hours", "cannot be negative")
        if self.follow_up_interval_days < 0:
            raise InvalidSettingsError("follow_up_interval_days", "cannot be negative")
        if self.min_warning_spacing_hours < 0:
            raise InvalidSettingsError("min_warning_spacing_hours", "cannot be negative")

    def with_rate(self, rate_24k: Decimal) -> ShopSettings:
        """Return a copy carrying a new 24K market rate."""
        return replace(self, current_gold_rate_24k=rate_24k)

    def template(self, name: str) -> PlanTemplate | None:
        for t in self.plan_templates:
            if t.name == name and t.enabled:
                return t
        return None

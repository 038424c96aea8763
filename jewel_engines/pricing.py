"""
Module: jewel_engines.pricing
Responsibility:
    Price one jewelry item against a 24K market rate: metal, wastage,
    labor, stones and tax, each rounded to whole rupees.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - final = round(metal + wastage + labor + stones) + round(subtotal x tax).
    - Every computed field is recomputed together; items are never patched
      incrementally.
    - Zero net weight yields all-zero metal/wastage/labor (a draft line),
      not an error.  Committed orders go through ``validate_item`` first.

Failure modes:
    - InvalidRateError when the market rate or a purity factor is <= 0.
    - InvalidItemError from ``validate_item``.

Usage:
    from jewel_engines.pricing import price_item

    priced = price_item(item, Decimal("7500"), settings)
    priced.final_amount  # 83887 for 10g 22K, 12% wastage, 450/g making
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import TYPE_CHECKING, Sequence

from jewel_engines.tracer import traced_engine
from jewel_kernel.domain.order import JewelryItem, Purity
from jewel_kernel.domain.values import round_money, to_decimal
from jewel_kernel.exceptions import InvalidItemError, InvalidRateError
from jewel_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from jewel_config.schema import ShopSettings

logger = get_logger("engines.pricing")

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class ItemPricing:
    """Breakdown of one item's price.  All money fields are whole rupees."""

    effective_rate: Decimal
    metal_value: int
    wastage_value: int
    labor_value: int
    stone_total: int
    sub_total: int
    tax: int
    final: int


def validate_rate(market_rate_24k: Decimal | int | str | None, settings: ShopSettings) -> Decimal:
    """Reject missing or non-positive rate inputs before any repricing.

    Returns the rate as a Decimal.
    """
    if market_rate_24k is None:
        raise InvalidRateError("market_rate_24k", None)
    rate = to_decimal(market_rate_24k)
    if rate <= 0:
        raise InvalidRateError("market_rate_24k", rate)
    if settings.purity_factor_22k <= 0:
        raise InvalidRateError("purity_factor_22k", settings.purity_factor_22k)
    if settings.purity_factor_18k <= 0:
        raise InvalidRateError("purity_factor_18k", settings.purity_factor_18k)
    return rate


def validate_item(item: JewelryItem) -> None:
    """Check that an item is fit for a committed order.

    Raises:
        InvalidItemError: net weight <= 0, negative wastage, making charge
            or stone values, or an unknown purity.
    """
    if not isinstance(item.purity, Purity):
        raise InvalidItemError(item.id, "purity", f"unknown grade {item.purity!r}")
    if item.net_weight <= 0:
        raise InvalidItemError(item.id, "net_weight", "must be greater than zero")
    if item.wastage_pct < 0:
        raise InvalidItemError(item.id, "wastage_pct", "cannot be negative")
    if item.making_charge_per_gram < 0:
        raise InvalidItemError(item.id, "making_charge_per_gram", "cannot be negative")
    if item.stone_charges < 0:
        raise InvalidItemError(item.id, "stone_charges", "cannot be negative")
    for stone in item.stone_entries:
        if stone.total < 0:
            raise InvalidItemError(item.id, "stone_entries", "stone total cannot be negative")


def effective_rate(purity: Purity, market_rate_24k: Decimal, settings: ShopSettings) -> Decimal:
    """Per-gram rate for a purity grade derived from the 24K rate."""
    if purity == Purity.K22:
        return market_rate_24k * settings.purity_factor_22k
    if purity == Purity.K18:
        return market_rate_24k * settings.purity_factor_18k
    return market_rate_24k


def stone_total(item: JewelryItem) -> int:
    """Flat stone charge plus every itemised stone line, rounded."""
    return round_money(item.stone_charges + sum((s.total for s in item.stone_entries), Decimal("0")))


@traced_engine("item_pricing", "1.0", fingerprint_fields=("market_rate_24k",))
def calculate_item_price(
    item: JewelryItem,
    market_rate_24k: Decimal,
    settings: ShopSettings,
) -> ItemPricing:
    """Compute the full price breakdown for one item.

    Pure function.  Does not validate the item; see ``validate_item``.
    """
    rate = effective_rate(item.purity, to_decimal(market_rate_24k), settings)
    weight = item.net_weight

    metal = round_money(weight * rate)
    wastage = round_money(Decimal(metal) * item.wastage_pct / _HUNDRED)
    labor = round_money(item.making_charge_per_gram * weight)
    stones = stone_total(item)

    sub_total = metal + wastage + labor + stones
    tax = round_money(Decimal(sub_total) * settings.default_tax_rate / _HUNDRED)

    return ItemPricing(
        effective_rate=rate,
        metal_value=metal,
        wastage_value=wastage,
        labor_value=labor,
        stone_total=stones,
        sub_total=sub_total,
        tax=tax,
        final=sub_total + tax,
    )


def price_item(
    item: JewelryItem,
    market_rate_24k: Decimal,
    settings: ShopSettings,
) -> JewelryItem:
    """Return a copy of ``item`` with every computed field replaced.

    Descriptive attributes (category, weight, production status, ...) are
    carried over untouched.
    """
    p = calculate_item_price(item, market_rate_24k, settings)
    return replace(
        item,
        metal_value=p.metal_value,
        wastage_value=p.wastage_value,
        labor_value=p.labor_value,
        stone_total=p.stone_total,
        tax_amount=p.tax,
        final_amount=p.final,
    )


def price_cart(
    items: Sequence[JewelryItem],
    market_rate_24k: Decimal,
    settings: ShopSettings,
) -> tuple[tuple[JewelryItem, ...], int]:
    """Price every item and return them with the cart total."""
    priced = tuple(price_item(i, market_rate_24k, settings) for i in items)
    return priced, sum(i.final_amount for i in priced)

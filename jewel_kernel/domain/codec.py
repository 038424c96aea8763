"""
Order <-> JSON-safe dict conversion.

Decimals are written as strings, dates and datetimes as ISO-8601 strings,
enums by value.  ``order_from_dict(order_to_dict(o)) == o`` for every
well-formed order.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from jewel_kernel.domain.order import (
    JewelryItem,
    Milestone,
    MilestoneStatus,
    Order,
    OrderSnapshot,
    OrderStatus,
    Payment,
    PaymentPlan,
    ProductionStatus,
    ProtectionStatus,
    Purity,
    StoneEntry,
)


def _dec(value: Any) -> Decimal:
    return Decimal(str(value))


def _opt_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _opt_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def item_to_dict(item: JewelryItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "category": item.category,
        "purity": item.purity.value,
        "net_weight": str(item.net_weight),
        "wastage_pct": str(item.wastage_pct),
        "making_charge_per_gram": str(item.making_charge_per_gram),
        "stone_charges": str(item.stone_charges),
        "stone_entries": [
            {"description": s.description, "total": str(s.total)}
            for s in item.stone_entries
        ],
        "metal_color": item.metal_color,
        "customization_details": item.customization_details,
        "huid": item.huid,
        "size": item.size,
        "production_status": item.production_status.value,
        "metal_value": item.metal_value,
        "wastage_value": item.wastage_value,
        "labor_value": item.labor_value,
        "stone_total": item.stone_total,
        "tax_amount": item.tax_amount,
        "final_amount": item.final_amount,
    }


def milestone_to_dict(m: Milestone) -> dict[str, Any]:
    return {
        "id": m.id,
        "due_date": m.due_date.isoformat(),
        "target_amount": m.target_amount,
        "cumulative_target": m.cumulative_target,
        "status": m.status.value,
        "warning_count": m.warning_count,
        "description": m.description,
    }


def order_to_dict(order: Order) -> dict[str, Any]:
    """Encode an order as a JSON-safe dict."""
    plan = order.payment_plan
    snapshot = order.original_snapshot
    return {
        "id": order.id,
        "customer_name": order.customer_name,
        "customer_contact": order.customer_contact,
        "customer_email": order.customer_email,
        "share_token": order.share_token,
        "items": [item_to_dict(i) for i in order.items],
        "payments": [
            {
                "id": p.id,
                "paid_at": p.paid_at.isoformat(),
                "amount": p.amount,
                "method": p.method,
                "note": p.note,
            }
            for p in order.payments
        ],
        "total_amount": order.total_amount,
        "net_payable": order.net_payable,
        "exchange_value": order.exchange_value,
        "gold_rate_at_booking": str(order.gold_rate_at_booking),
        "status": order.status.value,
        "created_at": order.created_at.isoformat(),
        "payment_plan": {
            "months": plan.months,
            "advance_pct": str(plan.advance_pct),
            "interest_pct": str(plan.interest_pct),
            "rate_protection": plan.rate_protection,
            "protection_rate_booked": str(plan.protection_rate_booked),
            "protection_deadline": (
                plan.protection_deadline.isoformat() if plan.protection_deadline else None
            ),
            "protection_limit": str(plan.protection_limit),
            "protection_status": plan.protection_status.value,
            "protection_reset_at": (
                plan.protection_reset_at.isoformat() if plan.protection_reset_at else None
            ),
            "template_name": plan.template_name,
            "milestones": [milestone_to_dict(m) for m in plan.milestones],
            "original_milestones": (
                [milestone_to_dict(m) for m in plan.original_milestones]
                if plan.original_milestones is not None
                else None
            ),
        },
        "original_snapshot": (
            {
                "taken_at": snapshot.taken_at.isoformat(),
                "original_total": snapshot.original_total,
                "original_rate": str(snapshot.original_rate),
                "items": [item_to_dict(i) for i in snapshot.items],
                "reason": snapshot.reason,
            }
            if snapshot is not None
            else None
        ),
    }


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def item_from_dict(data: dict[str, Any]) -> JewelryItem:
    return JewelryItem(
        id=data["id"],
        category=data["category"],
        purity=Purity(data["purity"]),
        net_weight=_dec(data["net_weight"]),
        wastage_pct=_dec(data.get("wastage_pct", "0")),
        making_charge_per_gram=_dec(data.get("making_charge_per_gram", "0")),
        stone_charges=_dec(data.get("stone_charges", "0")),
        stone_entries=tuple(
            StoneEntry(description=s["description"], total=_dec(s["total"]))
            for s in data.get("stone_entries", ())
        ),
        metal_color=data.get("metal_color", "Yellow Gold"),
        customization_details=data.get("customization_details", ""),
        huid=data.get("huid"),
        size=data.get("size"),
        production_status=ProductionStatus(
            data.get("production_status", ProductionStatus.DESIGNING.value)
        ),
        metal_value=data.get("metal_value", 0),
        wastage_value=data.get("wastage_value", 0),
        labor_value=data.get("labor_value", 0),
        stone_total=data.get("stone_total", 0),
        tax_amount=data.get("tax_amount", 0),
        final_amount=data.get("final_amount", 0),
    )


def milestone_from_dict(data: dict[str, Any]) -> Milestone:
    return Milestone(
        id=data["id"],
        due_date=date.fromisoformat(data["due_date"]),
        target_amount=data["target_amount"],
        cumulative_target=data["cumulative_target"],
        status=MilestoneStatus(data.get("status", MilestoneStatus.PENDING.value)),
        warning_count=data.get("warning_count", 0),
        description=data.get("description", ""),
    )


def order_from_dict(data: dict[str, Any]) -> Order:
    """Decode an order previously written by ``order_to_dict``.

    Raises:
        KeyError: if a required field is missing.
        ValueError: on malformed dates, decimals or enum values.
    """
    plan_data = data["payment_plan"]
    original = plan_data.get("original_milestones")
    plan = PaymentPlan(
        months=plan_data["months"],
        advance_pct=_dec(plan_data["advance_pct"]),
        interest_pct=_dec(plan_data.get("interest_pct", "0")),
        rate_protection=plan_data.get("rate_protection", True),
        protection_rate_booked=_dec(plan_data.get("protection_rate_booked", "0")),
        protection_deadline=_opt_date(plan_data.get("protection_deadline")),
        protection_limit=_dec(plan_data.get("protection_limit", "0")),
        protection_status=ProtectionStatus(
            plan_data.get("protection_status", ProtectionStatus.ACTIVE.value)
        ),
        protection_reset_at=_opt_datetime(plan_data.get("protection_reset_at")),
        template_name=plan_data.get("template_name"),
        milestones=tuple(milestone_from_dict(m) for m in plan_data["milestones"]),
        original_milestones=(
            tuple(milestone_from_dict(m) for m in original) if original is not None else None
        ),
    )

    snap_data = data.get("original_snapshot")
    snapshot = None
    if snap_data is not None:
        snapshot = OrderSnapshot(
            taken_at=datetime.fromisoformat(snap_data["taken_at"]),
            original_total=snap_data["original_total"],
            original_rate=_dec(snap_data["original_rate"]),
            items=tuple(item_from_dict(i) for i in snap_data["items"]),
            reason=snap_data["reason"],
        )

    return Order(
        id=data["id"],
        customer_name=data["customer_name"],
        customer_contact=data["customer_contact"],
        customer_email=data.get("customer_email"),
        share_token=data.get("share_token", ""),
        items=tuple(item_from_dict(i) for i in data["items"]),
        payments=tuple(
            Payment(
                id=p["id"],
                paid_at=datetime.fromisoformat(p["paid_at"]),
                amount=p["amount"],
                method=p["method"],
                note=p.get("note", ""),
            )
            for p in data.get("payments", ())
        ),
        total_amount=data["total_amount"],
        net_payable=data["net_payable"],
        exchange_value=data.get("exchange_value", 0),
        gold_rate_at_booking=_dec(data["gold_rate_at_booking"]),
        status=OrderStatus(data["status"]),
        created_at=datetime.fromisoformat(data["created_at"]),
        payment_plan=plan,
        original_snapshot=snapshot,
    )

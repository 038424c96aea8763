"""
Module: jewel_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for jewel_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import jewel_kernel (and sibling engine modules); settings are
    consumed through the jewel_config schema types.
    MUST NOT import jewel_services or jewel_batch.

Invariants enforced:
    - Purity: engines never read the clock.  ``now`` and start dates are
      passed in by the caller.
    - Money is whole rupees rounded half toward +infinity; rates, weights
      and percentages are ``Decimal``.  Floats never enter a calculation.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are traced via ``@traced_engine`` (see
    ``jewel_engines.tracer``), emitting JEWEL_ENGINE_TRACE records.

Usage:
    from jewel_engines import price_item, generate_schedule, reprice, decide
"""

from jewel_kernel.logging_config import get_logger

logger = get_logger("engines")

from jewel_engines.autopilot import (
    AutopilotAction,
    AutopilotDecision,
    OutboundMessage,
    decide,
    plan_cycle,
    register_warning_sent,
)
from jewel_engines.lifecycle import (
    OrderRequest,
    build_order,
    cancel_order,
    derive_status,
    hand_over,
    record_payment,
    update_item_status,
)
from jewel_engines.messages import WarningTone, warning_tone
from jewel_engines.milestones import (
    milestone_status,
    next_due_milestone,
    project_statuses,
)
from jewel_engines.pricing import (
    ItemPricing,
    calculate_item_price,
    price_cart,
    price_item,
    validate_item,
    validate_rate,
)
from jewel_engines.protection import (
    ProtectionPhase,
    evaluate_protection,
    lapse_order,
    revoke_protection,
)
from jewel_engines.repricing import (
    MarketQuote,
    accept_new_rate,
    quote_at_market,
    reprice,
)
from jewel_engines.schedule import generate_schedule, split_evenly
from jewel_engines.summary import (
    CollectionSummary,
    collection_summary,
    outstanding_balance,
)
from jewel_engines.tracer import traced_engine

__all__ = [
    # Autopilot
    "AutopilotAction",
    "AutopilotDecision",
    "OutboundMessage",
    "decide",
    "plan_cycle",
    "register_warning_sent",
    # Lifecycle
    "OrderRequest",
    "build_order",
    "cancel_order",
    "derive_status",
    "hand_over",
    "record_payment",
    "update_item_status",
    # Messages
    "WarningTone",
    "warning_tone",
    # Milestones
    "milestone_status",
    "next_due_milestone",
    "project_statuses",
    # Pricing
    "ItemPricing",
    "calculate_item_price",
    "price_cart",
    "price_item",
    "validate_item",
    "validate_rate",
    # Protection
    "ProtectionPhase",
    "evaluate_protection",
    "lapse_order",
    "revoke_protection",
    # Repricing
    "MarketQuote",
    "accept_new_rate",
    "quote_at_market",
    "reprice",
    # Schedule
    "generate_schedule",
    "split_evenly",
    # Summary
    "CollectionSummary",
    "collection_summary",
    "outstanding_balance",
    # Tracer
    "traced_engine",
]

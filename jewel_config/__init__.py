"""
jewel_config -- shop settings for the payment-plan core.

Settings are read-only inputs: pricing factors and tax, the current 24K
market rate, grace and follow-up cadence for the autopilot, and the
installment plan templates offered at the counter.
"""

from jewel_config.loader import compute_checksum, load_settings, settings_from_dict
from jewel_config.schema import DEFAULT_PLAN_TEMPLATES, PlanTemplate, ShopSettings

__all__ = [
    "DEFAULT_PLAN_TEMPLATES",
    "PlanTemplate",
    "ShopSettings",
    "compute_checksum",
    "load_settings",
    "settings_from_dict",
]

"""
Settings Loader (``jewel_config.loader``).

Loads a YAML settings file and parses it into ``ShopSettings``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``current_gold_rate_24k``, a non-numeric or non-finite value,
  or a fractional hour or day count -> ``InvalidSettingsError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from jewel_config.schema import DEFAULT_PLAN_TEMPLATES, PlanTemplate, ShopSettings
from jewel_kernel.exceptions import InvalidSettingsError
from jewel_kernel.logging_config import get_logger

logger = get_logger("config.loader")

_DECIMAL_KEYS = (
    "current_gold_rate_24k",
    "purity_factor_22k",
    "purity_factor_18k",
    "default_tax_rate",
    "protection_limit",
)
_INT_KEYS = (
    "grace_period_hours",
    "follow_up_interval_days",
    "min_warning_spacing_hours",
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _parse_decimal(key: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise InvalidSettingsError(key, f"not a number: {value!r}")
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise InvalidSettingsError(key, f"not a number: {value!r}") from exc
    if not parsed.is_finite():
        raise InvalidSettingsError(key, f"not a finite number: {value!r}")
    return parsed


def _parse_int(key: str, value: Any) -> int:
    """Whole numbers only: 24, "24" and 24.0 parse; 1.5 is rejected, not truncated."""
    parsed = _parse_decimal(key, value)
    if parsed != parsed.to_integral_value():
        raise InvalidSettingsError(key, f"not a whole number: {value!r}")
    return int(parsed)


def parse_plan_template(data: dict[str, Any]) -> PlanTemplate:
    """Parse one entry of ``plan_templates``."""
    try:
        name = data["name"]
        months = data["months"]
        advance = data["advance_pct"]
    except KeyError as exc:
        raise InvalidSettingsError(f"plan_templates.{exc.args[0]}", "missing") from exc
    return PlanTemplate(
        name=name,
        months=_parse_int(f"plan_templates.{name}.months", months),
        advance_pct=_parse_decimal(f"plan_templates.{name}.advance_pct", advance),
        interest_pct=_parse_decimal(
            f"plan_templates.{name}.interest_pct", data.get("interest_pct", 0)
        ),
        enabled=bool(data.get("enabled", True)),
    )


def settings_from_dict(data: dict[str, Any]) -> ShopSettings:
    """
    Parse a ``ShopSettings`` from a dict.

    Keys that are absent fall back to the schema defaults, except
    ``current_gold_rate_24k`` which is required.
    """
    if data.get("current_gold_rate_24k") in (None, ""):
        raise InvalidSettingsError("current_gold_rate_24k", "missing")

    kwargs: dict[str, Any] = {}
    for key in _DECIMAL_KEYS:
        if data.get(key) is not None:
            kwargs[key] = _parse_decimal(key, data[key])
    for key in _INT_KEYS:
        if data.get(key) is not None:
            kwargs[key] = _parse_int(key, data[key])
    if data.get("shop_name"):
        kwargs["shop_name"] = str(data["shop_name"])

    templates = data.get("plan_templates")
    kwargs["plan_templates"] = (
        tuple(parse_plan_template(t) for t in templates)
        if templates
        else DEFAULT_PLAN_TEMPLATES
    )
    return ShopSettings(**kwargs)


def load_settings(path: Path | str) -> ShopSettings:
    """Load ``ShopSettings`` from a YAML file."""
    path = Path(path)
    data = load_yaml_file(path)
    settings = settings_from_dict(data)
    logger.info(
        "settings_loaded",
        extra={
            "path": str(path),
            "checksum": compute_checksum(settings),
            "gold_rate_24k": settings.current_gold_rate_24k,
        },
    )
    return settings


def compute_checksum(settings: ShopSettings) -> str:
    """Deterministic SHA-256 of the settings for change detection."""
    canonical = json.dumps(asdict(settings), sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

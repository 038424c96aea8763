"""
jewel_services.activity -- Audit trail of business activities and errors.

Fire-and-forget: recording never raises into the caller and never affects
a state transition.  Entries are also emitted to the structured log.
Only the newest ``max_entries`` of each kind are kept in memory.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from jewel_kernel.domain.clock import Clock, SystemClock
from jewel_kernel.logging_config import get_logger

logger = get_logger("services.activity")


class ActivityType(str, Enum):
    ORDER_CREATED = "ORDER_CREATED"
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    PROTECTION_LAPSED = "PROTECTION_LAPSED"
    ORDER_REPRICED = "ORDER_REPRICED"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    ORDER_DELIVERED = "ORDER_DELIVERED"


class ErrorSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class ActivityEntry:
    timestamp: datetime
    action_type: str
    details: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ErrorEntry:
    timestamp: datetime
    source: str
    message: str
    severity: ErrorSeverity


class ActivityLog:
    """In-memory activity and error log, newest first."""

    def __init__(self, clock: Clock | None = None, max_entries: int = 100):
        self._clock = clock or SystemClock()
        self._activities: deque[ActivityEntry] = deque(maxlen=max_entries)
        self._errors: deque[ErrorEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def log_activity(self, action_type: ActivityType | str, details: str, **data: Any) -> ActivityEntry:
        kind = action_type.value if isinstance(action_type, ActivityType) else action_type
        entry = ActivityEntry(self._clock.now(), kind, details, dict(data))
        with self._lock:
            self._activities.appendleft(entry)
        logger.info("activity", extra={"action_type": kind, "details": details, **data})
        return entry

    def log_error(
        self,
        source: str,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    ) -> ErrorEntry:
        entry = ErrorEntry(self._clock.now(), source, message, severity)
        with self._lock:
            self._errors.appendleft(entry)
        logger.warning(
            "activity_error",
            extra={"source": source, "error_message": message, "severity": severity.value},
        )
        return entry

    @property
    def activities(self) -> list[ActivityEntry]:
        with self._lock:
            return list(self._activities)

    @property
    def errors(self) -> list[ErrorEntry]:
        with self._lock:
            return list(self._errors)

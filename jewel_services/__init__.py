"""
jewel_services -- Stateful orchestration over the pure engines.

Owns the single mutable order collection (``OrderBook``), the messaging
adapters, the activity log, the autopilot runner and the SQLAlchemy
persistence sink.
"""

from jewel_services.activity import ActivityLog, ActivityType, ErrorSeverity
from jewel_services.autopilot_runner import AutopilotRunner, CycleReport
from jewel_services.messaging import (
    InMemoryMessageHistory,
    LoggingTransport,
    MessageLogEntry,
    MessageTransport,
    SendResult,
    normalize_contact,
)
from jewel_services.order_book import OrderBook
from jewel_services.order_service import OrderService
from jewel_services.persistence import SqlMessageHistory, SqlOrderStore

__all__ = [
    "ActivityLog",
    "ActivityType",
    "AutopilotRunner",
    "CycleReport",
    "ErrorSeverity",
    "InMemoryMessageHistory",
    "LoggingTransport",
    "MessageLogEntry",
    "MessageTransport",
    "OrderBook",
    "OrderService",
    "SendResult",
    "SqlMessageHistory",
    "SqlOrderStore",
    "normalize_contact",
]

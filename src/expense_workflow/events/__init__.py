"""Domain events for the expense workflow.

Services emit events after their database work succeeds; handlers
registered on an ``EventEmitter`` receive them synchronously.
"""

from expense_workflow.events.emitter import EventEmitter, HandlerRegistration
from expense_workflow.events.monitor import UnauthorizedAttemptMonitor
from expense_workflow.events.types import (
    DecisionApplied,
    DecisionRejected,
    DomainEvent,
    EventCategory,
    EventMetadata,
    InvoiceStatusChanged,
    PaymentStatusChanged,
    ReceiptPurgeFailed,
    ReportCreated,
    ReportDeleted,
    ReportSubmitted,
    ReportWithdrawn,
)

__all__ = [
    "DecisionApplied",
    "DecisionRejected",
    "DomainEvent",
    "EventCategory",
    "EventEmitter",
    "EventMetadata",
    "HandlerRegistration",
    "InvoiceStatusChanged",
    "PaymentStatusChanged",
    "ReceiptPurgeFailed",
    "ReportCreated",
    "ReportDeleted",
    "ReportSubmitted",
    "ReportWithdrawn",
    "UnauthorizedAttemptMonitor",
]

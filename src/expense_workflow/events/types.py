"""Domain event types for the expense workflow.

All events are:
- Immutable (frozen dataclasses)
- Typed with explicit payloads
- Traceable via metadata
- Serializable for logging and export

The approval record table is the audit-of-record; events are the
notification and telemetry stream built on top of it.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class EventCategory(str, Enum):
    """Event categories for routing and filtering."""

    REPORT = "report"
    APPROVAL = "approval"
    SETTLEMENT = "settlement"
    SECURITY = "security"
    STORAGE = "storage"


@dataclass(frozen=True)
class EventMetadata:
    """Metadata attached to every domain event."""

    event_id: UUID
    timestamp: datetime
    correlation_id: UUID
    actor_id: UUID | None
    source_service: str
    version: int = 1

    @classmethod
    def create(
        cls,
        actor_id: UUID | None = None,
        correlation_id: UUID | None = None,
        source_service: str = "expense_workflow",
    ) -> EventMetadata:
        """Create metadata with auto-generated fields."""
        return cls(
            event_id=uuid4(),
            timestamp=datetime.now(timezone.utc),
            correlation_id=correlation_id or uuid4(),
            actor_id=actor_id,
            source_service=source_service,
        )


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    metadata: EventMetadata

    @property
    def event_type(self) -> str:
        """Event type name for routing."""
        return self.__class__.__name__

    @property
    def category(self) -> EventCategory:
        """Event category for filtering."""
        raise NotImplementedError("Subclasses must define category")

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to dictionary."""
        data = _serialize(asdict(self))
        data["event_type"] = self.event_type
        data["category"] = self.category.value
        return data

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        return json.dumps(self.to_dict(), default=str)


def _serialize(obj: Any) -> Any:
    """Recursively serialize objects for JSON compatibility."""
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(v) for v in obj]
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    return obj


# =============================================================================
# Report lifecycle events
# =============================================================================


@dataclass(frozen=True)
class ReportCreated(DomainEvent):
    report_id: UUID
    owner_id: UUID
    title: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.REPORT


@dataclass(frozen=True)
class ReportSubmitted(DomainEvent):
    report_id: UUID
    owner_id: UUID
    total_amount: Decimal
    line_item_count: int

    @property
    def category(self) -> EventCategory:
        return EventCategory.REPORT


@dataclass(frozen=True)
class ReportWithdrawn(DomainEvent):
    report_id: UUID
    owner_id: UUID
    from_status: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.REPORT


@dataclass(frozen=True)
class ReportDeleted(DomainEvent):
    report_id: UUID
    owner_id: UUID
    line_item_count: int
    receipt_count: int

    @property
    def category(self) -> EventCategory:
        return EventCategory.REPORT


# =============================================================================
# Approval events
# =============================================================================


@dataclass(frozen=True)
class DecisionApplied(DomainEvent):
    report_id: UUID
    approval_record_id: UUID
    decision: str
    from_status: str
    to_status: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.APPROVAL


@dataclass(frozen=True)
class DecisionRejected(DomainEvent):
    """A decision attempt that was refused and left no audit record."""

    report_id: UUID
    decision: str
    reason: str  # "unauthorized" | "stale_state"
    observed_status: str | None = None

    @property
    def category(self) -> EventCategory:
        return EventCategory.SECURITY


# =============================================================================
# Settlement events
# =============================================================================


@dataclass(frozen=True)
class InvoiceStatusChanged(DomainEvent):
    report_id: UUID
    invoice_received: bool
    paid_cleared: bool

    @property
    def category(self) -> EventCategory:
        return EventCategory.SETTLEMENT


@dataclass(frozen=True)
class PaymentStatusChanged(DomainEvent):
    report_id: UUID
    paid: bool

    @property
    def category(self) -> EventCategory:
        return EventCategory.SETTLEMENT


# =============================================================================
# Storage events
# =============================================================================


@dataclass(frozen=True)
class ReceiptPurgeFailed(DomainEvent):
    references: tuple[str, ...]
    error: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.STORAGE

"""Tests for the event emitter, event serialization and the attempt monitor."""

import json
import logging
from decimal import Decimal
from uuid import uuid4

import pytest

from expense_workflow.events import (
    DecisionApplied,
    DecisionRejected,
    EventCategory,
    EventEmitter,
    EventMetadata,
    ReportSubmitted,
    UnauthorizedAttemptMonitor,
)


def submitted_event(**overrides):
    fields = dict(
        metadata=EventMetadata.create(),
        report_id=uuid4(),
        owner_id=uuid4(),
        total_amount=Decimal("120.50"),
        line_item_count=2,
    )
    fields.update(overrides)
    return ReportSubmitted(**fields)


def rejected_event(actor_id, reason="unauthorized"):
    return DecisionRejected(
        metadata=EventMetadata.create(actor_id=actor_id),
        report_id=uuid4(),
        decision="approved",
        reason=reason,
        observed_status="submitted",
    )


class TestEmitter:
    def test_type_and_category_routing(self):
        emitter = EventEmitter()
        by_type, by_category, everything = [], [], []
        emitter.on(ReportSubmitted, by_type.append)
        emitter.on_category(EventCategory.SECURITY, by_category.append)
        emitter.on_all(everything.append)

        emitter.emit(submitted_event())
        emitter.emit(rejected_event(uuid4()))

        assert [e.event_type for e in by_type] == ["ReportSubmitted"]
        assert [e.event_type for e in by_category] == ["DecisionRejected"]
        assert len(everything) == 2

    def test_handler_failure_is_isolated(self):
        emitter = EventEmitter()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        emitter.on_all(broken)
        emitter.on_all(received.append)

        errors = emitter.emit(submitted_event())

        assert len(received) == 1
        assert [str(e) for e in errors] == ["boom"]

    def test_off(self):
        emitter = EventEmitter()
        received = []

        def handler(event):
            received.append(event)

        emitter.on_all(handler)
        emitter.off(handler)
        emitter.emit(submitted_event())

        assert received == []


class TestSerialization:
    def test_to_dict(self):
        event = submitted_event()
        data = event.to_dict()

        assert data["event_type"] == "ReportSubmitted"
        assert data["category"] == "report"
        assert data["total_amount"] == "120.50"
        assert data["report_id"] == str(event.report_id)
        assert data["metadata"]["source_service"] == "expense_workflow"

    def test_to_json(self):
        event = DecisionApplied(
            metadata=EventMetadata.create(actor_id=uuid4()),
            report_id=uuid4(),
            approval_record_id=uuid4(),
            decision="approved",
            from_status="submitted",
            to_status="pending_partner_approval",
        )

        data = json.loads(event.to_json())

        assert data["category"] == "approval"
        assert data["to_status"] == "pending_partner_approval"

    def test_events_are_immutable(self):
        event = submitted_event()
        with pytest.raises(AttributeError):
            event.line_item_count = 3


class TestUnauthorizedAttemptMonitor:
    def test_counts_only_unauthorized(self):
        emitter = EventEmitter()
        monitor = UnauthorizedAttemptMonitor(threshold=2).attach(emitter)
        actor = uuid4()

        emitter.emit(rejected_event(actor, reason="stale_state"))
        emitter.emit(rejected_event(actor))

        assert monitor.attempts(actor) == 1

    def test_warns_from_threshold_on(self, caplog):
        emitter = EventEmitter()
        UnauthorizedAttemptMonitor(threshold=2).attach(emitter)
        actor = uuid4()

        with caplog.at_level(logging.WARNING, logger="expense_workflow.events.monitor"):
            for _ in range(3):
                emitter.emit(rejected_event(actor))

        assert len(caplog.records) == 2

    def test_threshold_must_be_positive(self):
        with pytest.raises(ValueError):
            UnauthorizedAttemptMonitor(threshold=0)

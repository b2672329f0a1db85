"""Exception taxonomy for workflow operations.

Every error carries a machine-readable ``code`` so the API layer can map it
to a response without inspecting messages.
"""

from __future__ import annotations

from typing import Any


def _plain(status: Any) -> Any:
    """Enum members to their value, for messages and context."""
    return getattr(status, "value", status)


class WorkflowError(Exception):
    """Base class for all workflow errors."""

    code = "WORKFLOW_ERROR"

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}
        super().__init__(message)


class ValidationError(WorkflowError):
    """Raised when input values are malformed or out of range."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message, field=field)


class NotFoundError(WorkflowError):
    """Raised when a referenced entity does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found", entity=entity, id=str(entity_id))


class InvalidStateError(WorkflowError):
    """Raised when an operation is illegal for the entity's current status."""

    code = "INVALID_STATE"

    def __init__(self, message: str, status: str | None = None):
        self.status = status
        super().__init__(message, status=status)


class InvalidTransitionError(InvalidStateError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        from_status = _plain(from_status)
        to_status = _plain(to_status)
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, status=from_status)
        self.context["to_status"] = to_status


class StaleStateError(InvalidStateError):
    """Raised when the status changed between reading and writing a report."""

    code = "STALE_STATE"

    def __init__(self, expected_status: str, actual_status: str | None):
        expected_status = _plain(expected_status)
        self.expected_status = expected_status
        self.actual_status = actual_status
        super().__init__(
            f"Report status changed from '{expected_status}' to '{actual_status}'; "
            "reload the report and retry",
            status=actual_status,
        )
        self.context["expected_status"] = expected_status


class UnauthorizedError(WorkflowError):
    """Raised when the acting account may not perform the operation."""

    code = "UNAUTHORIZED"


class NotOwnerError(UnauthorizedError, InvalidStateError):
    """Raised when someone other than the owner mutates an owner-only record."""

    code = "UNAUTHORIZED"

    def __init__(self, entity: str, entity_id: Any):
        self.status = None
        WorkflowError.__init__(
            self,
            f"Only the owner may modify {entity} {entity_id}",
            entity=entity,
            id=str(entity_id),
        )


class EmptyReportError(WorkflowError):
    """Raised when submitting a report without line items."""

    code = "EMPTY_REPORT"

    def __init__(self, report_id: Any):
        self.report_id = report_id
        super().__init__(
            f"Report {report_id} has no line items and cannot be submitted",
            report_id=str(report_id),
        )


class InvoiceRequiredError(WorkflowError):
    """Raised when marking a report paid before its invoice is on file."""

    code = "INVOICE_REQUIRED"

    def __init__(self, report_id: Any):
        self.report_id = report_id
        super().__init__(
            f"Report {report_id} cannot be marked paid before its invoice is received",
            report_id=str(report_id),
        )

"""Expense report state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from expense_workflow.errors import InvalidTransitionError


class ReportStatus(str, Enum):
    """Expense report status values."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    PENDING_PARTNER_APPROVAL = "pending_partner_approval"
    APPROVED = "approved"


class Decision(str, Enum):
    """Approval decision kinds recorded in the audit log."""

    APPROVED = "approved"
    SEND_BACK = "send_back"
    FORWARD_TO_PARTNER = "forward_to_partner"


class Role(str, Enum):
    """Account roles."""

    EMPLOYEE = "employee"
    MANAGER = "manager"
    PARTNER = "partner"
    ADMIN = "admin"


class ReportStateMachine:
    """State machine for expense report status transitions.

    Allowed transitions:
    - draft → submitted (submit)
    - submitted → pending_partner_approval (manager approval / forward)
    - submitted → approved (partner approval)
    - pending_partner_approval → approved (partner approval)
    - submitted → draft (withdraw / send back)
    - pending_partner_approval → draft (withdraw / send back)

    ``approved`` is terminal for approval; settlement runs separately.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        ReportStatus.DRAFT: [ReportStatus.SUBMITTED],
        ReportStatus.SUBMITTED: [
            ReportStatus.PENDING_PARTNER_APPROVAL,
            ReportStatus.APPROVED,
            ReportStatus.DRAFT,
        ],
        ReportStatus.PENDING_PARTNER_APPROVAL: [
            ReportStatus.APPROVED,
            ReportStatus.DRAFT,
        ],
        ReportStatus.APPROVED: [],
    }

    # Statuses where line items and report details can be edited
    EDITABLE = {ReportStatus.DRAFT}

    # Statuses waiting on an approver
    AWAITING_DECISION = {
        ReportStatus.SUBMITTED,
        ReportStatus.PENDING_PARTNER_APPROVAL,
    }

    # Statuses where invoice/payment bookkeeping is open
    SETTLEMENT_OPEN = {ReportStatus.APPROVED}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def is_editable(cls, status: str) -> bool:
        """Check if line items and details may change in this status."""
        return status in cls.EDITABLE

    @classmethod
    def is_awaiting_decision(cls, status: str) -> bool:
        """Check if an approver can act on a report in this status."""
        return status in cls.AWAITING_DECISION

    @classmethod
    def is_settlement_open(cls, status: str) -> bool:
        """Check if invoice/payment flags may be changed in this status."""
        return status in cls.SETTLEMENT_OPEN

    @classmethod
    def is_rollback(cls, from_status: str, to_status: str) -> bool:
        """Check if this transition discards approval progress."""
        return from_status in cls.AWAITING_DECISION and to_status == ReportStatus.DRAFT

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def target_status(cls, decision: str, acting_role: str) -> str:
        """Status a report moves to when ``acting_role`` takes ``decision``."""
        if decision == Decision.SEND_BACK:
            return ReportStatus.DRAFT
        if decision == Decision.FORWARD_TO_PARTNER:
            return ReportStatus.PENDING_PARTNER_APPROVAL
        if acting_role == Role.MANAGER:
            return ReportStatus.PENDING_PARTNER_APPROVAL
        return ReportStatus.APPROVED

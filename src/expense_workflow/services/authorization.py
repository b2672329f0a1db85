"""Approval authorization rules.

Pure functions over plain attribute holders: nothing here touches the
database, so the rules can be evaluated for queues, UI hints and the
decision applier alike.

Rules, first match wins:
- manager_department: a manager clears a submitted report from an
  employee of the same department.
- partner_department: a partner clears employees and managers of the
  same department, at either approval stage.
- partner_peer_review: a partner reviews another department's partner,
  first hop only.

Nobody may decide on a report they submitted.
"""

from __future__ import annotations

from typing import Any, Protocol
from uuid import UUID

from expense_workflow.services.state_machine import Decision, ReportStatus, Role


class Actor(Protocol):
    """Anything with an account id, role and department."""

    account_id: UUID
    role: str
    department: str | None


def _same_department(a: Actor, b: Actor) -> bool:
    return bool(a.department) and a.department == b.department


def _is_self(report: Any, acting: Actor, submitter: Actor) -> bool:
    return acting.account_id == submitter.account_id or acting.account_id == report.owner_id


def matching_rule(
    report: Any,
    acting: Actor,
    submitter: Actor,
    *,
    status: str | None = None,
) -> str | None:
    """Name of the first rule authorizing ``acting`` on ``report``, if any.

    ``status`` overrides ``report.status``, for evaluating a decision
    against the status the caller observed.
    """
    current = status or report.status
    if _is_self(report, acting, submitter):
        return None

    if (
        acting.role == Role.MANAGER
        and current == ReportStatus.SUBMITTED
        and submitter.role == Role.EMPLOYEE
        and _same_department(acting, submitter)
    ):
        return "manager_department"

    if (
        acting.role == Role.PARTNER
        and _same_department(acting, submitter)
        and submitter.role in (Role.EMPLOYEE, Role.MANAGER)
        and current in (ReportStatus.SUBMITTED, ReportStatus.PENDING_PARTNER_APPROVAL)
    ):
        return "partner_department"

    if (
        acting.role == Role.PARTNER
        and submitter.role == Role.PARTNER
        and not _same_department(acting, submitter)
        and current == ReportStatus.SUBMITTED
    ):
        return "partner_peer_review"

    return None


def can_decide(
    report: Any,
    acting: Actor,
    submitter: Actor,
    *,
    status: str | None = None,
) -> bool:
    """Check whether ``acting`` may approve or send back ``report``."""
    return matching_rule(report, acting, submitter, status=status) is not None


def _can_recall(report: Any, acting: Actor, submitter: Actor, current: str) -> bool:
    # A department manager may still send back what they forwarded.
    return (
        acting.role == Role.MANAGER
        and current == ReportStatus.PENDING_PARTNER_APPROVAL
        and submitter.role == Role.EMPLOYEE
        and _same_department(acting, submitter)
        and not _is_self(report, acting, submitter)
    )


def allowed_decisions(
    report: Any,
    acting: Actor,
    submitter: Actor,
    *,
    status: str | None = None,
) -> frozenset[Decision]:
    """Decisions ``acting`` may take on ``report`` right now."""
    current = status or report.status
    rule = matching_rule(report, acting, submitter, status=current)
    if rule is None:
        if _can_recall(report, acting, submitter, current):
            return frozenset({Decision.SEND_BACK})
        return frozenset()

    decisions = {Decision.APPROVED, Decision.SEND_BACK}
    if acting.role == Role.MANAGER and current == ReportStatus.SUBMITTED:
        decisions.add(Decision.FORWARD_TO_PARTNER)
    return frozenset(decisions)

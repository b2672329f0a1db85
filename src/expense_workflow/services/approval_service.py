"""Approval decision applier and approval queues."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from expense_workflow.errors import (
    InvalidTransitionError,
    NotFoundError,
    StaleStateError,
    UnauthorizedError,
    ValidationError,
)
from expense_workflow.events import (
    DecisionApplied,
    DecisionRejected,
    EventEmitter,
    EventMetadata,
)
from expense_workflow.models import Account, ApprovalRecord, ExpenseReport, utcnow
from expense_workflow.services.authorization import allowed_decisions, can_decide
from expense_workflow.services.report_service import ROLLBACK_VALUES
from expense_workflow.services.state_machine import (
    Decision,
    ReportStateMachine,
    ReportStatus,
    Role,
)

logger = logging.getLogger(__name__)


def parse_decision(value: str | Decision) -> Decision:
    try:
        return Decision(value)
    except ValueError:
        raise ValidationError(f"Unknown decision: {value!r}", field="decision") from None


def parse_status(value: str | ReportStatus) -> ReportStatus:
    try:
        return ReportStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown report status: {value!r}", field="expected_status") from None


class ApprovalService:
    """Applies approval decisions and serves approver queues.

    This is the only writer of status and approver columns after
    submission. Each decision is authorized against the status the caller
    observed, then written with ``UPDATE ... WHERE status = <observed>``,
    so of two racing approvers exactly one succeeds and only the winner
    gets an approval record.
    """

    def __init__(self, session: AsyncSession, emitter: EventEmitter | None = None):
        self.session = session
        self.emitter = emitter

    async def apply_decision(
        self,
        report_id: UUID,
        actor_id: UUID,
        decision: str | Decision,
        *,
        expected_status: str | ReportStatus,
        comment: str | None = None,
    ) -> tuple[ExpenseReport, ApprovalRecord]:
        """Apply a decision on behalf of ``actor_id``.

        Args:
            report_id: Report to decide on
            actor_id: Acting account
            decision: approved, send_back or forward_to_partner
            expected_status: Status the caller saw when choosing; the
                decision is authorized against it, never against a
                status read later
            comment: Optional note stored on the approval record

        Returns:
            The refreshed report and the appended approval record

        Raises:
            UnauthorizedError: no rule allows this actor to take this decision
            InvalidTransitionError: report is not awaiting a decision
            StaleStateError: status changed before the write landed
        """
        decision = parse_decision(decision)
        report = await self._get_report(report_id)
        actor = await self._get_account(actor_id)
        submitter = await self._get_account(report.owner_id)

        computed_against = parse_status(expected_status).value
        to_status = ReportStateMachine.target_status(decision, actor.role)

        if not ReportStateMachine.is_awaiting_decision(computed_against):
            raise InvalidTransitionError(
                computed_against, to_status, "report is not awaiting a decision"
            )

        if decision not in allowed_decisions(report, actor, submitter, status=computed_against):
            logger.warning(
                "Unauthorized %s on report %s by %s (%s/%s) at status %s",
                decision.value,
                report_id,
                actor_id,
                actor.role,
                actor.department,
                computed_against,
            )
            self._emit(
                DecisionRejected(
                    metadata=EventMetadata.create(actor_id=actor_id),
                    report_id=report_id,
                    decision=decision.value,
                    reason="unauthorized",
                    observed_status=computed_against,
                )
            )
            raise UnauthorizedError(
                f"Account {actor_id} may not {decision.value} report {report_id}",
                report_id=str(report_id),
                decision=decision.value,
                status=computed_against,
            )

        ReportStateMachine.validate_transition(computed_against, to_status)
        values = self._decision_values(report, actor, decision, to_status)

        result = await self.session.execute(
            update(ExpenseReport)
            .where(
                ExpenseReport.report_id == report_id,
                ExpenseReport.status == computed_against,
            )
            .values(status=to_status.value, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            actual = await self.session.scalar(
                select(ExpenseReport.status).where(ExpenseReport.report_id == report_id)
            )
            logger.info(
                "Stale %s on report %s by %s: expected %s, found %s",
                decision.value,
                report_id,
                actor_id,
                computed_against,
                actual,
            )
            self._emit(
                DecisionRejected(
                    metadata=EventMetadata.create(actor_id=actor_id),
                    report_id=report_id,
                    decision=decision.value,
                    reason="stale_state",
                    observed_status=actual,
                )
            )
            raise StaleStateError(computed_against, actual)

        record = ApprovalRecord(
            report_id=report_id,
            actor_id=actor_id,
            decision=decision.value,
            from_status=computed_against,
            to_status=to_status.value,
            comment=(comment or "").strip() or None,
        )
        self.session.add(record)
        await self.session.flush()
        await self.session.refresh(report)

        logger.info(
            "Report %s: %s by %s, %s -> %s",
            report_id,
            decision.value,
            actor_id,
            computed_against,
            to_status.value,
        )
        self._emit(
            DecisionApplied(
                metadata=EventMetadata.create(actor_id=actor_id),
                report_id=report_id,
                approval_record_id=record.approval_record_id,
                decision=decision.value,
                from_status=computed_against,
                to_status=to_status.value,
            )
        )
        return report, record

    async def available_decisions(self, report_id: UUID, actor_id: UUID) -> frozenset[Decision]:
        report = await self._get_report(report_id)
        actor = await self._get_account(actor_id)
        submitter = await self._get_account(report.owner_id)
        return allowed_decisions(report, actor, submitter)

    async def pending_for(self, actor_id: UUID) -> list[ExpenseReport]:
        """Reports the actor may decide on now, oldest submission first."""
        actor = await self._get_account(actor_id)
        if actor.role not in (Role.MANAGER, Role.PARTNER) or not actor.department:
            return []

        query = (
            select(ExpenseReport, Account)
            .join(Account, Account.account_id == ExpenseReport.owner_id)
            .where(
                ExpenseReport.status.in_(
                    [s.value for s in ReportStateMachine.AWAITING_DECISION]
                ),
                ExpenseReport.owner_id != actor_id,
            )
            .order_by(ExpenseReport.submitted_at)
        )
        if actor.role == Role.MANAGER:
            query = query.where(Account.department == actor.department)
        else:
            query = query.where(
                or_(
                    Account.department == actor.department,
                    Account.role == Role.PARTNER.value,
                )
            )

        result = await self.session.execute(query)
        return [
            report
            for report, submitter in result.all()
            if can_decide(report, actor, submitter)
        ]

    async def processed_by(self, actor_id: UUID, limit: int = 50) -> list[ExpenseReport]:
        """Reports the actor has approved at either step, latest first.

        Admins see every report with a final approval.
        """
        actor = await self._get_account(actor_id)
        latest = func.coalesce(
            ExpenseReport.final_approved_at, ExpenseReport.primary_approved_at
        )
        query = select(ExpenseReport).order_by(latest.desc()).limit(limit)
        if actor.role == Role.ADMIN:
            query = query.where(ExpenseReport.final_approved_at.is_not(None))
        else:
            query = query.where(
                or_(
                    ExpenseReport.primary_approver_id == actor_id,
                    ExpenseReport.final_approver_id == actor_id,
                )
            )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def history(self, report_id: UUID) -> list[ApprovalRecord]:
        """Approval records for a report in the order they were appended."""
        await self._get_report(report_id)
        result = await self.session.execute(
            select(ApprovalRecord)
            .where(ApprovalRecord.report_id == report_id)
            .order_by(ApprovalRecord.created_at)
        )
        return list(result.scalars().all())

    def _decision_values(
        self,
        report: ExpenseReport,
        actor: Account,
        decision: Decision,
        to_status: ReportStatus,
    ) -> dict[str, Any]:
        if decision == Decision.SEND_BACK:
            return dict(ROLLBACK_VALUES)

        now = utcnow()
        if to_status == ReportStatus.PENDING_PARTNER_APPROVAL:
            return {"primary_approver_id": actor.account_id, "primary_approved_at": now}

        values: dict[str, Any] = {
            "final_approver_id": actor.account_id,
            "final_approved_at": now,
        }
        # A partner acting first also counts as the primary step
        if report.primary_approver_id is None:
            values["primary_approver_id"] = actor.account_id
            values["primary_approved_at"] = now
        return values

    async def _get_report(self, report_id: UUID) -> ExpenseReport:
        result = await self.session.execute(
            select(ExpenseReport)
            .where(ExpenseReport.report_id == report_id)
            .execution_options(populate_existing=True)
        )
        report = result.scalar_one_or_none()
        if report is None:
            raise NotFoundError("Report", report_id)
        return report

    async def _get_account(self, account_id: UUID) -> Account:
        account = await self.session.get(Account, account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        return account

    def _emit(self, event: Any) -> None:
        if self.emitter is not None:
            self.emitter.emit(event)

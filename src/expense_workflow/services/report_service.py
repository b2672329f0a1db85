"""Report lifecycle service: create, edit, submit, withdraw, delete."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from expense_workflow.errors import (
    EmptyReportError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    NotOwnerError,
    StaleStateError,
    UnauthorizedError,
    ValidationError,
)
from expense_workflow.events import (
    EventEmitter,
    EventMetadata,
    ReportCreated,
    ReportDeleted,
    ReportSubmitted,
    ReportWithdrawn,
)
from expense_workflow.models import Account, ApprovalRecord, ExpenseLineItem, ExpenseReport, utcnow
from expense_workflow.services.ledger import LedgerService
from expense_workflow.services.state_machine import ReportStateMachine, ReportStatus, Role

logger = logging.getLogger(__name__)

# Column values that discard all approval progress
ROLLBACK_VALUES: dict[str, Any] = {
    "submitted_at": None,
    "primary_approver_id": None,
    "primary_approved_at": None,
    "final_approver_id": None,
    "final_approved_at": None,
}

DETAIL_FIELDS = frozenset({"title", "purpose", "customer_name", "bill_to_customer"})

VIEWER_ROLES = frozenset({Role.MANAGER, Role.PARTNER, Role.ADMIN})


class ReportService:
    """Service for the owner-driven part of the report lifecycle.

    Operations:
    - create_report: new draft with zero total
    - update_details: edit title/purpose/customer while draft
    - submit: freeze the total and enter approval
    - withdraw: owner pulls a report back to draft, clearing approvals
    - delete: remove a draft and its line items
    """

    def __init__(self, session: AsyncSession, emitter: EventEmitter | None = None):
        self.session = session
        self.emitter = emitter
        self.ledger = LedgerService(session)

    async def get_report(self, report_id: UUID) -> ExpenseReport:
        """Load a report, bypassing any stale copy in the identity map."""
        result = await self.session.execute(
            select(ExpenseReport)
            .where(ExpenseReport.report_id == report_id)
            .execution_options(populate_existing=True)
        )
        report = result.scalar_one_or_none()
        if report is None:
            raise NotFoundError("Report", report_id)
        return report

    async def get_for_viewer(self, report_id: UUID, viewer: Account) -> ExpenseReport:
        """Load a report the viewer may read.

        Owners see their own reports; approvers and admins see all.
        """
        report = await self.get_report(report_id)
        if report.owner_id != viewer.account_id and viewer.role not in VIEWER_ROLES:
            raise UnauthorizedError(
                f"Account {viewer.account_id} may not view report {report_id}",
                report_id=str(report_id),
            )
        return report

    async def list_for_owner(self, owner_id: UUID) -> list[ExpenseReport]:
        """Reports owned by an account, newest first."""
        result = await self.session.execute(
            select(ExpenseReport)
            .where(ExpenseReport.owner_id == owner_id)
            .order_by(ExpenseReport.created_at.desc())
        )
        return list(result.scalars().all())

    async def create_report(
        self,
        owner_id: UUID,
        title: str,
        purpose: str | None = None,
        customer_name: str | None = None,
        bill_to_customer: bool = False,
    ) -> ExpenseReport:
        owner = await self.session.get(Account, owner_id)
        if owner is None:
            raise NotFoundError("Account", owner_id)

        report = ExpenseReport(
            owner_id=owner_id,
            title=_require_title(title),
            purpose=_strip(purpose),
            customer_name=_strip(customer_name),
            bill_to_customer=bool(bill_to_customer),
            status=ReportStatus.DRAFT.value,
        )
        self.session.add(report)
        await self.session.flush()

        logger.info("Report %s created by %s", report.report_id, owner_id)
        self._emit(
            ReportCreated(
                metadata=EventMetadata.create(actor_id=owner_id),
                report_id=report.report_id,
                owner_id=owner_id,
                title=report.title,
            )
        )
        return report

    async def update_details(
        self,
        report_id: UUID,
        actor_id: UUID,
        **changes: Any,
    ) -> ExpenseReport:
        """Edit report header fields. Owner only, draft only."""
        unknown = set(changes) - DETAIL_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update field(s): {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )

        report = await self._load_owned(report_id, actor_id)
        if not ReportStateMachine.is_editable(report.status):
            raise InvalidStateError(
                f"Report details can only change while draft (current: {report.status})",
                status=report.status,
            )

        if "title" in changes:
            report.title = _require_title(changes["title"])
        if "purpose" in changes:
            report.purpose = _strip(changes["purpose"])
        if "customer_name" in changes:
            report.customer_name = _strip(changes["customer_name"])
        if "bill_to_customer" in changes:
            report.bill_to_customer = bool(changes["bill_to_customer"])

        await self.session.flush()
        return report

    async def submit(self, report_id: UUID, actor_id: UUID) -> ExpenseReport:
        """Submit a draft, freezing ``total_amount`` at the current sum.

        Raises:
            NotOwnerError: actor does not own the report
            InvalidTransitionError: report is not a draft
            EmptyReportError: report has no line items
            StaleStateError: report left draft while submitting
        """
        report = await self._load_owned(report_id, actor_id)
        ReportStateMachine.validate_transition(report.status, ReportStatus.SUBMITTED)

        item_count = await self.ledger.count_line_items(report_id)
        if item_count == 0:
            raise EmptyReportError(report_id)
        total = await self.ledger.compute_total(report_id)

        await self._conditional_update(
            report,
            ReportStatus.DRAFT,
            status=ReportStatus.SUBMITTED.value,
            total_amount=total,
            submitted_at=utcnow(),
        )

        logger.info("Report %s submitted with total %s", report_id, total)
        self._emit(
            ReportSubmitted(
                metadata=EventMetadata.create(actor_id=actor_id),
                report_id=report_id,
                owner_id=report.owner_id,
                total_amount=total,
                line_item_count=item_count,
            )
        )
        return report

    async def withdraw(self, report_id: UUID, actor_id: UUID) -> ExpenseReport:
        """Pull a report awaiting approval back to draft.

        This is a full rollback: submission time and both approvers are
        cleared so nothing stale survives a resubmission.
        """
        report = await self._load_owned(report_id, actor_id)
        from_status = report.status
        if not ReportStateMachine.is_awaiting_decision(from_status):
            raise InvalidTransitionError(
                from_status,
                ReportStatus.DRAFT,
                "only reports awaiting approval can be withdrawn",
            )

        await self._conditional_update(
            report,
            from_status,
            status=ReportStatus.DRAFT.value,
            **ROLLBACK_VALUES,
        )

        logger.info("Report %s withdrawn from %s", report_id, from_status)
        self._emit(
            ReportWithdrawn(
                metadata=EventMetadata.create(actor_id=actor_id),
                report_id=report_id,
                owner_id=report.owner_id,
                from_status=from_status,
            )
        )
        return report

    async def delete(self, report_id: UUID, actor_id: UUID) -> list[str]:
        """Delete a draft report and its line items.

        Returns the receipt references that belonged to the deleted items;
        the caller purges them from storage after committing. Approval
        records of a sent-back report are kept.

        Raises:
            InvalidStateError: report is not a draft
        """
        report = await self._load_owned(report_id, actor_id)
        if not ReportStateMachine.is_editable(report.status):
            raise InvalidStateError(
                f"Only draft reports can be deleted (current: {report.status})",
                status=report.status,
            )

        history_count = await self.session.scalar(
            select(func.count())
            .select_from(ApprovalRecord)
            .where(ApprovalRecord.report_id == report_id)
        )

        items = await self.ledger.list_line_items(report_id)
        references = [ref for item in items for ref in (item.receipt_refs or [])]

        await self.session.execute(
            delete(ExpenseLineItem)
            .where(ExpenseLineItem.report_id == report_id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(
            delete(ExpenseReport)
            .where(
                ExpenseReport.report_id == report_id,
                ExpenseReport.status == ReportStatus.DRAFT.value,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            actual = await self._current_status(report_id)
            raise StaleStateError(ReportStatus.DRAFT.value, actual)

        for item in items:
            self.session.expunge(item)
        self.session.expunge(report)

        logger.info(
            "Report %s deleted with %d line item(s), %d receipt(s); %d approval record(s) kept",
            report_id,
            len(items),
            len(references),
            history_count,
        )
        self._emit(
            ReportDeleted(
                metadata=EventMetadata.create(actor_id=actor_id),
                report_id=report_id,
                owner_id=actor_id,
                line_item_count=len(items),
                receipt_count=len(references),
            )
        )
        return references

    async def _load_owned(self, report_id: UUID, actor_id: UUID) -> ExpenseReport:
        report = await self.get_report(report_id)
        if report.owner_id != actor_id:
            raise NotOwnerError("report", report_id)
        return report

    async def _conditional_update(
        self,
        report: ExpenseReport,
        expected_status: str,
        **values: Any,
    ) -> None:
        """Apply ``values`` only if the stored status still equals ``expected_status``."""
        expected = str(getattr(expected_status, "value", expected_status))
        result = await self.session.execute(
            update(ExpenseReport)
            .where(
                ExpenseReport.report_id == report.report_id,
                ExpenseReport.status == expected,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            actual = await self._current_status(report.report_id)
            raise StaleStateError(expected, actual)
        await self.session.refresh(report)

    async def _current_status(self, report_id: UUID) -> str | None:
        return await self.session.scalar(
            select(ExpenseReport.status).where(ExpenseReport.report_id == report_id)
        )

    def _emit(self, event: Any) -> None:
        if self.emitter is not None:
            self.emitter.emit(event)


def _strip(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _require_title(title: str | None) -> str:
    title = _strip(title)
    if title is None:
        raise ValidationError("title is required", field="title")
    return title

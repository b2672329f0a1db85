"""Post-approval invoice and payment bookkeeping."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from expense_workflow.errors import (
    InvalidStateError,
    InvoiceRequiredError,
    NotFoundError,
    StaleStateError,
    UnauthorizedError,
)
from expense_workflow.events import (
    EventEmitter,
    EventMetadata,
    InvoiceStatusChanged,
    PaymentStatusChanged,
)
from expense_workflow.models import Account, ExpenseReport, utcnow
from expense_workflow.services.state_machine import ReportStateMachine, ReportStatus, Role

logger = logging.getLogger(__name__)


class SettlementService:
    """Admin-only invoice/paid flags on approved reports.

    The two flags never feed back into approval transitions. ``paid``
    implies ``invoice_received``; clearing the invoice clears payment.
    """

    def __init__(self, session: AsyncSession, emitter: EventEmitter | None = None):
        self.session = session
        self.emitter = emitter

    async def set_invoice_received(
        self,
        report_id: UUID,
        actor_id: UUID,
        value: bool,
    ) -> ExpenseReport:
        await self._require_admin(actor_id)
        report = await self._load_open(report_id)

        values: dict[str, Any] = {"invoice_received": value}
        paid_cleared = False
        if not value:
            paid_cleared = report.paid
            values.update(paid=False, reimbursed_at=None)

        await self._conditional_update(report, values)

        logger.info("Report %s invoice_received=%s by %s", report_id, value, actor_id)
        self._emit(
            InvoiceStatusChanged(
                metadata=EventMetadata.create(actor_id=actor_id),
                report_id=report_id,
                invoice_received=value,
                paid_cleared=paid_cleared,
            )
        )
        return report

    async def set_paid(self, report_id: UUID, actor_id: UUID, value: bool) -> ExpenseReport:
        """Mark an approved report paid or unpaid.

        Raises:
            InvoiceRequiredError: marking paid while no invoice is on file
        """
        await self._require_admin(actor_id)
        report = await self._load_open(report_id)

        if value and not report.invoice_received:
            raise InvoiceRequiredError(report_id)

        values: dict[str, Any] = {
            "paid": value,
            "reimbursed_at": (report.reimbursed_at or utcnow()) if value else None,
        }
        await self._conditional_update(report, values, require_invoice=value)

        logger.info("Report %s paid=%s by %s", report_id, value, actor_id)
        self._emit(
            PaymentStatusChanged(
                metadata=EventMetadata.create(actor_id=actor_id),
                report_id=report_id,
                paid=value,
            )
        )
        return report

    async def list_payable(self, actor_id: UUID) -> list[ExpenseReport]:
        """Finance queue: approved reports, earliest final approval first."""
        await self._require_admin(actor_id)
        result = await self.session.execute(
            select(ExpenseReport)
            .where(ExpenseReport.status == ReportStatus.APPROVED.value)
            .order_by(ExpenseReport.final_approved_at)
        )
        return list(result.scalars().all())

    async def _require_admin(self, actor_id: UUID) -> Account:
        actor = await self.session.get(Account, actor_id)
        if actor is None:
            raise NotFoundError("Account", actor_id)
        if actor.role != Role.ADMIN:
            raise UnauthorizedError(
                "Only admins can change settlement status",
                actor_id=str(actor_id),
            )
        return actor

    async def _load_open(self, report_id: UUID) -> ExpenseReport:
        result = await self.session.execute(
            select(ExpenseReport)
            .where(ExpenseReport.report_id == report_id)
            .execution_options(populate_existing=True)
        )
        report = result.scalar_one_or_none()
        if report is None:
            raise NotFoundError("Report", report_id)
        if not ReportStateMachine.is_settlement_open(report.status):
            raise InvalidStateError(
                f"Settlement requires an approved report (current: {report.status})",
                status=report.status,
            )
        return report

    async def _conditional_update(
        self,
        report: ExpenseReport,
        values: dict[str, Any],
        require_invoice: bool = False,
    ) -> None:
        conditions = [
            ExpenseReport.report_id == report.report_id,
            ExpenseReport.status == ReportStatus.APPROVED.value,
        ]
        if require_invoice:
            conditions.append(ExpenseReport.invoice_received.is_(True))

        result = await self.session.execute(
            update(ExpenseReport)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.session.refresh(report)
            if report.status != ReportStatus.APPROVED:
                raise StaleStateError(ReportStatus.APPROVED, report.status)
            raise InvoiceRequiredError(report.report_id)
        await self.session.refresh(report)

    def _emit(self, event: Any) -> None:
        if self.emitter is not None:
            self.emitter.emit(event)

"""Expense register: line items across reports for analytics and export."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from expense_workflow.categories import CATEGORIES
from expense_workflow.errors import NotFoundError, UnauthorizedError, ValidationError
from expense_workflow.models import Account, ExpenseLineItem, ExpenseReport
from expense_workflow.services.state_machine import ReportStatus, Role

REGISTER_ROLES = frozenset({Role.MANAGER, Role.PARTNER, Role.ADMIN})


@dataclass(frozen=True)
class RegisterRow:
    """One line item with its report and approval context."""

    line_item_id: UUID
    expense_date: date
    category: str
    category_label: str
    amount: Decimal
    description: str | None
    invoice_number: str | None
    is_vat_invoice: bool
    tax_rate: Decimal | None
    report_id: UUID
    report_title: str
    report_status: str
    submitter: str
    customer_name: str | None
    bill_to_customer: bool
    primary_approver: str | None
    primary_approved_at: datetime | None
    final_approver: str | None
    final_approved_at: datetime | None


CSV_COLUMNS = (
    ("Date", "expense_date"),
    ("Category", "category_label"),
    ("Amount", "amount"),
    ("Description", "description"),
    ("Invoice", "invoice_number"),
    ("VAT invoice", "is_vat_invoice"),
    ("Tax rate", "tax_rate"),
    ("Report", "report_title"),
    ("Status", "report_status"),
    ("Submitter", "submitter"),
    ("Customer", "customer_name"),
    ("Bill to customer", "bill_to_customer"),
    ("Primary approver", "primary_approver"),
    ("Primary approved at", "primary_approved_at"),
    ("Final approver", "final_approver"),
    ("Final approved at", "final_approved_at"),
)


class ExpenseRegister:
    """Read-only view over submitted expenses.

    Drafts are excluded; they are not claims until submitted.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def query(
        self,
        actor_id: UUID,
        start: date | None = None,
        end: date | None = None,
        customer: str | None = None,
    ) -> list[RegisterRow]:
        """Line items in ``[start, end]``, newest expense first.

        ``customer`` is a case-insensitive substring of the report's
        customer name.
        """
        actor = await self.session.get(Account, actor_id)
        if actor is None:
            raise NotFoundError("Account", actor_id)
        if actor.role not in REGISTER_ROLES:
            raise UnauthorizedError("Expense register requires manager, partner or admin role")
        if start and end and start > end:
            raise ValidationError("start must not be after end", field="start")

        owner = aliased(Account)
        primary = aliased(Account)
        final = aliased(Account)

        query = (
            select(
                ExpenseLineItem,
                ExpenseReport,
                owner.display_name,
                primary.display_name,
                final.display_name,
            )
            .join(ExpenseReport, ExpenseReport.report_id == ExpenseLineItem.report_id)
            .join(owner, owner.account_id == ExpenseReport.owner_id)
            .outerjoin(primary, primary.account_id == ExpenseReport.primary_approver_id)
            .outerjoin(final, final.account_id == ExpenseReport.final_approver_id)
            .where(ExpenseReport.status != ReportStatus.DRAFT.value)
            .order_by(ExpenseLineItem.expense_date.desc(), ExpenseReport.title)
        )
        if start:
            query = query.where(ExpenseLineItem.expense_date >= start)
        if end:
            query = query.where(ExpenseLineItem.expense_date <= end)
        if customer and customer.strip():
            needle = customer.strip().lower()
            query = query.where(func.lower(ExpenseReport.customer_name).contains(needle))

        result = await self.session.execute(query)
        return [
            RegisterRow(
                line_item_id=item.line_item_id,
                expense_date=item.expense_date,
                category=item.category,
                category_label=(
                    CATEGORIES[item.category].label
                    if item.category in CATEGORIES
                    else item.category
                ),
                amount=item.amount,
                description=item.description,
                invoice_number=item.invoice_number,
                is_vat_invoice=item.is_vat_invoice,
                tax_rate=item.tax_rate,
                report_id=report.report_id,
                report_title=report.title,
                report_status=report.status,
                submitter=submitter,
                customer_name=report.customer_name,
                bill_to_customer=report.bill_to_customer,
                primary_approver=primary_name,
                primary_approved_at=report.primary_approved_at,
                final_approver=final_name,
                final_approved_at=report.final_approved_at,
            )
            for item, report, submitter, primary_name, final_name in result.all()
        ]


def to_csv(rows: list[RegisterRow]) -> str:
    """Render register rows as CSV with a header line."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([header for header, _ in CSV_COLUMNS])
    for row in rows:
        writer.writerow([_cell(getattr(row, name)) for _, name in CSV_COLUMNS])
    return output.getvalue()


def _cell(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)

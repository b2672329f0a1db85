"""Expense report, line item, and approval record models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expense_workflow.models.base import Base, TimestampMixin, utcnow

if TYPE_CHECKING:
    from expense_workflow.models.account import Account


class ExpenseReport(Base, TimestampMixin):
    """Expense claim grouping line items.

    ``total_amount`` is derived from line items and frozen at submission.
    Status and approver columns are only written through conditional
    updates keyed on the current status.
    """

    __tablename__ = "expense_report"

    report_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    owner_id: Mapped[UUID] = mapped_column(
        ForeignKey("account.account_id"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    customer_name: Mapped[str | None] = mapped_column(String, nullable=True)
    bill_to_customer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )

    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    primary_approver_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("account.account_id"), nullable=True
    )
    primary_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    final_approver_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("account.account_id"), nullable=True
    )
    final_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Settlement bookkeeping, independent of the approval columns
    invoice_received: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reimbursed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'submitted', 'pending_partner_approval', 'approved')",
            name="expense_report_status_check",
        ),
        CheckConstraint(
            "paid = false OR invoice_received = true",
            name="expense_report_paid_requires_invoice",
        ),
        CheckConstraint("total_amount >= 0", name="expense_report_total_check"),
    )

    # Relationships
    owner: Mapped[Account] = relationship(foreign_keys=[owner_id])
    primary_approver: Mapped[Account | None] = relationship(
        foreign_keys=[primary_approver_id]
    )
    final_approver: Mapped[Account | None] = relationship(foreign_keys=[final_approver_id])
    line_items: Mapped[list[ExpenseLineItem]] = relationship(
        back_populates="report",
        order_by="ExpenseLineItem.expense_date",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<ExpenseReport {self.report_id} {self.status}>"


class ExpenseLineItem(Base, TimestampMixin):
    """Single dated expense entry on a report."""

    __tablename__ = "expense_line_item"

    line_item_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    report_id: Mapped[UUID] = mapped_column(
        ForeignKey("expense_report.report_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account_id: Mapped[UUID] = mapped_column(
        ForeignKey("account.account_id"),
        nullable=False,
    )
    category: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    customer_name: Mapped[str | None] = mapped_column(String, nullable=True)
    invoice_number: Mapped[str | None] = mapped_column(String, nullable=True)
    receipt_refs: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_vat_invoice: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="expense_line_item_amount_positive"),
        CheckConstraint(
            "is_vat_invoice = false OR tax_rate IS NOT NULL",
            name="expense_line_item_vat_rate_check",
        ),
    )

    # Relationships
    report: Mapped[ExpenseReport] = relationship(back_populates="line_items")


class ApprovalRecord(Base):
    """Append-only audit entry for a decision taken on a report.

    Records are never updated or deleted. ``report_id`` is not a foreign
    key, so the trail outlives a deleted draft.
    """

    __tablename__ = "approval_record"

    approval_record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    report_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    actor_id: Mapped[UUID] = mapped_column(
        ForeignKey("account.account_id"),
        nullable=False,
    )
    decision: Mapped[str] = mapped_column(String, nullable=False)
    from_status: Mapped[str] = mapped_column(String, nullable=False)
    to_status: Mapped[str] = mapped_column(String, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "decision IN ('approved', 'send_back', 'forward_to_partner')",
            name="approval_record_decision_check",
        ),
    )

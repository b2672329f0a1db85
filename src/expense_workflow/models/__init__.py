"""ORM models."""

from expense_workflow.models.account import Account, Customer
from expense_workflow.models.base import Base, TimestampMixin, utcnow
from expense_workflow.models.report import ApprovalRecord, ExpenseLineItem, ExpenseReport

__all__ = [
    "Account",
    "ApprovalRecord",
    "Base",
    "Customer",
    "ExpenseLineItem",
    "ExpenseReport",
    "TimestampMixin",
    "utcnow",
]

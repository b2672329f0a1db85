"""Expense workflow services."""

from expense_workflow.services.approval_service import ApprovalService
from expense_workflow.services.directory_service import DirectoryService
from expense_workflow.services.ledger import LedgerService, LedgerSummary, LineItemDraft
from expense_workflow.services.register import ExpenseRegister, RegisterRow
from expense_workflow.services.report_service import ReportService
from expense_workflow.services.settlement_service import SettlementService
from expense_workflow.services.state_machine import (
    Decision,
    ReportStateMachine,
    ReportStatus,
    Role,
)

__all__ = [
    "ApprovalService",
    "Decision",
    "DirectoryService",
    "ExpenseRegister",
    "LedgerService",
    "LedgerSummary",
    "LineItemDraft",
    "RegisterRow",
    "ReportService",
    "ReportStateMachine",
    "ReportStatus",
    "Role",
    "SettlementService",
]

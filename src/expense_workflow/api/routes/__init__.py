"""API routes."""

from expense_workflow.api.routes.accounts import router as accounts_router
from expense_workflow.api.routes.approvals import router as approvals_router
from expense_workflow.api.routes.customers import router as customers_router
from expense_workflow.api.routes.expenses import router as expenses_router
from expense_workflow.api.routes.health import router as health_router
from expense_workflow.api.routes.register import router as register_router
from expense_workflow.api.routes.reports import router as reports_router
from expense_workflow.api.routes.settlement import router as settlement_router

__all__ = [
    "accounts_router",
    "approvals_router",
    "customers_router",
    "expenses_router",
    "health_router",
    "register_router",
    "reports_router",
    "settlement_router",
]

"""Expense register and category endpoints."""

from datetime import date
from typing import Annotated, Literal

from fastapi import APIRouter, Query, Response

from expense_workflow.api.dependencies import CurrentAccount, DbSession
from expense_workflow.api.schemas import (
    CategoryResponse,
    ErrorResponse,
    RegisterResponse,
    RegisterRowResponse,
)
from expense_workflow.categories import CATEGORIES
from expense_workflow.services.ledger import total_of
from expense_workflow.services.register import ExpenseRegister, to_csv

router = APIRouter(tags=["register"])


@router.get(
    "/register",
    response_model=RegisterResponse,
    responses={
        200: {"content": {"text/csv": {}}},
        403: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def get_register(
    db: DbSession,
    actor: CurrentAccount,
    start: date | None = None,
    end: date | None = None,
    customer: str | None = None,
    output: Annotated[Literal["json", "csv"], Query(alias="format")] = "json",
) -> RegisterResponse | Response:
    """Submitted line items with report and approver context."""
    rows = await ExpenseRegister(db).query(actor.account_id, start, end, customer)
    if output == "csv":
        return Response(
            content=to_csv(rows),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="expense-register.csv"'},
        )
    return RegisterResponse(
        items=[RegisterRowResponse.model_validate(r) for r in rows],
        total=len(rows),
        total_amount=total_of(r.amount for r in rows),
    )


@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories() -> list[CategoryResponse]:
    """Expense categories with their VAT defaults, in display order."""
    return [CategoryResponse.model_validate(c) for c in CATEGORIES.values()]

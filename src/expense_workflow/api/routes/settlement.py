"""Settlement (invoice and payment) endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from expense_workflow.api.dependencies import CurrentAccount, DbSession, Emitter
from expense_workflow.api.schemas import (
    ErrorResponse,
    FlagUpdate,
    ReportListResponse,
    ReportResponse,
)
from expense_workflow.services.settlement_service import SettlementService

router = APIRouter(tags=["settlement"])

_ADMIN_ERRORS = {403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}


@router.get("/settlement/payable", response_model=ReportListResponse, responses=_ADMIN_ERRORS)
async def list_payable(db: DbSession, actor: CurrentAccount) -> ReportListResponse:
    """Approved reports, earliest final approval first. Admin only."""
    reports = await SettlementService(db).list_payable(actor.account_id)
    return ReportListResponse(
        items=[ReportResponse.model_validate(r) for r in reports],
        total=len(reports),
    )


@router.put(
    "/reports/{report_id}/invoice-received",
    response_model=ReportResponse,
    responses=_ADMIN_ERRORS,
)
async def set_invoice_received(
    db: DbSession,
    actor: CurrentAccount,
    emitter: Emitter,
    report_id: Annotated[UUID, Path()],
    payload: FlagUpdate,
) -> ReportResponse:
    """Record whether the invoice is on file. Clearing it also clears paid."""
    report = await SettlementService(db, emitter).set_invoice_received(
        report_id, actor.account_id, payload.value
    )
    await db.commit()
    return ReportResponse.model_validate(report)


@router.put("/reports/{report_id}/paid", response_model=ReportResponse, responses=_ADMIN_ERRORS)
async def set_paid(
    db: DbSession,
    actor: CurrentAccount,
    emitter: Emitter,
    report_id: Annotated[UUID, Path()],
    payload: FlagUpdate,
) -> ReportResponse:
    """Record payment. Requires the invoice to be on file."""
    report = await SettlementService(db, emitter).set_paid(
        report_id, actor.account_id, payload.value
    )
    await db.commit()
    return ReportResponse.model_validate(report)

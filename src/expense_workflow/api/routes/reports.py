"""Expense report endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Response, status

from expense_workflow.api.dependencies import CurrentAccount, DbSession, Emitter, Storage
from expense_workflow.api.schemas import (
    ErrorResponse,
    LineItemResponse,
    ReportCreate,
    ReportDetailResponse,
    ReportListResponse,
    ReportResponse,
    ReportUpdate,
    SummaryResponse,
)
from expense_workflow.integrations import purge_receipts
from expense_workflow.models import ExpenseReport
from expense_workflow.services.ledger import LedgerService
from expense_workflow.services.report_service import ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


async def _detail(db: DbSession, report: ExpenseReport) -> ReportDetailResponse:
    items = await LedgerService(db).list_line_items(report.report_id)
    return ReportDetailResponse(
        **ReportResponse.model_validate(report).model_dump(),
        line_items=[LineItemResponse.model_validate(i) for i in items],
    )


# ============================================================================
# Report CRUD
# ============================================================================


@router.get("", response_model=ReportListResponse)
async def list_my_reports(db: DbSession, actor: CurrentAccount) -> ReportListResponse:
    """Reports owned by the acting account, newest first."""
    reports = await ReportService(db).list_for_owner(actor.account_id)
    return ReportListResponse(
        items=[ReportResponse.model_validate(r) for r in reports],
        total=len(reports),
    )


@router.post(
    "",
    response_model=ReportResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def create_report(
    db: DbSession,
    actor: CurrentAccount,
    emitter: Emitter,
    payload: ReportCreate,
) -> ReportResponse:
    """Create a new report in draft status."""
    report = await ReportService(db, emitter).create_report(
        actor.account_id, **payload.model_dump()
    )
    await db.commit()
    return ReportResponse.model_validate(report)


@router.get(
    "/{report_id}",
    response_model=ReportDetailResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_report(
    db: DbSession,
    actor: CurrentAccount,
    report_id: Annotated[UUID, Path()],
) -> ReportDetailResponse:
    """Get a report with its line items."""
    report = await ReportService(db).get_for_viewer(report_id, actor)
    return await _detail(db, report)


@router.patch(
    "/{report_id}",
    response_model=ReportResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_report(
    db: DbSession,
    actor: CurrentAccount,
    report_id: Annotated[UUID, Path()],
    payload: ReportUpdate,
) -> ReportResponse:
    report = await ReportService(db).update_details(
        report_id, actor.account_id, **payload.model_dump(exclude_unset=True)
    )
    await db.commit()
    return ReportResponse.model_validate(report)


@router.delete(
    "/{report_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_report(
    db: DbSession,
    actor: CurrentAccount,
    emitter: Emitter,
    storage: Storage,
    report_id: Annotated[UUID, Path()],
) -> Response:
    """Delete a draft report; receipts are purged after the commit."""
    references = await ReportService(db, emitter).delete(report_id, actor.account_id)
    await db.commit()
    purge_receipts(storage, references, emitter, actor.account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{report_id}/summary",
    response_model=SummaryResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_summary(
    db: DbSession,
    actor: CurrentAccount,
    report_id: Annotated[UUID, Path()],
) -> SummaryResponse:
    """Per-category totals with estimated VAT."""
    await ReportService(db).get_for_viewer(report_id, actor)
    summary = await LedgerService(db).summarize(report_id)
    return SummaryResponse.model_validate(summary)


# ============================================================================
# Lifecycle transitions
# ============================================================================


@router.post(
    "/{report_id}/submit",
    response_model=ReportResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def submit_report(
    db: DbSession,
    actor: CurrentAccount,
    emitter: Emitter,
    report_id: Annotated[UUID, Path()],
) -> ReportResponse:
    """Submit a draft for approval, freezing its total."""
    report = await ReportService(db, emitter).submit(report_id, actor.account_id)
    await db.commit()
    return ReportResponse.model_validate(report)


@router.post(
    "/{report_id}/withdraw",
    response_model=ReportResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def withdraw_report(
    db: DbSession,
    actor: CurrentAccount,
    emitter: Emitter,
    report_id: Annotated[UUID, Path()],
) -> ReportResponse:
    """Withdraw a report awaiting approval back to draft."""
    report = await ReportService(db, emitter).withdraw(report_id, actor.account_id)
    await db.commit()
    return ReportResponse.model_validate(report)

"""Approval queue and decision endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from expense_workflow.api.dependencies import CurrentAccount, DbSession, Emitter
from expense_workflow.api.schemas import (
    ApprovalRecordResponse,
    AvailableDecisionsResponse,
    DecisionRequest,
    DecisionResponse,
    ErrorResponse,
    ReportListResponse,
    ReportResponse,
)
from expense_workflow.services.approval_service import ApprovalService
from expense_workflow.services.report_service import ReportService

router = APIRouter(tags=["approvals"])


@router.get("/approvals/pending", response_model=ReportListResponse)
async def list_pending(db: DbSession, actor: CurrentAccount) -> ReportListResponse:
    """Reports the acting account can decide on now."""
    reports = await ApprovalService(db).pending_for(actor.account_id)
    return ReportListResponse(
        items=[ReportResponse.model_validate(r) for r in reports],
        total=len(reports),
    )


@router.get("/approvals/processed", response_model=ReportListResponse)
async def list_processed(
    db: DbSession,
    actor: CurrentAccount,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> ReportListResponse:
    """Reports the acting account has approved (admins: all finalised)."""
    reports = await ApprovalService(db).processed_by(actor.account_id, limit=limit)
    return ReportListResponse(
        items=[ReportResponse.model_validate(r) for r in reports],
        total=len(reports),
    )


@router.post(
    "/reports/{report_id}/decisions",
    response_model=DecisionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def decide(
    db: DbSession,
    actor: CurrentAccount,
    emitter: Emitter,
    report_id: Annotated[UUID, Path()],
    payload: DecisionRequest,
) -> DecisionResponse:
    """Approve, forward or send back a report.

    ``expected_status`` is the status the approver saw; if another
    approver acted first the call returns 409 with code STALE_STATE.
    """
    report, record = await ApprovalService(db, emitter).apply_decision(
        report_id,
        actor.account_id,
        payload.decision,
        expected_status=payload.expected_status,
        comment=payload.comment,
    )
    await db.commit()
    return DecisionResponse(
        report=ReportResponse.model_validate(report),
        record=ApprovalRecordResponse.model_validate(record),
    )


@router.get(
    "/reports/{report_id}/decisions",
    response_model=list[ApprovalRecordResponse],
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def list_decisions(
    db: DbSession,
    actor: CurrentAccount,
    report_id: Annotated[UUID, Path()],
) -> list[ApprovalRecordResponse]:
    """Approval history in append order."""
    await ReportService(db).get_for_viewer(report_id, actor)
    records = await ApprovalService(db).history(report_id)
    return [ApprovalRecordResponse.model_validate(r) for r in records]


@router.get(
    "/reports/{report_id}/available-decisions",
    response_model=AvailableDecisionsResponse,
    responses={404: {"model": ErrorResponse}},
)
async def available_decisions(
    db: DbSession,
    actor: CurrentAccount,
    report_id: Annotated[UUID, Path()],
) -> AvailableDecisionsResponse:
    decisions = await ApprovalService(db).available_decisions(report_id, actor.account_id)
    return AvailableDecisionsResponse(
        report_id=report_id,
        decisions=sorted(d.value for d in decisions),
    )

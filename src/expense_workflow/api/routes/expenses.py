"""Line item and receipt endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from expense_workflow.api.dependencies import CurrentAccount, DbSession, Emitter, Storage
from expense_workflow.api.schemas import (
    ErrorResponse,
    LineItemCreate,
    LineItemDraftResponse,
    LineItemResponse,
    LineItemUpdate,
    PrefillRequest,
    ReceiptAttach,
    UploadTargetRequest,
    UploadTargetResponse,
)
from expense_workflow.integrations import ReceiptGuess, purge_receipts
from expense_workflow.services.ledger import LedgerService, LineItemDraft, prefill_from_guess

router = APIRouter(tags=["expenses"])


@router.post(
    "/reports/{report_id}/expenses",
    response_model=LineItemResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def add_line_item(
    db: DbSession,
    actor: CurrentAccount,
    report_id: Annotated[UUID, Path()],
    payload: LineItemCreate,
) -> LineItemResponse:
    """Add a line item to a draft report."""
    data = payload.model_dump()
    data["receipt_refs"] = tuple(data["receipt_refs"])
    item = await LedgerService(db).add_line_item(
        report_id, actor.account_id, LineItemDraft(**data)
    )
    await db.commit()
    return LineItemResponse.model_validate(item)


@router.patch(
    "/expenses/{line_item_id}",
    response_model=LineItemResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_line_item(
    db: DbSession,
    actor: CurrentAccount,
    line_item_id: Annotated[UUID, Path()],
    payload: LineItemUpdate,
) -> LineItemResponse:
    item = await LedgerService(db).update_line_item(
        line_item_id, actor.account_id, **payload.model_dump(exclude_unset=True)
    )
    await db.commit()
    return LineItemResponse.model_validate(item)


@router.delete(
    "/expenses/{line_item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def remove_line_item(
    db: DbSession,
    actor: CurrentAccount,
    emitter: Emitter,
    storage: Storage,
    line_item_id: Annotated[UUID, Path()],
) -> Response:
    references = await LedgerService(db).remove_line_item(line_item_id, actor.account_id)
    await db.commit()
    purge_receipts(storage, references, emitter, actor.account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Receipts
# ============================================================================


@router.post(
    "/expenses/{line_item_id}/receipts",
    response_model=LineItemResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def attach_receipt(
    db: DbSession,
    actor: CurrentAccount,
    line_item_id: Annotated[UUID, Path()],
    payload: ReceiptAttach,
) -> LineItemResponse:
    item = await LedgerService(db).attach_receipt(
        line_item_id, actor.account_id, payload.reference
    )
    await db.commit()
    return LineItemResponse.model_validate(item)


@router.delete(
    "/expenses/{line_item_id}/receipts",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def detach_receipt(
    db: DbSession,
    actor: CurrentAccount,
    emitter: Emitter,
    storage: Storage,
    line_item_id: Annotated[UUID, Path()],
    reference: Annotated[str, Query(min_length=1)],
) -> Response:
    removed = await LedgerService(db).detach_receipt(
        line_item_id, actor.account_id, reference
    )
    await db.commit()
    purge_receipts(storage, [removed], emitter, actor.account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/receipts/upload-target", response_model=UploadTargetResponse)
async def issue_upload_target(
    actor: CurrentAccount,
    storage: Storage,
    payload: UploadTargetRequest,
) -> UploadTargetResponse:
    """Short-lived upload URL plus the public reference to attach afterwards."""
    target = storage.issue_upload_target(payload.content_type, actor.account_id)
    return UploadTargetResponse.model_validate(target)


@router.post("/receipts/prefill", response_model=LineItemDraftResponse)
async def prefill_line_item(
    actor: CurrentAccount,
    payload: PrefillRequest,
) -> LineItemDraftResponse:
    """Turn a recognizer reply into line item defaults. Nothing is saved."""
    draft = prefill_from_guess(ReceiptGuess.from_payload(payload.payload))
    return LineItemDraftResponse.model_validate(draft)

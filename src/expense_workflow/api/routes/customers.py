"""Customer lookup endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Response, status

from expense_workflow.api.dependencies import CurrentAccount, DbSession
from expense_workflow.api.schemas import CustomerCreate, CustomerResponse, ErrorResponse
from expense_workflow.services.directory_service import DirectoryService

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("", response_model=list[CustomerResponse])
async def list_customers(db: DbSession, actor: CurrentAccount) -> list[CustomerResponse]:
    customers = await DirectoryService(db).list_customers()
    return [CustomerResponse.model_validate(c) for c in customers]


@router.post(
    "",
    response_model=CustomerResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_customer(
    db: DbSession,
    actor: CurrentAccount,
    payload: CustomerCreate,
) -> CustomerResponse:
    customer = await DirectoryService(db).create_customer(actor.account_id, payload.name)
    await db.commit()
    return CustomerResponse.model_validate(customer)


@router.patch(
    "/{customer_id}",
    response_model=CustomerResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def rename_customer(
    db: DbSession,
    actor: CurrentAccount,
    customer_id: Annotated[UUID, Path()],
    payload: CustomerCreate,
) -> CustomerResponse:
    customer = await DirectoryService(db).rename_customer(
        customer_id, actor.account_id, payload.name
    )
    await db.commit()
    return CustomerResponse.model_validate(customer)


@router.delete(
    "/{customer_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def delete_customer(
    db: DbSession,
    actor: CurrentAccount,
    customer_id: Annotated[UUID, Path()],
) -> Response:
    await DirectoryService(db).delete_customer(customer_id, actor.account_id)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)

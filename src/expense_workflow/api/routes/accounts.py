"""Account directory endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from expense_workflow.api.dependencies import CurrentAccount, DbSession
from expense_workflow.api.schemas import (
    AccountCreate,
    AccountListResponse,
    AccountResponse,
    AccountUpdate,
    ErrorResponse,
    RoleAssignment,
)
from expense_workflow.errors import UnauthorizedError
from expense_workflow.services.directory_service import DirectoryService
from expense_workflow.services.state_machine import Role

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get(
    "",
    response_model=AccountListResponse,
    responses={403: {"model": ErrorResponse}},
)
async def list_accounts(db: DbSession, actor: CurrentAccount) -> AccountListResponse:
    """List all accounts. Admin only."""
    accounts = await DirectoryService(db).list_accounts(actor.account_id)
    return AccountListResponse(
        items=[AccountResponse.model_validate(a) for a in accounts],
        total=len(accounts),
    )


@router.post(
    "",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_account(
    db: DbSession,
    actor: CurrentAccount,
    payload: AccountCreate,
) -> AccountResponse:
    """Register a profile for an identity. Admin only."""
    if actor.role != Role.ADMIN:
        raise UnauthorizedError("Admin role required", actor_id=str(actor.account_id))
    account = await DirectoryService(db).create_account(**payload.model_dump())
    await db.commit()
    return AccountResponse.model_validate(account)


@router.get("/me", response_model=AccountResponse)
async def get_me(actor: CurrentAccount) -> AccountResponse:
    """Profile of the acting account."""
    return AccountResponse.model_validate(actor)


@router.patch(
    "/{account_id}",
    response_model=AccountResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_account(
    db: DbSession,
    actor: CurrentAccount,
    account_id: Annotated[UUID, Path()],
    payload: AccountUpdate,
) -> AccountResponse:
    """Edit contact fields of your own profile (admins: any profile)."""
    account = await DirectoryService(db).update_contact(
        account_id,
        actor.account_id,
        **payload.model_dump(exclude_unset=True),
    )
    await db.commit()
    return AccountResponse.model_validate(account)


@router.put(
    "/{account_id}/role",
    response_model=AccountResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def assign_role(
    db: DbSession,
    actor: CurrentAccount,
    account_id: Annotated[UUID, Path()],
    payload: RoleAssignment,
) -> AccountResponse:
    """Change role and/or department. Admin only."""
    account = await DirectoryService(db).assign_role(
        account_id,
        actor.account_id,
        role=payload.role,
        department=payload.department,
    )
    await db.commit()
    return AccountResponse.model_validate(account)

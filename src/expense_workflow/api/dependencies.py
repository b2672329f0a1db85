"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from expense_workflow.database import init_db
from expense_workflow.events import EventEmitter
from expense_workflow.integrations import ReceiptStorage
from expense_workflow.models import Account


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency. Routes commit explicitly."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


DbSession = Annotated[AsyncSession, Depends(get_db_session)]


async def get_current_account(
    db: DbSession,
    x_account_id: Annotated[str | None, Header()] = None,
) -> Account:
    """Resolve the acting account from the identity provider's header."""
    if not x_account_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Account-ID header is required",
        )
    try:
        account_id = UUID(x_account_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid X-Account-ID format",
        )

    account = await db.get(Account, account_id)
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown account",
        )
    return account


def get_emitter(request: Request) -> EventEmitter:
    return request.app.state.emitter


def get_storage(request: Request) -> ReceiptStorage:
    return request.app.state.storage


# Type aliases for cleaner dependency injection
CurrentAccount = Annotated[Account, Depends(get_current_account)]
Emitter = Annotated[EventEmitter, Depends(get_emitter)]
Storage = Annotated[ReceiptStorage, Depends(get_storage)]

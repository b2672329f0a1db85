"""Integration test fixtures: the ASGI app over an in-memory database."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from expense_workflow.api.app import create_app
from expense_workflow.api.dependencies import get_db_session
from expense_workflow.config import Settings
from expense_workflow.database import make_session_factory
from expense_workflow.integrations import InMemoryReceiptStorage
from expense_workflow.models import Account
from expense_workflow.services.directory_service import DirectoryService


@pytest.fixture
def storage() -> InMemoryReceiptStorage:
    return InMemoryReceiptStorage("https://files.test")


@pytest.fixture
def app(engine: AsyncEngine, storage: InMemoryReceiptStorage):
    """Application wired to the per-test engine."""
    settings = Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        app_version="test",
        host="127.0.0.1",
        port=8000,
        debug=False,
    )
    app = create_app(settings, storage=storage)
    factory = make_session_factory(engine)

    async def test_session() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = test_session
    return app


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def accounts(engine: AsyncEngine) -> dict[str, Account]:
    """Committed accounts keyed by nickname."""
    async with make_session_factory(engine)() as session:
        directory = DirectoryService(session)
        seeded = {
            "employee": await directory.create_account("Erin Employee", "employee", "Sales"),
            "manager": await directory.create_account("Mona Manager", "manager", "Sales"),
            "deputy_manager": await directory.create_account("Dana Deputy", "manager", "Sales"),
            "partner": await directory.create_account("Pat Partner", "partner", "Sales"),
            "legal_partner": await directory.create_account("Quinn Partner", "partner", "Legal"),
            "admin": await directory.create_account("Ada Admin", "admin", "Finance"),
        }
        await session.commit()
    return seeded

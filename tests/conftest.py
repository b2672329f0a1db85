"""Pytest fixtures for expense workflow tests."""

from __future__ import annotations

from typing import AsyncGenerator, Awaitable, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from expense_workflow.database import make_session_factory
from expense_workflow.events import DomainEvent, EventEmitter
from expense_workflow.models import Account, Base, ExpenseReport
from expense_workflow.services.approval_service import ApprovalService
from expense_workflow.services.ledger import LedgerService
from expense_workflow.services.report_service import ReportService
from factories import draft_item

# In-memory SQLite shared by every session of a test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh test database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with make_session_factory(engine)() as session:
        yield session
        await session.rollback()


@pytest.fixture
def emitter() -> EventEmitter:
    return EventEmitter()


@pytest.fixture
def events(emitter: EventEmitter) -> list[DomainEvent]:
    """Every event emitted during the test, in order."""
    captured: list[DomainEvent] = []
    emitter.on_all(captured.append)
    return captured


# ============================================================================
# Accounts
# ============================================================================


AccountFactory = Callable[..., Awaitable[Account]]


@pytest.fixture
def make_account(session: AsyncSession) -> AccountFactory:
    """Factory for persisted accounts."""

    async def _make(name: str, role: str = "employee", department: str | None = "Sales") -> Account:
        account = Account(display_name=name, role=role, department=department)
        session.add(account)
        await session.flush()
        return account

    return _make


@pytest.fixture
async def employee(make_account: AccountFactory) -> Account:
    return await make_account("Erin Employee", "employee", "Sales")


@pytest.fixture
async def manager(make_account: AccountFactory) -> Account:
    return await make_account("Mona Manager", "manager", "Sales")


@pytest.fixture
async def partner(make_account: AccountFactory) -> Account:
    return await make_account("Pat Partner", "partner", "Sales")


@pytest.fixture
async def second_partner(make_account: AccountFactory) -> Account:
    return await make_account("Sam Partner", "partner", "Sales")


@pytest.fixture
async def legal_partner(make_account: AccountFactory) -> Account:
    return await make_account("Quinn Partner", "partner", "Legal")


@pytest.fixture
async def admin(make_account: AccountFactory) -> Account:
    return await make_account("Ada Admin", "admin", "Finance")


# ============================================================================
# Reports
# ============================================================================


ReportFactory = Callable[..., Awaitable[ExpenseReport]]


@pytest.fixture
def make_report(session: AsyncSession, emitter: EventEmitter) -> ReportFactory:
    """Factory for reports with line items, optionally submitted."""

    async def _make(
        owner: Account,
        amounts: tuple[str, ...] = ("500.00",),
        submit: bool = False,
        title: str = "Client visit",
        **report_fields,
    ) -> ExpenseReport:
        reports = ReportService(session, emitter)
        report = await reports.create_report(owner.account_id, title, **report_fields)
        ledger = LedgerService(session)
        for amount in amounts:
            await ledger.add_line_item(report.report_id, owner.account_id, draft_item(amount))
        if submit:
            report = await reports.submit(report.report_id, owner.account_id)
        return report

    return _make


@pytest.fixture
async def approved_report(
    session: AsyncSession,
    emitter: EventEmitter,
    make_report: ReportFactory,
    employee: Account,
    manager: Account,
    partner: Account,
) -> ExpenseReport:
    """Employee report cleared by manager then partner."""
    report = await make_report(employee, ("500.00",), submit=True)
    approvals = ApprovalService(session, emitter)
    await approvals.apply_decision(
        report.report_id, manager.account_id, "approved", expected_status="submitted"
    )
    report, _ = await approvals.apply_decision(
        report.report_id, partner.account_id, "approved", expected_status="pending_partner_approval"
    )
    return report

"""Account and customer models."""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from expense_workflow.models.base import Base, TimestampMixin


class Account(Base, TimestampMixin):
    """A person who submits or decides on expense reports.

    Accounts are never deleted; identity itself lives with the identity
    provider and only the profile is stored here.
    """

    __tablename__ = "account"

    account_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    display_name: Mapped[str] = mapped_column(String, nullable=False)
    role: Mapped[str] = mapped_column(String, nullable=False, default="employee")
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "role IN ('employee', 'manager', 'partner', 'admin')",
            name="account_role_check",
        ),
    )

    def __repr__(self) -> str:
        return f"<Account {self.display_name} {self.role}/{self.department}>"


class Customer(Base, TimestampMixin):
    """Customer name used for free-text attribution on reports and items."""

    __tablename__ = "customer"

    customer_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)

"""Accounts and customers."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from expense_workflow.errors import NotFoundError, UnauthorizedError, ValidationError
from expense_workflow.models import Account, Customer
from expense_workflow.services.state_machine import Role

logger = logging.getLogger(__name__)

CONTACT_FIELDS = frozenset({"display_name", "email", "phone", "avatar_url"})


def parse_role(value: str | Role) -> Role:
    try:
        return Role(value)
    except ValueError:
        raise ValidationError(f"Unknown role: {value!r}", field="role") from None


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class DirectoryService:
    """Account profiles and the customer lookup list.

    Role and department drive approval routing, so only admins may change
    them. Contact fields are editable by the account itself.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_account(self, account_id: UUID) -> Account:
        account = await self.session.get(Account, account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        return account

    async def create_account(
        self,
        display_name: str,
        role: str = Role.EMPLOYEE.value,
        department: str | None = None,
        email: str | None = None,
        phone: str | None = None,
    ) -> Account:
        name = _clean(display_name)
        if name is None:
            raise ValidationError("display_name is required", field="display_name")

        account = Account(
            display_name=name,
            role=parse_role(role).value,
            department=_clean(department),
            email=_clean(email),
            phone=_clean(phone),
        )
        self.session.add(account)
        await self.session.flush()
        logger.info("Account %s created as %s/%s", account.account_id, account.role, account.department)
        return account

    async def list_accounts(self, actor_id: UUID) -> list[Account]:
        await self._require_admin(actor_id)
        result = await self.session.execute(
            select(Account).order_by(Account.department, Account.display_name)
        )
        return list(result.scalars().all())

    async def update_contact(
        self,
        account_id: UUID,
        actor_id: UUID,
        **changes: Any,
    ) -> Account:
        """Edit profile contact fields. Self or admin."""
        unknown = set(changes) - CONTACT_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update field(s): {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )

        actor = await self.get_account(actor_id)
        account = await self.get_account(account_id)
        if actor.account_id != account.account_id and actor.role != Role.ADMIN:
            raise UnauthorizedError(
                "Only the account itself or an admin can edit a profile",
                account_id=str(account_id),
            )

        if "display_name" in changes:
            name = _clean(changes["display_name"])
            if name is None:
                raise ValidationError("display_name is required", field="display_name")
            account.display_name = name
        for name in ("email", "phone", "avatar_url"):
            if name in changes:
                setattr(account, name, _clean(changes[name]))

        await self.session.flush()
        return account

    async def assign_role(
        self,
        account_id: UUID,
        actor_id: UUID,
        *,
        role: str | None = None,
        department: str | None = None,
    ) -> Account:
        """Change role and/or department. Admin only.

        A blank ``department`` clears it; ``None`` leaves it unchanged.
        """
        await self._require_admin(actor_id)
        account = await self.get_account(account_id)

        if role is not None:
            account.role = parse_role(role).value
        if department is not None:
            account.department = _clean(department)

        await self.session.flush()
        logger.info(
            "Account %s assigned %s/%s by %s",
            account_id,
            account.role,
            account.department,
            actor_id,
        )
        return account

    async def list_customers(self) -> list[Customer]:
        result = await self.session.execute(select(Customer).order_by(Customer.name))
        return list(result.scalars().all())

    async def create_customer(self, actor_id: UUID, name: str) -> Customer:
        await self._require_admin(actor_id)
        customer = Customer(name=await self._unique_name(name))
        self.session.add(customer)
        await self.session.flush()
        return customer

    async def rename_customer(self, customer_id: UUID, actor_id: UUID, name: str) -> Customer:
        await self._require_admin(actor_id)
        customer = await self._get_customer(customer_id)
        customer.name = await self._unique_name(name, exclude=customer_id)
        await self.session.flush()
        return customer

    async def delete_customer(self, customer_id: UUID, actor_id: UUID) -> None:
        await self._require_admin(actor_id)
        customer = await self._get_customer(customer_id)
        await self.session.delete(customer)
        await self.session.flush()

    async def _get_customer(self, customer_id: UUID) -> Customer:
        customer = await self.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        return customer

    async def _unique_name(self, name: str | None, exclude: UUID | None = None) -> str:
        cleaned = _clean(name)
        if cleaned is None:
            raise ValidationError("customer name is required", field="name")

        query = select(Customer.customer_id).where(
            func.lower(Customer.name) == cleaned.lower()
        )
        if exclude is not None:
            query = query.where(Customer.customer_id != exclude)
        if (await self.session.execute(query)).first() is not None:
            raise ValidationError(f"Customer {cleaned!r} already exists", field="name")
        return cleaned

    async def _require_admin(self, actor_id: UUID) -> Account:
        actor = await self.get_account(actor_id)
        if actor.role != Role.ADMIN:
            raise UnauthorizedError("Admin role required", actor_id=str(actor_id))
        return actor

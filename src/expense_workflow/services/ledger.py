"""Expense ledger: line items, totals and VAT breakdowns."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from expense_workflow.categories import (
    CATEGORIES,
    apply_category_defaults,
    detect_category,
    resolve_category,
)
from expense_workflow.errors import (
    InvalidStateError,
    NotFoundError,
    NotOwnerError,
    ValidationError,
)
from expense_workflow.integrations.base import ReceiptGuess
from expense_workflow.models import ExpenseLineItem, ExpenseReport
from expense_workflow.services.state_machine import ReportStateMachine

CENT = Decimal("0.01")

EDITABLE_FIELDS = frozenset(
    {
        "category",
        "amount",
        "expense_date",
        "description",
        "customer_name",
        "invoice_number",
        "is_vat_invoice",
        "tax_rate",
    }
)


def quantize(amount: Decimal) -> Decimal:
    """Round to cents."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def total_of(amounts: Iterable[Decimal]) -> Decimal:
    """Sum amounts exactly and round once."""
    return quantize(sum(amounts, Decimal("0")))


def estimate_vat(amount: Decimal, tax_rate: Decimal | None, is_vat_invoice: bool) -> Decimal:
    """VAT contained in a tax-inclusive amount.

    ``amount - amount / (1 + rate/100)`` for VAT invoices, zero otherwise.
    """
    if not is_vat_invoice or tax_rate is None:
        return Decimal("0.00")
    net = amount / (Decimal("1") + tax_rate / Decimal("100"))
    return quantize(amount - net)


@dataclass(frozen=True)
class LineItemDraft:
    """Unvalidated line item values, e.g. from a form or a receipt guess.

    ``is_vat_invoice=None`` means "use the category default".
    """

    category: str
    amount: Decimal | None
    expense_date: date | None
    description: str | None = None
    customer_name: str | None = None
    invoice_number: str | None = None
    receipt_refs: tuple[str, ...] = ()
    is_vat_invoice: bool | None = None
    tax_rate: Decimal | None = None


@dataclass(frozen=True)
class CategoryBreakdown:
    category: str
    label: str
    item_count: int
    amount: Decimal
    vat_amount: Decimal


@dataclass(frozen=True)
class LedgerSummary:
    """Financial summary shown to the submitter. Not used for workflow decisions."""

    report_id: UUID
    item_count: int
    total: Decimal
    vat_total: Decimal
    by_category: list[CategoryBreakdown] = field(default_factory=list)


def summarize_items(report_id: UUID, items: Iterable[ExpenseLineItem]) -> LedgerSummary:
    """Aggregate line items into totals and a per-category breakdown."""
    grouped: dict[str, list[ExpenseLineItem]] = {}
    for item in items:
        grouped.setdefault(item.category, []).append(item)

    breakdown = []
    # Table order first, then any retired codes still on old items
    ordered = [c for c in CATEGORIES if c in grouped]
    ordered += sorted(c for c in grouped if c not in CATEGORIES)
    for code in ordered:
        group = grouped[code]
        label = CATEGORIES[code].label if code in CATEGORIES else code
        breakdown.append(
            CategoryBreakdown(
                category=code,
                label=label,
                item_count=len(group),
                amount=total_of(i.amount for i in group),
                vat_amount=total_of(
                    estimate_vat(i.amount, i.tax_rate, i.is_vat_invoice) for i in group
                ),
            )
        )

    return LedgerSummary(
        report_id=report_id,
        item_count=sum(b.item_count for b in breakdown),
        total=total_of(b.amount for b in breakdown),
        vat_total=total_of(b.vat_amount for b in breakdown),
        by_category=breakdown,
    )


def prefill_from_guess(guess: ReceiptGuess) -> LineItemDraft:
    """Turn a recognizer guess into a draft with category defaults applied."""
    try:
        category = resolve_category(guess.category)
    except ValidationError:
        category = detect_category(" ".join(filter(None, [guess.category, guess.seller])))

    is_vat, rate = apply_category_defaults(category, guess.is_vat_invoice, guess.tax_rate)
    return LineItemDraft(
        category=category,
        amount=guess.amount,
        expense_date=guess.expense_date,
        description=guess.seller,
        invoice_number=guess.invoice_number,
        is_vat_invoice=is_vat,
        tax_rate=rate,
    )


def _to_decimal(value: Any, field_name: str) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be numeric", field=field_name)
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be numeric", field=field_name)
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be numeric", field=field_name)
    return result


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def validate_values(values: dict[str, Any]) -> dict[str, Any]:
    """Validate and normalize line item column values.

    Raises:
        ValidationError: on any bad value
    """
    category = resolve_category(values.get("category"))

    amount = _to_decimal(values.get("amount"), "amount")
    if amount is None:
        raise ValidationError("amount is required", field="amount")
    if amount <= 0:
        raise ValidationError("amount must be greater than zero", field="amount")

    expense_date = values.get("expense_date")
    if not isinstance(expense_date, date):
        raise ValidationError("expense_date is required", field="expense_date")

    is_vat = values.get("is_vat_invoice")
    tax_rate = _to_decimal(values.get("tax_rate"), "tax_rate")
    if is_vat is None:
        is_vat, tax_rate = apply_category_defaults(category, None, tax_rate)
    if is_vat:
        if tax_rate is None:
            raise ValidationError("tax_rate is required for VAT invoices", field="tax_rate")
        if tax_rate < 0 or tax_rate > 100:
            raise ValidationError("tax_rate must be between 0 and 100", field="tax_rate")
    else:
        tax_rate = None

    return {
        "category": category,
        "amount": quantize(amount),
        "expense_date": expense_date,
        "description": _blank_to_none(values.get("description")),
        "customer_name": _blank_to_none(values.get("customer_name")),
        "invoice_number": _blank_to_none(values.get("invoice_number")),
        "is_vat_invoice": bool(is_vat),
        "tax_rate": tax_rate,
    }


class LedgerService:
    """Line item mutations for draft reports, plus totals.

    Every mutation requires the acting account to own the report and the
    report to be editable (draft).
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_line_items(self, report_id: UUID) -> list[ExpenseLineItem]:
        result = await self.session.execute(
            select(ExpenseLineItem)
            .where(ExpenseLineItem.report_id == report_id)
            .order_by(ExpenseLineItem.expense_date, ExpenseLineItem.created_at)
        )
        return list(result.scalars().all())

    async def get_line_item(self, line_item_id: UUID) -> ExpenseLineItem:
        item = await self.session.get(ExpenseLineItem, line_item_id)
        if item is None:
            raise NotFoundError("Line item", line_item_id)
        return item

    async def add_line_item(
        self,
        report_id: UUID,
        actor_id: UUID,
        draft: LineItemDraft,
    ) -> ExpenseLineItem:
        """Add a line item to a draft report owned by ``actor_id``."""
        report = await self._load_editable_report(report_id, actor_id)
        values = validate_values(
            {
                "category": draft.category,
                "amount": draft.amount,
                "expense_date": draft.expense_date,
                "description": draft.description,
                "customer_name": draft.customer_name,
                "invoice_number": draft.invoice_number,
                "is_vat_invoice": draft.is_vat_invoice,
                "tax_rate": draft.tax_rate,
            }
        )
        refs = [r.strip() for r in draft.receipt_refs if r and r.strip()]

        item = ExpenseLineItem(
            report_id=report.report_id,
            account_id=actor_id,
            receipt_refs=list(dict.fromkeys(refs)),
            **values,
        )
        self.session.add(item)
        await self.session.flush()
        return item

    async def update_line_item(
        self,
        line_item_id: UUID,
        actor_id: UUID,
        **changes: Any,
    ) -> ExpenseLineItem:
        """Change fields of a line item, revalidating the result."""
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update field(s): {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )

        item = await self.get_line_item(line_item_id)
        await self._load_editable_report(item.report_id, actor_id)

        current = {name: getattr(item, name) for name in EDITABLE_FIELDS}
        # Switching category without saying anything about VAT re-applies its defaults
        if "category" in changes and "is_vat_invoice" not in changes:
            current["is_vat_invoice"] = None
            current["tax_rate"] = None
        current.update(changes)

        for name, value in validate_values(current).items():
            setattr(item, name, value)
        await self.session.flush()
        return item

    async def remove_line_item(self, line_item_id: UUID, actor_id: UUID) -> list[str]:
        """Delete a line item; returns its receipt references for purging."""
        item = await self.get_line_item(line_item_id)
        await self._load_editable_report(item.report_id, actor_id)

        references = list(item.receipt_refs or [])
        await self.session.delete(item)
        await self.session.flush()
        return references

    async def attach_receipt(
        self,
        line_item_id: UUID,
        actor_id: UUID,
        reference: str,
    ) -> ExpenseLineItem:
        reference = (reference or "").strip()
        if not reference:
            raise ValidationError("receipt reference is required", field="reference")

        item = await self.get_line_item(line_item_id)
        await self._load_editable_report(item.report_id, actor_id)

        refs = list(item.receipt_refs or [])
        if reference not in refs:
            # Reassign so the JSON column is marked dirty
            item.receipt_refs = refs + [reference]
            await self.session.flush()
        return item

    async def detach_receipt(
        self,
        line_item_id: UUID,
        actor_id: UUID,
        reference: str,
    ) -> str:
        """Remove a receipt reference; returns it for purging."""
        item = await self.get_line_item(line_item_id)
        await self._load_editable_report(item.report_id, actor_id)

        refs = list(item.receipt_refs or [])
        if reference not in refs:
            raise NotFoundError("Receipt", reference)
        item.receipt_refs = [r for r in refs if r != reference]
        await self.session.flush()
        return reference

    async def compute_total(self, report_id: UUID) -> Decimal:
        """Current sum of the report's line item amounts."""
        result = await self.session.execute(
            select(ExpenseLineItem.amount).where(ExpenseLineItem.report_id == report_id)
        )
        return total_of(result.scalars().all())

    async def count_line_items(self, report_id: UUID) -> int:
        result = await self.session.execute(
            select(ExpenseLineItem.line_item_id).where(ExpenseLineItem.report_id == report_id)
        )
        return len(result.scalars().all())

    async def summarize(self, report_id: UUID) -> LedgerSummary:
        return summarize_items(report_id, await self.list_line_items(report_id))

    async def _load_editable_report(self, report_id: UUID, actor_id: UUID) -> ExpenseReport:
        result = await self.session.execute(
            select(ExpenseReport)
            .where(ExpenseReport.report_id == report_id)
            .execution_options(populate_existing=True)
        )
        report = result.scalar_one_or_none()
        if report is None:
            raise NotFoundError("Report", report_id)
        if report.owner_id != actor_id:
            raise NotOwnerError("report", report_id)
        if not ReportStateMachine.is_editable(report.status):
            raise InvalidStateError(
                f"Line items can only change while the report is a draft "
                f"(current: {report.status})",
                status=report.status,
            )
        return report

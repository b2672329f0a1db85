"""Expense categories and their VAT-invoice defaults.

The category list is static configuration. Some categories (air and rail
tickets) are normally backed by a VAT invoice with a fixed rate, so picking
them pre-enables VAT-invoice mode with that rate.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from expense_workflow.errors import ValidationError


@dataclass(frozen=True)
class CategoryDefaults:
    """Display label and VAT defaults for one category."""

    code: str
    label: str
    default_vat_enabled: bool = False
    default_tax_rate: Decimal | None = None


CATEGORIES: dict[str, CategoryDefaults] = {
    c.code: c
    for c in (
        CategoryDefaults("airfare", "Airfare", True, Decimal("9")),
        CategoryDefaults("train", "Train", True, Decimal("9")),
        CategoryDefaults("coach", "Long-distance coach"),
        CategoryDefaults("taxi", "Taxi"),
        CategoryDefaults("tolls", "Road tolls"),
        CategoryDefaults("meals", "Meals"),
        CategoryDefaults("lodging", "Lodging"),
        CategoryDefaults("courier", "Courier"),
        CategoryDefaults("telecom", "Telecom"),
        CategoryDefaults("office_supplies", "Office supplies"),
        CategoryDefaults("client_entertainment", "Client entertainment"),
        CategoryDefaults("staff_welfare", "Staff welfare"),
        CategoryDefaults("other", "Other"),
    )
}

DEFAULT_CATEGORY = "other"

# Checked in order; the first category with a matching keyword wins.
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("tolls", ("通行费", "高速", "路桥", "toll")),
    ("courier", ("快递", "物流", "收派", "顺丰", "圆通", "邮政", "courier", "express delivery")),
    ("telecom", ("通信费", "电信", "移动", "联通", "话费", "宽带", "telecom", "broadband")),
    ("taxi", ("客运", "滴滴", "出行", "出租", "taxi", "ride-hailing")),
    ("meals", ("餐饮", "饮食", "restaurant", "catering")),
    ("lodging", ("住宿", "酒店", "hotel", "lodging")),
    ("airfare", ("机票", "航空", "airline", "airfare")),
    ("train", ("火车", "铁路", "railway", "train")),
)

_BY_LABEL = {c.label.lower(): c.code for c in CATEGORIES.values()}


def resolve_category(value: str | None) -> str:
    """Return the category code for a code or label, raising if unknown."""
    if value is None or not value.strip():
        raise ValidationError("category is required", field="category")
    key = value.strip().lower()
    if key in CATEGORIES:
        return key
    if key in _BY_LABEL:
        return _BY_LABEL[key]
    raise ValidationError(f"Unknown expense category: {value!r}", field="category")


def apply_category_defaults(
    category: str,
    is_vat_invoice: bool | None = None,
    tax_rate: Decimal | None = None,
) -> tuple[bool, Decimal | None]:
    """Fill in the VAT flag and rate the caller left unspecified."""
    defaults = CATEGORIES[resolve_category(category)]
    if is_vat_invoice is None:
        is_vat_invoice = defaults.default_vat_enabled
    if is_vat_invoice and tax_rate is None:
        tax_rate = defaults.default_tax_rate
    if not is_vat_invoice:
        tax_rate = None
    return is_vat_invoice, tax_rate


def detect_category(text: str | None) -> str:
    """Guess a category from free text (seller name, goods description)."""
    if not text:
        return DEFAULT_CATEGORY
    haystack = text.lower()
    for code, keywords in CATEGORY_KEYWORDS:
        if any(keyword in haystack for keyword in keywords):
            return code
    return DEFAULT_CATEGORY

"""Protocols and types for external collaborators.

The workflow core only stores and removes public receipt references; how
files reach storage, and how receipts are read, is up to the adapters.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol
from uuid import UUID


@dataclass(frozen=True)
class UploadTarget:
    """Where a client uploads a receipt, and how it is referenced afterwards."""

    upload_url: str
    public_reference: str
    content_type: str
    expires_in_seconds: int


class ReceiptStorage(Protocol):
    """Protocol for object-storage adapters holding receipt files."""

    def issue_upload_target(self, content_type: str, owner_id: UUID) -> UploadTarget:
        """Return a short-lived upload handle plus the reference to store."""
        ...

    def delete(self, references: list[str]) -> None:
        """Delete stored objects by public reference.

        Raises on failure; callers decide whether that is fatal.
        """
        ...


@dataclass(frozen=True)
class ReceiptGuess:
    """Best-effort structured reading of a receipt image.

    Every field may be missing; nothing here is validated until the
    resulting draft is added to a report.
    """

    amount: Decimal | None = None
    expense_date: datetime.date | None = None
    category: str | None = None
    invoice_number: str | None = None
    is_vat_invoice: bool | None = None
    tax_rate: Decimal | None = None
    seller: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ReceiptGuess:
        """Parse a recognizer reply, dropping fields that do not parse."""
        return cls(
            amount=_decimal_or_none(payload.get("amount")),
            expense_date=_date_or_none(payload.get("date")),
            category=_str_or_none(payload.get("category")),
            invoice_number=_str_or_none(payload.get("invoice_number")),
            is_vat_invoice=_bool_or_none(payload.get("is_vat_special")),
            tax_rate=_decimal_or_none(payload.get("tax_rate")),
            seller=_str_or_none(payload.get("seller")),
        )


class ReceiptRecognizer(Protocol):
    """Protocol for optical receipt recognition services."""

    def recognize(self, image: bytes, content_type: str) -> ReceiptGuess:
        """Read a receipt image and return a structured guess."""
        ...


def _decimal_or_none(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def _date_or_none(value: Any) -> datetime.date | None:
    if isinstance(value, datetime.date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return datetime.date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _bool_or_none(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    return None

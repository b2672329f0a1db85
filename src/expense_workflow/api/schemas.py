"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Directory schemas
# ============================================================================


class AccountCreate(BaseModel):
    """Schema for registering an account profile."""

    display_name: str = Field(min_length=1)
    role: str = "employee"
    department: str | None = None
    email: str | None = None
    phone: str | None = None


class AccountUpdate(BaseModel):
    """Contact fields; omitted fields are left unchanged."""

    display_name: str | None = None
    email: str | None = None
    phone: str | None = None
    avatar_url: str | None = None


class RoleAssignment(BaseModel):
    role: str | None = None
    department: str | None = None


class AccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    account_id: UUID
    display_name: str
    role: str
    department: str | None = None
    email: str | None = None
    phone: str | None = None
    avatar_url: str | None = None
    created_at: datetime | None = None


class AccountListResponse(BaseModel):
    items: list[AccountResponse]
    total: int


class CustomerCreate(BaseModel):
    name: str


class CustomerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    customer_id: UUID
    name: str


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    label: str
    default_vat_enabled: bool
    default_tax_rate: Decimal | None = None


# ============================================================================
# Report schemas
# ============================================================================


class ReportCreate(BaseModel):
    """Schema for creating a draft report."""

    title: str
    purpose: str | None = None
    customer_name: str | None = None
    bill_to_customer: bool = False


class ReportUpdate(BaseModel):
    """Report header fields; omitted fields are left unchanged."""

    title: str | None = None
    purpose: str | None = None
    customer_name: str | None = None
    bill_to_customer: bool | None = None


class LineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    line_item_id: UUID
    report_id: UUID
    account_id: UUID
    category: str
    amount: Decimal
    expense_date: date
    description: str | None = None
    customer_name: str | None = None
    invoice_number: str | None = None
    receipt_refs: list[str] = Field(default_factory=list)
    is_vat_invoice: bool
    tax_rate: Decimal | None = None


class ReportResponse(BaseModel):
    """Schema for report response."""

    model_config = ConfigDict(from_attributes=True)

    report_id: UUID
    owner_id: UUID
    title: str
    purpose: str | None = None
    status: str
    customer_name: str | None = None
    bill_to_customer: bool
    total_amount: Decimal
    created_at: datetime | None = None
    submitted_at: datetime | None = None
    primary_approver_id: UUID | None = None
    primary_approved_at: datetime | None = None
    final_approver_id: UUID | None = None
    final_approved_at: datetime | None = None
    invoice_received: bool
    paid: bool
    reimbursed_at: datetime | None = None


class ReportDetailResponse(ReportResponse):
    line_items: list[LineItemResponse] = Field(default_factory=list)


class ReportListResponse(BaseModel):
    items: list[ReportResponse]
    total: int


class CategoryBreakdownResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category: str
    label: str
    item_count: int
    amount: Decimal
    vat_amount: Decimal


class SummaryResponse(BaseModel):
    """Per-category totals with estimated VAT."""

    model_config = ConfigDict(from_attributes=True)

    report_id: UUID
    item_count: int
    total: Decimal
    vat_total: Decimal
    by_category: list[CategoryBreakdownResponse]


# ============================================================================
# Line item and receipt schemas
# ============================================================================


class LineItemCreate(BaseModel):
    """Schema for adding a line item.

    Leave ``is_vat_invoice`` unset to take the category's VAT defaults.
    """

    category: str
    amount: Decimal
    expense_date: date
    description: str | None = None
    customer_name: str | None = None
    invoice_number: str | None = None
    receipt_refs: list[str] = Field(default_factory=list)
    is_vat_invoice: bool | None = None
    tax_rate: Decimal | None = None


class LineItemUpdate(BaseModel):
    category: str | None = None
    amount: Decimal | None = None
    expense_date: date | None = None
    description: str | None = None
    customer_name: str | None = None
    invoice_number: str | None = None
    is_vat_invoice: bool | None = None
    tax_rate: Decimal | None = None


class ReceiptAttach(BaseModel):
    reference: str


class UploadTargetRequest(BaseModel):
    content_type: str = Field(pattern=r"^[\w.+-]+/[\w.+-]+$")


class UploadTargetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    upload_url: str
    public_reference: str
    content_type: str
    expires_in_seconds: int


class PrefillRequest(BaseModel):
    """Raw reply from a receipt recognizer."""

    payload: dict[str, Any]


class LineItemDraftResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category: str
    amount: Decimal | None = None
    expense_date: date | None = None
    description: str | None = None
    invoice_number: str | None = None
    is_vat_invoice: bool | None = None
    tax_rate: Decimal | None = None


# ============================================================================
# Approval schemas
# ============================================================================


class DecisionRequest(BaseModel):
    """Schema for a decision on a report.

    ``expected_status`` is the status the caller saw when choosing. The
    decision is authorized against it and fails with STALE_STATE if the
    report has moved on.
    """

    decision: str
    expected_status: str
    comment: str | None = None


class ApprovalRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    approval_record_id: UUID
    report_id: UUID
    actor_id: UUID
    decision: str
    from_status: str
    to_status: str
    comment: str | None = None
    created_at: datetime


class DecisionResponse(BaseModel):
    report: ReportResponse
    record: ApprovalRecordResponse


class AvailableDecisionsResponse(BaseModel):
    report_id: UUID
    decisions: list[str]


# ============================================================================
# Settlement and register schemas
# ============================================================================


class FlagUpdate(BaseModel):
    value: bool


class RegisterRowResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    line_item_id: UUID
    expense_date: date
    category: str
    category_label: str
    amount: Decimal
    description: str | None = None
    invoice_number: str | None = None
    is_vat_invoice: bool
    tax_rate: Decimal | None = None
    report_id: UUID
    report_title: str
    report_status: str
    submitter: str
    customer_name: str | None = None
    bill_to_customer: bool
    primary_approver: str | None = None
    primary_approved_at: datetime | None = None
    final_approver: str | None = None
    final_approved_at: datetime | None = None


class RegisterResponse(BaseModel):
    items: list[RegisterRowResponse]
    total: int
    total_amount: Decimal


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None

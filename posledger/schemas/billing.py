from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import Field, field_validator

from posledger.models.billing import PaymentStatus
from posledger.schemas.common import CamelModel, decode_base64_pdf


class PaymentRequest(CamelModel):
    amount: Any = None


class PaymentResponse(CamelModel):
    success: bool = True
    message: str
    paid_amount: Decimal
    total: Decimal
    remaining: Decimal
    status: PaymentStatus


class InvoiceCreate(CamelModel):
    invoice_no: str = Field(min_length=1, max_length=64)
    total: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    due_date: datetime | None = None
    pdf: bytes | None = None

    @field_validator("invoice_no")
    @classmethod
    def strip_invoice_no(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("invoiceNo must not be blank")
        return stripped

    @field_validator("pdf", mode="before")
    @classmethod
    def decode_pdf(cls, value):
        if value is None or value == "":
            return None
        if isinstance(value, str):
            return decode_base64_pdf(value)
        return value


class InvoiceOut(CamelModel):
    id: int
    invoice_no: str
    total: Decimal
    paid_amount: Decimal
    status: PaymentStatus
    due_date: datetime
    created_at: datetime
    updated_at: datetime


class BillingSaveRequest(CamelModel):
    order_id: int
    invoice_no: str = Field(min_length=1, max_length=64)
    cost: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    pdf_base64: bytes

    @field_validator("pdf_base64", mode="before")
    @classmethod
    def decode_pdf(cls, value):
        if isinstance(value, str):
            if not value.strip():
                raise ValueError("pdfBase64 must not be empty")
            return decode_base64_pdf(value)
        return value


class BillingSaveResponse(CamelModel):
    success: bool = True
    id: int
    invoice_no: str


class BillingOut(CamelModel):
    id: int
    invoice_no: str
    order_id: int
    cost: Decimal
    amount_paid: Decimal
    status: PaymentStatus
    paid_at: datetime | None
    created_at: datetime


class EstimateCreate(CamelModel):
    estimate_no: str | None = Field(default=None, max_length=64)
    date: datetime
    bill_to: str
    ship_to: str
    subtotal: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    discount: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=12, decimal_places=2)
    total: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    pdf_data: bytes | None = None
    items: list[dict[str, Any]] = Field(default_factory=list)
    user_id: int | None = None
    company_name: str = ""
    company_addr1: str = ""
    company_addr2: str = ""
    phone: str = ""
    fax: str = ""
    email: str = ""
    website: str = ""

    @field_validator("pdf_data", mode="before")
    @classmethod
    def decode_pdf(cls, value):
        if value is None or value == "":
            return None
        if isinstance(value, str):
            return decode_base64_pdf(value)
        return value


class EstimateSummaryOut(CamelModel):
    id: int
    estimate_no: str
    date: datetime
    total: Decimal
    approved: bool
    invoiced: bool
    bill_to: str


class EstimateOut(EstimateSummaryOut):
    ship_to: str
    subtotal: Decimal
    discount: Decimal
    items: list[dict[str, Any]]
    user_id: int | None
    company_name: str
    company_addr1: str
    company_addr2: str
    phone: str
    fax: str
    email: str
    website: str
    created_at: datetime


class EstimateSaveResponse(CamelModel):
    success: bool = True
    estimate: EstimateOut


class EstimateApproveRequest(CamelModel):
    approved: bool

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from posledger.schemas.common import CamelModel


class SaleItemIn(CamelModel):
    product_id: int
    qty: int = Field(gt=0)
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)


class PaymentIn(CamelModel):
    method: str = Field(min_length=1, max_length=32)
    provider: str | None = Field(default=None, max_length=64)
    provider_ref: str | None = Field(default=None, max_length=128)


class SaleCreateRequest(CamelModel):
    user_id: int | None = None
    customer_name: str | None = Field(default=None, max_length=160)
    items: list[SaleItemIn] = Field(min_length=1)
    payment: PaymentIn


class SaleItemOut(CamelModel):
    id: int
    product_id: int
    qty: int
    price: Decimal


class PaymentOut(CamelModel):
    id: int
    method: str
    amount: Decimal
    provider: str | None
    provider_ref: str | None


class SaleOut(CamelModel):
    id: int
    user_id: int | None
    customer_name: str | None
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    status: str
    created_at: datetime
    items: list[SaleItemOut]
    payment: PaymentOut | None


class SalePageOut(CamelModel):
    items: list[SaleOut]
    total: int
    page: int
    limit: int
    total_pages: int

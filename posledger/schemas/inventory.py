from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from posledger.models.inventory import ChangeAction, OrderStatus
from posledger.schemas.common import CamelModel


def _split_vendors(value):
    if value is None:
        return value
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


class ProductCreate(CamelModel):
    sku: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=160)
    description: str | None = None
    input_cost: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=10, decimal_places=2)
    stock: int = Field(default=0, ge=0)
    vendors: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)
    need_to_order: int = Field(default=0, ge=0)
    billing: bool | None = None

    normalize_vendors = field_validator("vendors", mode="before")(_split_vendors)

    @field_validator("sku", "name")
    @classmethod
    def strip_required(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped


class ProductUpdate(CamelModel):
    sku: str | None = Field(default=None, min_length=1, max_length=64)
    name: str | None = Field(default=None, min_length=1, max_length=160)
    description: str | None = None
    input_cost: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    stock: int | None = Field(default=None, ge=0)
    vendors: list[str] | None = None
    images: list[str] | None = None
    need_to_order: int | None = Field(default=None, ge=0)
    billing: bool | None = None

    normalize_vendors = field_validator("vendors", mode="before")(_split_vendors)


class ProductOut(CamelModel):
    id: int
    sku: str
    name: str
    description: str | None
    input_cost: Decimal
    stock: int
    vendors: list[str]
    images: list[str]
    need_to_order: int
    billing: bool | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None


class ProductPageOut(CamelModel):
    items: list[ProductOut]
    total: int
    page: int
    limit: int
    total_pages: int


class StockItem(CamelModel):
    sku: str | None = Field(default=None, max_length=64)
    qty: int = Field(gt=0, validation_alias=AliasChoices("qty", "quantity"))


class StockAdjustRequest(CamelModel):
    items: list[StockItem] = Field(min_length=1)


class StockChangeOut(CamelModel):
    product_id: int
    sku: str
    before: int
    after: int


class StockAdjustResponse(CamelModel):
    message: str
    changes: list[StockChangeOut]


class OrderCreate(CamelModel):
    product_id: int
    name: str = Field(min_length=1, max_length=160)
    description: str = ""
    vendors: list[str] = Field(default_factory=list)
    count: int = Field(gt=0)

    normalize_vendors = field_validator("vendors", mode="before")(_split_vendors)


class OrderOut(CamelModel):
    id: int
    product_id: int
    sku: str = ""
    name: str
    description: str
    vendors: list[str]
    count: int
    status: OrderStatus
    created_at: datetime
    cancelled_at: datetime | None


class ChangeLogOut(CamelModel):
    id: int
    product_id: int
    action: ChangeAction
    changes: dict[str, Any]
    created_at: datetime
    timestamp: datetime


class ArchiveCreate(CamelModel):
    entity: str = Field(min_length=1, max_length=64)
    entity_id: int
    data: dict[str, Any]


class ArchiveOut(CamelModel):
    id: int
    entity: str
    entity_id: int
    data: dict[str, Any]
    created_at: datetime

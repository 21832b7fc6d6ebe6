import math
from dataclasses import dataclass
from typing import Generic, TypeVar

from sqlalchemy import String, column, func, or_, select
from sqlalchemy.orm import Session

from posledger.models.inventory import Product

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def normalize_sku(value: str | None) -> str:
    return (value or "").strip().upper()


def get_product(db: Session, product_id: int, include_deleted: bool = True) -> Product | None:
    product = db.get(Product, product_id)
    if product is None or (product.is_deleted and not include_deleted):
        return None
    return product


def find_by_sku(db: Session, sku: str, include_deleted: bool = False) -> Product | None:
    query = select(Product).where(Product.sku == normalize_sku(sku))
    if not include_deleted:
        query = query.where(Product.deleted_at.is_(None))
    return db.scalar(query)


def _vendor_contains(db: Session, term: str):
    """EXISTS clause matching ``term`` against each element of the vendors array."""
    if db.get_bind().dialect.name == "postgresql":
        elements = func.json_array_elements_text(Product.vendors)
    else:
        elements = func.json_each(Product.vendors)
    vendor = elements.table_valued(column("value", String)).alias("vendor")
    return select(vendor.c.value).where(vendor.c.value.icontains(term, autoescape=True)).exists()


def search_products(
    db: Session,
    q: str | None,
    page: int,
    limit: int,
    include_deleted: bool = False,
) -> Page[Product]:
    conditions = []
    if not include_deleted:
        conditions.append(Product.deleted_at.is_(None))
    term = (q or "").strip()
    if term:
        conditions.append(
            or_(
                Product.name.icontains(term, autoescape=True),
                Product.sku.icontains(term, autoescape=True),
                _vendor_contains(db, term),
            )
        )

    total = db.scalar(select(func.count()).select_from(Product).where(*conditions)) or 0
    items = db.scalars(
        select(Product)
        .where(*conditions)
        .order_by(Product.name.asc(), Product.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return Page(items=list(items), total=total, page=page, limit=limit)


def low_stock_products(db: Session) -> list[Product]:
    return list(
        db.scalars(
            select(Product)
            .where(
                Product.deleted_at.is_(None),
                Product.need_to_order > 0,
                Product.stock <= Product.need_to_order,
            )
            .order_by(Product.stock.asc(), Product.name.asc())
        ).all()
    )

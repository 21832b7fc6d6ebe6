from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from posledger.core.errors import Conflict, NotFound
from posledger.db.database import get_db
from posledger.models.inventory import Order, OrderStatus, Product
from posledger.schemas.inventory import OrderCreate, OrderOut
from posledger.services.catalog import get_product

router = APIRouter(prefix="/orders", tags=["Orders"])


def _order_out(order: Order, sku: str | None) -> OrderOut:
    out = OrderOut.model_validate(order)
    out.sku = sku or ""
    return out


def _get_order(db: Session, order_id: int) -> Order:
    order = db.get(Order, order_id)
    if not order:
        raise NotFound("Order not found")
    return order


@router.post("", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(payload: OrderCreate, db: Session = Depends(get_db)):
    product = get_product(db, payload.product_id, include_deleted=False)
    if not product:
        raise NotFound("Product not found")

    order = Order(
        product_id=product.id,
        name=payload.name.strip(),
        description=payload.description or "",
        vendors=payload.vendors,
        count=payload.count,
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    return _order_out(order, product.sku)


@router.get("", response_model=list[OrderOut])
def list_orders(
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
):
    query = select(Order, Product.sku).join(Product, Product.id == Order.product_id).order_by(Order.created_at.desc())
    if status_filter is not None:
        query = query.where(Order.status == status_filter)
    return [_order_out(order, sku) for order, sku in db.execute(query).all()]


@router.get("/{order_id}", response_model=OrderOut)
def read_order(order_id: int, db: Session = Depends(get_db)):
    order = _get_order(db, order_id)
    product = db.get(Product, order.product_id)
    return _order_out(order, product.sku if product else None)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(order_id: int, db: Session = Depends(get_db)):
    order = _get_order(db, order_id)
    if order.status == OrderStatus.CANCELLED:
        raise Conflict("Order is already cancelled")
    order.status = OrderStatus.CANCELLED
    order.cancelled_at = datetime.utcnow()
    db.commit()
    db.refresh(order)
    product = db.get(Product, order.product_id)
    return _order_out(order, product.sku if product else None)

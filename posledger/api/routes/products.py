from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from posledger.api.deps import get_change_log_recorder, get_settings
from posledger.core.config import Settings
from posledger.core.errors import Conflict, NotFound, ValidationFailed
from posledger.db.database import get_db
from posledger.models.inventory import ChangeAction, Product
from posledger.schemas.inventory import (
    ProductCreate,
    ProductOut,
    ProductPageOut,
    ProductUpdate,
    StockAdjustRequest,
    StockAdjustResponse,
    StockChangeOut,
)
from posledger.services.catalog import get_product, low_stock_products, normalize_sku, search_products
from posledger.services.change_log import ChangeLogRecorder, snapshot
from posledger.services.stock import StockChange, decrement_stock, increment_stock

router = APIRouter(prefix="/products", tags=["Products"])


def _get_live_product(db: Session, product_id: int) -> Product:
    product = get_product(db, product_id, include_deleted=False)
    if not product:
        raise NotFound("Product not found")
    return product


def _stock_response(message: str, changes: list[StockChange]) -> StockAdjustResponse:
    return StockAdjustResponse(
        message=message,
        changes=[
            StockChangeOut(product_id=c.product_id, sku=c.sku, before=c.before, after=c.after)
            for c in changes
        ],
    )


@router.get("", response_model=ProductPageOut)
def list_products(
    q: str | None = Query(default=None, max_length=160),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    page_size = min(limit or settings.default_page_size, settings.max_page_size)
    result = search_products(db, q, page=page, limit=page_size)
    return ProductPageOut(
        items=[ProductOut.model_validate(p) for p in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )


@router.get("/low-stock", response_model=list[ProductOut])
def list_low_stock(db: Session = Depends(get_db)):
    return low_stock_products(db)


@router.patch("/decrement-stock", response_model=StockAdjustResponse)
def decrement_product_stock(
    payload: StockAdjustRequest,
    recorder: ChangeLogRecorder = Depends(get_change_log_recorder),
    db: Session = Depends(get_db),
):
    changes = decrement_stock(db, [(item.sku, item.qty) for item in payload.items], recorder)
    return _stock_response("Stock decremented", changes)


@router.patch("/increment-stock", response_model=StockAdjustResponse)
def increment_product_stock(
    payload: StockAdjustRequest,
    recorder: ChangeLogRecorder = Depends(get_change_log_recorder),
    db: Session = Depends(get_db),
):
    changes = increment_stock(db, [(item.sku, item.qty) for item in payload.items], recorder)
    return _stock_response("Stock incremented", changes)


@router.get("/{product_id}", response_model=ProductOut)
def read_product(
    product_id: int,
    include_deleted: bool = Query(default=False, alias="includeDeleted"),
    db: Session = Depends(get_db),
):
    product = get_product(db, product_id, include_deleted=include_deleted)
    if not product:
        raise NotFound("Product not found")
    return product


@router.post("", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    recorder: ChangeLogRecorder = Depends(get_change_log_recorder),
    db: Session = Depends(get_db),
):
    product = Product(
        sku=normalize_sku(payload.sku),
        name=payload.name,
        description=payload.description,
        input_cost=payload.input_cost,
        stock=payload.stock,
        vendors=payload.vendors,
        images=payload.images,
        need_to_order=payload.need_to_order,
        billing=payload.billing,
    )
    db.add(product)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("Product SKU already exists", sku=product.sku) from exc
    db.refresh(product)

    recorder.record_diff(product.id, ChangeAction.CREATE, {}, snapshot(product))
    db.refresh(product)
    return product


@router.patch("/{product_id}", response_model=ProductOut)
def update_product(
    product_id: int,
    payload: ProductUpdate,
    recorder: ChangeLogRecorder = Depends(get_change_log_recorder),
    db: Session = Depends(get_db),
):
    product = _get_live_product(db, product_id)
    before = snapshot(product)

    updates = payload.model_dump(exclude_unset=True)
    if "sku" in updates:
        sku = normalize_sku(updates["sku"])
        if not sku:
            raise ValidationFailed("Product SKU must not be blank")
        product.sku = sku
    if "name" in updates and updates["name"] is not None:
        product.name = updates["name"].strip() or product.name
    if "description" in updates:
        product.description = (updates["description"] or "").strip() or None
    for field in ("input_cost", "stock", "need_to_order"):
        if updates.get(field) is not None:
            setattr(product, field, updates[field])
    for field in ("vendors", "images"):
        if updates.get(field) is not None:
            setattr(product, field, list(updates[field]))
    if "billing" in updates:
        product.billing = updates["billing"]

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("Product SKU already exists") from exc
    db.refresh(product)

    recorder.record_diff(product.id, ChangeAction.UPDATE, before, snapshot(product))
    db.refresh(product)
    return product


@router.delete("/{product_id}", response_model=ProductOut)
def delete_product(
    product_id: int,
    recorder: ChangeLogRecorder = Depends(get_change_log_recorder),
    db: Session = Depends(get_db),
):
    product = _get_live_product(db, product_id)
    before = snapshot(product)
    product.deleted_at = datetime.utcnow()
    db.commit()
    db.refresh(product)

    recorder.record_diff(product.id, ChangeAction.DELETE, before, snapshot(product))
    db.refresh(product)
    return product

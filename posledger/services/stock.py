"""Stock adjustment by SKU.

Every change is a single conditional ``UPDATE`` so concurrent requests
against the same product cannot drive stock below zero. Batches are applied
item by item and each item commits on its own: when an item fails, the items
before it stay applied and the rest of the batch is skipped.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from posledger.core.errors import DomainError, InsufficientStock, NotFound, ValidationFailed
from posledger.models.inventory import ChangeAction, Product
from posledger.services.catalog import find_by_sku, normalize_sku
from posledger.services.change_log import ChangeLogRecorder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockChange:
    product_id: int
    sku: str
    before: int
    after: int

    @property
    def delta(self) -> int:
        return self.after - self.before


def _current_stock(db: Session, product_id: int) -> int:
    return db.scalar(select(Product.stock).where(Product.id == product_id)) or 0


def _apply_delta(db: Session, product: Product, delta: int) -> StockChange:
    statement = update(Product).where(Product.id == product.id).values(stock=Product.stock + delta)
    if delta < 0:
        statement = statement.where(Product.stock >= -delta)
    result = db.execute(statement.execution_options(synchronize_session=False))
    if result.rowcount == 0:
        raise InsufficientStock(product.sku, available=_current_stock(db, product.id), requested=-delta)
    after = _current_stock(db, product.id)
    return StockChange(product_id=product.id, sku=product.sku, before=after - delta, after=after)


def _validate_quantity(sku: str, quantity: int) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationFailed(f"Quantity for {sku} must be a positive integer")
    return quantity


def _adjust_batch(
    db: Session,
    items: Iterable[tuple[str, int]],
    recorder: ChangeLogRecorder,
    sign: int,
) -> list[StockChange]:
    changes: list[StockChange] = []
    try:
        for raw_sku, quantity in items:
            changes.append(_adjust_one(db, raw_sku, quantity, recorder, sign))
    except DomainError as exc:
        # Earlier items are already committed; tell the caller which ones.
        exc.extra["applied"] = [change.sku for change in changes]
        raise
    return changes


def _adjust_one(
    db: Session,
    raw_sku: str,
    quantity: int,
    recorder: ChangeLogRecorder,
    sign: int,
) -> StockChange:
    sku = normalize_sku(raw_sku)
    if not sku:
        raise ValidationFailed("Each item requires a sku")
    quantity = _validate_quantity(sku, quantity)
    product = find_by_sku(db, sku)
    if not product:
        raise NotFound(f"Product not found: {sku}", sku=sku)
    try:
        change = _apply_delta(db, product, sign * quantity)
    except InsufficientStock:
        db.rollback()
        logger.info("Stock decrement refused for %s", sku)
        raise
    db.commit()
    recorder.record(
        change.product_id,
        ChangeAction.UPDATE,
        {"stock": {"old": change.before, "new": change.after}},
    )
    return change


def decrement_stock(
    db: Session,
    items: Iterable[tuple[str, int]],
    recorder: ChangeLogRecorder,
) -> list[StockChange]:
    return _adjust_batch(db, items, recorder, sign=-1)


def increment_stock(
    db: Session,
    items: Iterable[tuple[str, int]],
    recorder: ChangeLogRecorder,
) -> list[StockChange]:
    return _adjust_batch(db, items, recorder, sign=1)


def reserve_for_sale(db: Session, lines: Sequence[tuple[Product, int]]) -> list[StockChange]:
    """Decrement stock for every sale line without committing.

    The caller owns the transaction, so an ``InsufficientStock`` raised here
    leaves nothing applied once the caller rolls back.
    """
    return [_apply_delta(db, product, -quantity) for product, quantity in lines]

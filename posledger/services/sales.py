import logging
from collections import OrderedDict
from decimal import Decimal

from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from posledger.core.errors import NotFound, ValidationFailed
from posledger.models.inventory import ChangeAction, Product
from posledger.models.sales import Payment, Sale, SaleItem
from posledger.models.user import User
from posledger.schemas.sales import SaleCreateRequest, SaleOut
from posledger.services.catalog import get_product
from posledger.services.change_log import ChangeLogRecorder
from posledger.services.events import EventPublisher
from posledger.services.payments import quantize_money
from posledger.services.stock import reserve_for_sale

logger = logging.getLogger(__name__)

SALE_CREATED = "sale:created"


def compute_totals(lines: list[tuple[int, Decimal]], tax_rate: Decimal) -> tuple[Decimal, Decimal, Decimal]:
    subtotal = quantize_money(sum((Decimal(qty) * Decimal(price) for qty, price in lines), Decimal("0")))
    tax = quantize_money(subtotal * tax_rate)
    return subtotal, tax, quantize_money(subtotal + tax)


def _resolve_lines(db: Session, payload: SaleCreateRequest) -> list[tuple[Product, int]]:
    """Merge sale items by product so each product is decremented once."""
    quantities: OrderedDict[int, int] = OrderedDict()
    for item in payload.items:
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.qty

    lines: list[tuple[Product, int]] = []
    for product_id, qty in quantities.items():
        product = get_product(db, product_id, include_deleted=False)
        if not product:
            raise NotFound(f"Product not found: {product_id}", productId=product_id)
        lines.append((product, qty))
    return lines


def create_sale(
    db: Session,
    payload: SaleCreateRequest,
    tax_rate: Decimal,
    publisher: EventPublisher,
    recorder: ChangeLogRecorder,
) -> Sale:
    if payload.user_id is not None and db.get(User, payload.user_id) is None:
        raise ValidationFailed(f"Unknown user: {payload.user_id}")

    lines = _resolve_lines(db, payload)
    subtotal, tax, total = compute_totals([(item.qty, item.price) for item in payload.items], tax_rate)

    sale = Sale(
        user_id=payload.user_id,
        customer_name=payload.customer_name,
        subtotal=subtotal,
        tax=tax,
        total=total,
        status="completed",
        items=[
            SaleItem(product_id=item.product_id, qty=item.qty, price=quantize_money(item.price))
            for item in payload.items
        ],
        payment=Payment(
            method=payload.payment.method,
            amount=total,
            provider=payload.payment.provider,
            provider_ref=payload.payment.provider_ref,
        ),
    )
    try:
        changes = reserve_for_sale(db, lines)
        db.add(sale)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(sale)
    logger.info("Sale %s recorded: %s line(s), total %s", sale.id, len(sale.items), sale.total)

    for change in changes:
        recorder.record(
            change.product_id,
            ChangeAction.UPDATE,
            {"stock": {"old": change.before, "new": change.after}},
        )

    db.refresh(sale)
    body = jsonable_encoder(SaleOut.model_validate(sale), by_alias=True)
    try:
        publisher.publish(SALE_CREATED, body)
    except Exception:
        logger.exception("Failed to publish %s for sale %s", SALE_CREATED, sale.id)
    return sale


def get_sale(db: Session, sale_id: int) -> Sale:
    sale = db.get(Sale, sale_id)
    if not sale:
        raise NotFound("Sale not found")
    return sale

"""Payment accumulation against invoices and billing records.

The paid amount of a record never exceeds its total. A payment that would
overshoot is clamped, so paying an already settled record is accepted and
leaves nothing remaining.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.orm import Session

from posledger.core.errors import InvalidAmount, NotFound
from posledger.models.billing import BillingPDF, Invoice, PaymentStatus

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENTS)


@dataclass(frozen=True)
class PaymentOutcome:
    paid: Decimal
    total: Decimal
    status: PaymentStatus
    remaining: Decimal

    @property
    def fully_paid(self) -> bool:
        return self.status == PaymentStatus.PAID

    @property
    def message(self) -> str:
        return "Paid in full!" if self.fully_paid else "Payment recorded"


def validate_amount(value) -> Decimal:
    if value is None or isinstance(value, bool):
        raise InvalidAmount()
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount() from None
    if not amount.is_finite() or amount <= 0 or _has_sub_cent_digits(amount):
        raise InvalidAmount()
    return amount


def _has_sub_cent_digits(amount: Decimal) -> bool:
    _, digits, exponent = amount.as_tuple()
    extra = -2 - exponent
    if extra <= 0:
        return False
    return any(digits[-extra:])


def derive_status(paid: Decimal, total: Decimal) -> PaymentStatus:
    if paid >= total:
        return PaymentStatus.PAID
    if paid > 0:
        return PaymentStatus.PARTIALLY_PAID
    return PaymentStatus.PENDING


def apply_payment(current_paid: Decimal | None, total: Decimal, amount) -> PaymentOutcome:
    amount = validate_amount(amount)
    total = quantize_money(total)
    current = quantize_money(current_paid if current_paid is not None else ZERO)
    # Clamp the amount itself; adding a huge amount first overflows.
    new_paid = quantize_money(current + min(amount, max(total - current, ZERO)))
    remaining = max(total - new_paid, ZERO)
    return PaymentOutcome(
        paid=new_paid,
        total=total,
        status=derive_status(new_paid, total),
        remaining=quantize_money(remaining),
    )


def pay_invoice(db: Session, invoice_id: int, amount) -> PaymentOutcome:
    amount = validate_amount(amount)
    invoice = db.scalar(select(Invoice).where(Invoice.id == invoice_id).with_for_update())
    if not invoice:
        raise NotFound("Invoice not found")

    outcome = apply_payment(invoice.paid_amount, invoice.total, amount)
    invoice.paid_amount = outcome.paid
    invoice.status = outcome.status
    invoice.updated_at = datetime.utcnow()
    db.commit()
    logger.info(
        "Invoice %s payment %s applied: paid=%s remaining=%s status=%s",
        invoice.invoice_no,
        amount,
        outcome.paid,
        outcome.remaining,
        outcome.status.value,
    )
    return outcome


def pay_billing(db: Session, billing_id: int, amount) -> PaymentOutcome:
    amount = validate_amount(amount)
    record = db.scalar(select(BillingPDF).where(BillingPDF.id == billing_id).with_for_update())
    if not record:
        raise NotFound("Invoice not found")

    was_paid = record.status == PaymentStatus.PAID
    outcome = apply_payment(record.amount_paid, record.cost, amount)
    now = datetime.utcnow()
    record.amount_paid = outcome.paid
    record.status = outcome.status
    record.updated_at = now
    if outcome.fully_paid:
        if not was_paid or record.paid_at is None:
            record.paid_at = now
    else:
        record.paid_at = None
    db.commit()
    logger.info(
        "Billing record %s payment %s applied: paid=%s remaining=%s",
        record.invoice_no,
        amount,
        outcome.paid,
        outcome.remaining,
    )
    return outcome

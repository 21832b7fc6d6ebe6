import logging

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, undefer

from posledger.core.errors import Conflict, NotFound
from posledger.db.database import get_db
from posledger.models.billing import BillingPDF, PaymentStatus
from posledger.schemas.billing import (
    BillingOut,
    BillingSaveRequest,
    BillingSaveResponse,
    PaymentRequest,
    PaymentResponse,
)
from posledger.services.payments import ZERO, pay_billing, quantize_money

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])


@router.get("", response_model=list[BillingOut])
def list_billing(db: Session = Depends(get_db)):
    return list(db.scalars(select(BillingPDF).order_by(BillingPDF.created_at.desc(), BillingPDF.id.desc())).all())


@router.get("/view")
def view_billing_pdf(order_id: int = Query(alias="orderId", gt=0), db: Session = Depends(get_db)):
    record = db.scalar(
        select(BillingPDF)
        .options(undefer(BillingPDF.pdf))
        .where(BillingPDF.order_id == order_id)
        .order_by(BillingPDF.id.desc())
    )
    if not record:
        raise NotFound("PDF not found")
    return Response(content=record.pdf, media_type="application/pdf")


@router.post("/save-pdf", response_model=BillingSaveResponse)
def save_billing_pdf(payload: BillingSaveRequest, db: Session = Depends(get_db)):
    invoice_no = payload.invoice_no.strip()
    record = BillingPDF(
        order_id=payload.order_id,
        invoice_no=invoice_no,
        cost=quantize_money(payload.cost),
        amount_paid=ZERO,
        status=PaymentStatus.PENDING,
        pdf=payload.pdf_base64,
    )
    db.add(record)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("Invoice number already exists", invoiceNo=invoice_no) from exc
    db.refresh(record)
    logger.info("Stored billing PDF %s for order %s", record.invoice_no, record.order_id)
    return BillingSaveResponse(id=record.id, invoice_no=record.invoice_no)


@router.post("/{billing_id}/pay", response_model=PaymentResponse)
def pay(billing_id: int, payload: PaymentRequest, db: Session = Depends(get_db)):
    outcome = pay_billing(db, billing_id, payload.amount)
    return PaymentResponse(
        message=outcome.message,
        paid_amount=outcome.paid,
        total=outcome.total,
        remaining=outcome.remaining,
        status=outcome.status,
    )

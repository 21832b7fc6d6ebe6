from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, undefer

from posledger.api.deps import get_settings
from posledger.core.config import Settings
from posledger.core.errors import Conflict, NotFound
from posledger.db.database import get_db
from posledger.models.billing import Invoice, PaymentStatus
from posledger.schemas.billing import InvoiceCreate, InvoiceOut, PaymentRequest, PaymentResponse
from posledger.schemas.common import MessageResponse
from posledger.services.payments import ZERO, pay_invoice, quantize_money

router = APIRouter(prefix="/invoices", tags=["Invoices"])


def _get_invoice(db: Session, invoice_id: int) -> Invoice:
    invoice = db.get(Invoice, invoice_id)
    if not invoice:
        raise NotFound("Invoice not found")
    return invoice


@router.post("", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: InvoiceCreate,
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    if db.scalar(select(Invoice.id).where(Invoice.invoice_no == payload.invoice_no)):
        raise Conflict("Invoice already exists", invoiceNo=payload.invoice_no)

    invoice = Invoice(
        invoice_no=payload.invoice_no,
        total=quantize_money(payload.total),
        paid_amount=ZERO,
        status=PaymentStatus.PENDING,
        due_date=payload.due_date or datetime.utcnow() + timedelta(days=settings.invoice_due_days),
        pdf=payload.pdf,
    )
    db.add(invoice)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("Invoice already exists", invoiceNo=payload.invoice_no) from exc
    db.refresh(invoice)
    return invoice


@router.get("", response_model=list[InvoiceOut])
def list_invoices(
    status_filter: PaymentStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
):
    query = select(Invoice).order_by(Invoice.created_at.desc(), Invoice.id.desc())
    if status_filter is not None:
        query = query.where(Invoice.status == status_filter)
    return list(db.scalars(query).all())


@router.get("/{invoice_id}", response_model=InvoiceOut)
def read_invoice(invoice_id: int, db: Session = Depends(get_db)):
    return _get_invoice(db, invoice_id)


@router.get("/{invoice_id}/pdf")
def read_invoice_pdf(invoice_id: int, db: Session = Depends(get_db)):
    invoice = db.scalar(select(Invoice).options(undefer(Invoice.pdf)).where(Invoice.id == invoice_id))
    if not invoice:
        raise NotFound("Invoice not found")
    if not invoice.pdf:
        raise NotFound("Invoice has no PDF")
    return Response(
        content=invoice.pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{invoice.invoice_no}.pdf"'},
    )


@router.delete("/{invoice_id}", response_model=MessageResponse)
def delete_invoice(invoice_id: int, db: Session = Depends(get_db)):
    invoice = _get_invoice(db, invoice_id)
    db.delete(invoice)
    db.commit()
    return MessageResponse(message="Invoice deleted")


@router.post("/{invoice_id}/pay", response_model=PaymentResponse)
def pay(invoice_id: int, payload: PaymentRequest, db: Session = Depends(get_db)):
    outcome = pay_invoice(db, invoice_id, payload.amount)
    return PaymentResponse(
        message=outcome.message,
        paid_amount=outcome.paid,
        total=outcome.total,
        remaining=outcome.remaining,
        status=outcome.status,
    )

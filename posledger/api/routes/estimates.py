from fastapi import APIRouter, Depends, Response
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, undefer

from posledger.api.deps import get_settings
from posledger.core.config import Settings
from posledger.core.errors import Conflict, NotFound
from posledger.db.database import get_db
from posledger.models.billing import Estimate
from posledger.schemas.billing import (
    EstimateApproveRequest,
    EstimateCreate,
    EstimateOut,
    EstimateSaveResponse,
    EstimateSummaryOut,
)
from posledger.schemas.common import SuccessResponse
from posledger.services.numbering import next_estimate_number
from posledger.services.payments import quantize_money

router = APIRouter(prefix="/estimates", tags=["Estimates"])


def _get_estimate(db: Session, estimate_id: int) -> Estimate:
    estimate = db.get(Estimate, estimate_id)
    if not estimate:
        raise NotFound("Estimate not found")
    return estimate


@router.post("/save", response_model=EstimateSaveResponse)
def save_estimate(
    payload: EstimateCreate,
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    estimate_no = (payload.estimate_no or "").strip() or next_estimate_number(db, settings.estimate_number_start)
    if db.scalar(select(Estimate.id).where(Estimate.estimate_no == estimate_no)):
        raise Conflict("Estimate number already exists", estimateNo=estimate_no)

    estimate = Estimate(
        estimate_no=estimate_no,
        date=payload.date,
        bill_to=payload.bill_to,
        ship_to=payload.ship_to,
        subtotal=quantize_money(payload.subtotal),
        discount=quantize_money(payload.discount),
        total=quantize_money(payload.total),
        pdf_data=payload.pdf_data,
        approved=False,
        invoiced=False,
        user_id=payload.user_id,
        company_name=payload.company_name,
        company_addr1=payload.company_addr1,
        company_addr2=payload.company_addr2,
        phone=payload.phone,
        fax=payload.fax,
        email=payload.email,
        website=payload.website,
        items=payload.items,
    )
    db.add(estimate)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("Estimate number already exists", estimateNo=estimate_no) from exc
    db.refresh(estimate)
    return EstimateSaveResponse(estimate=EstimateOut.model_validate(estimate))


@router.get("", response_model=list[EstimateSummaryOut])
def list_estimates(db: Session = Depends(get_db)):
    return list(db.scalars(select(Estimate).order_by(Estimate.created_at.desc(), Estimate.id.desc())).all())


@router.get("/{estimate_id}", response_model=EstimateOut)
def read_estimate(estimate_id: int, db: Session = Depends(get_db)):
    return _get_estimate(db, estimate_id)


@router.get("/{estimate_id}/pdf")
def read_estimate_pdf(estimate_id: int, db: Session = Depends(get_db)):
    estimate = db.scalar(select(Estimate).options(undefer(Estimate.pdf_data)).where(Estimate.id == estimate_id))
    if not estimate or not estimate.pdf_data:
        raise NotFound("Not found")
    return Response(content=estimate.pdf_data, media_type="application/pdf")


@router.patch("/{estimate_id}/approve", response_model=SuccessResponse)
def approve_estimate(estimate_id: int, payload: EstimateApproveRequest, db: Session = Depends(get_db)):
    estimate = _get_estimate(db, estimate_id)
    estimate.approved = payload.approved
    if not payload.approved:
        estimate.invoiced = False
    db.commit()
    return SuccessResponse()


@router.patch("/{estimate_id}/invoiced", response_model=SuccessResponse)
def mark_estimate_invoiced(estimate_id: int, db: Session = Depends(get_db)):
    estimate = _get_estimate(db, estimate_id)
    estimate.approved = True
    estimate.invoiced = True
    db.commit()
    return SuccessResponse()


@router.delete("/{estimate_id}", response_model=SuccessResponse)
def delete_estimate(estimate_id: int, db: Session = Depends(get_db)):
    estimate = _get_estimate(db, estimate_id)
    db.delete(estimate)
    db.commit()
    return SuccessResponse()

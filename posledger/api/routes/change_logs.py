from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from posledger.api.deps import get_settings
from posledger.core.config import Settings
from posledger.db.database import get_db
from posledger.models.inventory import ChangeAction, ProductChangeLog
from posledger.schemas.inventory import ChangeLogOut

router = APIRouter(prefix="/product-change-logs", tags=["Change Logs"])


@router.get("", response_model=list[ChangeLogOut])
def list_change_logs(
    product_id: int | None = Query(default=None, alias="productId"),
    action: ChangeAction | None = None,
    limit: int | None = Query(default=None, ge=1, le=1000),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    query = select(ProductChangeLog).order_by(ProductChangeLog.created_at.desc(), ProductChangeLog.id.desc())
    if product_id is not None:
        query = query.where(ProductChangeLog.product_id == product_id)
    if action is not None:
        query = query.where(ProductChangeLog.action == action)
    return list(db.scalars(query.limit(limit or settings.change_log_page_size)).all())

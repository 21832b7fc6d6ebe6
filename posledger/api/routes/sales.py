import asyncio
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from posledger.api.deps import get_change_log_recorder, get_settings
from posledger.core.config import Settings
from posledger.db.database import get_db
from posledger.models.sales import Sale
from posledger.schemas.sales import SaleCreateRequest, SaleOut, SalePageOut
from posledger.services.change_log import ChangeLogRecorder
from posledger.services.events import EventPublisher, get_event_publisher
from posledger.services.sales import create_sale, get_sale

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sales", tags=["Sales"])
ws_router = APIRouter(tags=["Realtime"])


@router.post("", response_model=SaleOut, status_code=status.HTTP_201_CREATED)
def record_sale(
    payload: SaleCreateRequest,
    settings: Settings = Depends(get_settings),
    publisher: EventPublisher = Depends(get_event_publisher),
    recorder: ChangeLogRecorder = Depends(get_change_log_recorder),
    db: Session = Depends(get_db),
):
    return create_sale(db, payload, settings.sale_tax_rate, publisher, recorder)


@router.get("", response_model=SalePageOut)
def list_sales(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    page_size = min(limit or settings.default_page_size, settings.max_page_size)
    total = db.scalar(select(func.count()).select_from(Sale)) or 0
    sales = db.scalars(
        select(Sale).order_by(Sale.created_at.desc(), Sale.id.desc()).offset((page - 1) * page_size).limit(page_size)
    ).all()
    return SalePageOut(
        items=[SaleOut.model_validate(sale) for sale in sales],
        total=total,
        page=page,
        limit=page_size,
        total_pages=-(-total // page_size),
    )


@router.get("/{sale_id}", response_model=SaleOut)
def read_sale(sale_id: int, db: Session = Depends(get_db)):
    return get_sale(db, sale_id)


@ws_router.websocket("/ws/sales")
async def sales_feed(websocket: WebSocket):
    broadcaster = websocket.app.state.events
    queue = broadcaster.subscribe()
    await websocket.accept()
    receiver = asyncio.create_task(websocket.receive_text())
    try:
        while True:
            getter = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait({getter, receiver}, return_when=asyncio.FIRST_COMPLETED)
            if getter in done:
                await websocket.send_json(jsonable_encoder(getter.result(), by_alias=True))
            else:
                getter.cancel()
            if receiver in done:
                # Clients only listen; inbound frames are read and dropped.
                receiver.result()
                receiver = asyncio.create_task(websocket.receive_text())
    except WebSocketDisconnect:
        logger.debug("Sales feed subscriber disconnected")
    finally:
        receiver.cancel()
        broadcaster.unsubscribe(queue)

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from posledger.db.database import get_db
from posledger.models.inventory import Archive
from posledger.schemas.inventory import ArchiveCreate, ArchiveOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/archives", tags=["Archives"])


@router.post("", response_model=ArchiveOut, status_code=status.HTTP_201_CREATED)
def create_archive(payload: ArchiveCreate, db: Session = Depends(get_db)):
    archive = Archive(entity=payload.entity.strip(), entity_id=payload.entity_id, data=payload.data)
    db.add(archive)
    db.commit()
    db.refresh(archive)
    logger.info("Archived %s %s", archive.entity, archive.entity_id)
    return archive


@router.get("", response_model=list[ArchiveOut])
def list_archives(entity: str | None = None, db: Session = Depends(get_db)):
    query = select(Archive).order_by(Archive.created_at.desc(), Archive.id.desc())
    if entity:
        query = query.where(Archive.entity == entity.strip())
    return list(db.scalars(query).all())

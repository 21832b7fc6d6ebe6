from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.orm import Session

from posledger.core.config import Settings
from posledger.core.security import decode_token
from posledger.db.database import get_db
from posledger.models.user import User
from posledger.services.change_log import ChangeLogRecorder

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_change_log_recorder(db: Session = Depends(get_db)) -> ChangeLogRecorder:
    return ChangeLogRecorder(db)


def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception

    try:
        payload = decode_token(token, settings)
    except JWTError:
        raise credentials_exception from None
    subject = payload.get("sub")
    if subject is None or payload.get("type") != "access":
        raise credentials_exception

    try:
        user_id = int(subject)
    except (TypeError, ValueError):
        raise credentials_exception from None

    user = db.scalar(select(User).where(User.id == user_id))
    if not user:
        raise credentials_exception
    return user

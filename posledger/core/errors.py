"""Domain error taxonomy and the FastAPI handlers that render it.

Services raise these exceptions; the handlers registered by
``register_exception_handlers`` turn them into JSON responses with a
``detail`` key, matching what ``HTTPException`` produces.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DomainError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str, **extra: Any) -> None:
        super().__init__(detail)
        self.detail = detail
        self.extra = extra

    def to_body(self) -> dict[str, Any]:
        return {"detail": self.detail, **self.extra}


class ValidationFailed(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidAmount(ValidationFailed):
    def __init__(self, detail: str = "Invalid payment amount") -> None:
        super().__init__(detail)


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(DomainError):
    status_code = status.HTTP_409_CONFLICT


class InsufficientStock(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, sku: str, available: int, requested: int) -> None:
        super().__init__(
            f"Insufficient stock for {sku}: available {available}, requested {requested}",
            sku=sku,
            available=available,
            requested=requested,
        )
        self.sku = sku
        self.available = available
        self.requested = requested


async def _domain_error_handler(_: Request, exc: DomainError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, _domain_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

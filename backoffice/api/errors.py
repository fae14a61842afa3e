from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from backoffice.domain.errors import (
    CustomerNotFound,
    FulfillmentError,
    InsufficientStock,
    InvalidTransition,
    OrderNotFound,
    PersistenceConflict,
    VariantNotFound,
)

STATUS_CODES: dict[type[FulfillmentError], int] = {
    OrderNotFound: 404,
    VariantNotFound: 404,
    CustomerNotFound: 404,
    InsufficientStock: 409,
    InvalidTransition: 409,
    PersistenceConflict: 409,
}


def status_code_for(exc: FulfillmentError) -> int:
    for error_type, status_code in STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return 400


async def fulfillment_error_handler(_: Request, exc: FulfillmentError):
    return JSONResponse(
        status_code=status_code_for(exc),
        content={
            "detail": str(exc),
            "error": exc.code,
            **exc.details(),
        },
    )

"""
Mapping of settlement errors to HTTP responses.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from coachpay.engine.errors import (
    BatchAlreadyExists,
    ConfigurationMissing,
    DuplicateCapture,
    IneligibleCoach,
    InvalidSplitConfig,
    InvalidSplitInput,
    LeadClosed,
    RecordNotFound,
    SettlementError,
)

logger = logging.getLogger(__name__)

STATUS_CODES = {
    RecordNotFound: status.HTTP_404_NOT_FOUND,
    BatchAlreadyExists: status.HTTP_409_CONFLICT,
    DuplicateCapture: status.HTTP_409_CONFLICT,
    LeadClosed: status.HTTP_409_CONFLICT,
    IneligibleCoach: status.HTTP_409_CONFLICT,
    InvalidSplitConfig: status.HTTP_422_UNPROCESSABLE_CONTENT,
    InvalidSplitInput: status.HTTP_422_UNPROCESSABLE_CONTENT,
    ConfigurationMissing: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(error: SettlementError) -> int:
    for error_cls in type(error).__mro__:
        if error_cls in STATUS_CODES:
            return STATUS_CODES[error_cls]
    return status.HTTP_400_BAD_REQUEST


async def settlement_error_handler(request: Request, exc: SettlementError) -> JSONResponse:
    code = status_for(exc)
    logger.warning(f"{request.method} {request.url.path} -> {code}: {exc.message}")
    return JSONResponse(
        status_code=code,
        content={
            "error": type(exc).__name__,
            "detail": exc.message,
            "context": exc.details,
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SettlementError, settlement_error_handler)

from __future__ import annotations

import logging
from typing import Dict, Type

from fastapi import HTTPException

from farmtrace.core.errors import (
    EmptyDatasetError,
    ExternalServiceError,
    FarmtraceError,
    IntegrityViolationError,
    InvalidInputError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: Dict[Type[FarmtraceError], int] = {
    NotFoundError: 404,
    EmptyDatasetError: 404,
    InvalidInputError: 400,
    IntegrityViolationError: 409,
    ExternalServiceError: 502,
}


def to_http(exc: FarmtraceError) -> HTTPException:
    status = next(
        (code for err_type, code in STATUS_BY_ERROR.items() if isinstance(exc, err_type)),
        500,
    )
    if status >= 500:
        logger.error("[api] %s: %s", exc.code, exc.message, extra=exc.context)
    return HTTPException(status_code=status, detail=exc.to_detail())

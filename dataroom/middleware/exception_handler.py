"""Turns DataroomException into the JSON error envelope."""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from ..exceptions import DataroomException, RateLimitedError

logger = logging.getLogger(__name__)


async def dataroom_exception_handler(request: Request, exc: DataroomException) -> JSONResponse:
    """Log and render ``exc.to_dict()`` with the exception's status code.

    Client errors log at WARNING, server errors at ERROR. Rate-limit
    rejections carry a ``Retry-After`` header.
    """
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        f"DataroomException: {exc.error_code.value}",
        extra={
            "error_code": exc.error_code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
            "status_code": exc.status_code
        }
    )

    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.details.get("retry_after", 60))}

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=headers,
    )

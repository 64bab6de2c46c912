"""
Application error type and the FastAPI handlers that serialize it.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class FeedError(Exception):
    """An error carrying an HTTP status code and optional structured data."""

    def __init__(
        self, message: str, status_code: int = 500, data: Optional[Any] = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.data = data

    @property
    def extensions(self) -> dict:
        # graphql-core copies `extensions` from the original error onto the
        # GraphQL error it reports.
        return {"code": self.status_code, "data": self.data}


def _error_body(message: str, data: Any = None) -> dict:
    return {"message": message, "data": data}


async def handle_feed_error(request: Request, exc: FeedError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request %s %s failed", request.method, request.url.path, exc_info=exc
        )
    else:
        logger.info(
            "Request %s %s rejected (%s): %s",
            request.method,
            request.url.path,
            exc.status_code,
            exc.message,
        )
    return JSONResponse(
        status_code=exc.status_code, content=_error_body(exc.message, exc.data)
    )


async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    data = [
        {
            "message": err.get("msg", "Invalid value."),
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422, content=_error_body("Validation failed.", data)
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(status_code=500, content=_error_body("An error occurred."))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FeedError, handle_feed_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

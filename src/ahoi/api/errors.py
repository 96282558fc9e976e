"""Map exceptions to the ``{code, message, data}`` error body."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ahoi.exceptions import AhoiError, ValidationError

logger = logging.getLogger(__name__)


def error_response(error: AhoiError) -> JSONResponse:
    return JSONResponse(status_code=error.status, content=error.to_dict())


async def handle_ahoi_error(request: Request, exc: AhoiError) -> JSONResponse:
    if exc.status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    else:
        logger.debug(f"{request.method} {request.url.path} -> {exc.status} {exc.code}")
    return error_response(exc)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    field_errors = {}
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))
        field_errors[location or "request"] = error.get("msg", "Invalid value.")
    return error_response(ValidationError("Invalid request parameters.", field_errors))


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "code": "internal_error",
            "message": "An unexpected error occurred.",
            "data": {"status": 500},
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AhoiError, handle_ahoi_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_request_validation)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected)

"""
Exception → response mapping.

    {"error": "validation", "message": "...", "fields": {"shipping.postal_code": "..."}}

Anything that is not a ShopError is logged and answered with a generic 500.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from candlecart._errors import ErrorKind, ShopError, ValidationError

logger = logging.getLogger(__name__)


def error_body(e: ShopError) -> dict[str, object]:
    body: dict[str, object] = {"error": e.kind.value, "message": e.message}
    if isinstance(e, ValidationError) and e.fields:
        body["fields"] = e.fields
    return body


async def shop_error(request: Request, e: Exception) -> JSONResponse:
    if not isinstance(e, ShopError):
        return await unexpected_error(request, e)
    if e.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, e)
    return JSONResponse(status_code=e.status_code, content=error_body(e))


async def request_error(request: Request, e: Exception) -> JSONResponse:
    if not isinstance(e, RequestValidationError):
        return await unexpected_error(request, e)
    fields = {
        ".".join(str(part) for part in err["loc"][1:]) or "body": err["msg"]
        for err in e.errors()
    }
    return JSONResponse(
        status_code=400,
        content={"error": ErrorKind.VALIDATION.value, "message": "invalid request", "fields": fields},
    )


async def unexpected_error(request: Request, e: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "internal", "message": "Something went wrong. Please try again."},
    )


def install(app: FastAPI) -> None:
    app.add_exception_handler(ShopError, shop_error)
    app.add_exception_handler(RequestValidationError, request_error)
    app.add_exception_handler(Exception, unexpected_error)


__all__ = ("error_body", "shop_error", "request_error", "unexpected_error", "install")

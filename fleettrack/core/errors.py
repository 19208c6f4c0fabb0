import logging
import traceback
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from fleettrack.core import config

logger = logging.getLogger(__name__)


class FleetError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(FleetError):
    status_code = 404


class DuplicateKeyError(FleetError):
    """A unique index (tracking number, plate, license, email) rejected a write."""

    status_code = 400

    def __init__(self, field: str):
        super().__init__(f"Duplicate {field.replace('_', ' ')}")
        self.field = field


class ValidationFailure(FleetError):
    status_code = 422

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


def error_body(message: str, exc: Optional[BaseException] = None, **extra) -> dict:
    body = {"success": False, "error": message, **extra}
    if exc is not None and not config.IS_PRODUCTION:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


async def fleet_error_handler(request: Request, exc: FleetError):
    extra = {}
    if getattr(exc, "field", None):
        extra["field"] = exc.field
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, **extra))


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    extra = {"path": request.url.path} if exc.status_code == 404 and exc.detail == "Not Found" else {}
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), **extra),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content=error_body("Validation failed", details=jsonable_encoder(exc.errors())),
    )


async def store_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Store failure on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body("Database error", exc))


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body("Internal server error", exc))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FleetError, fleet_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(PyMongoError, store_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

"""
Error taxonomy and the JSON error envelope.

Every failure leaves the API as {"success": false, "error": <message>} with
the status code of its class.
"""
import logging
from typing import Optional

from bson.errors import InvalidId
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    status_code = 500
    default_message = "Server Error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(status_code=self.status_code, detail=message or self.default_message)


class InvalidArgument(ApiError):
    status_code = 400
    default_message = "Invalid argument"


class Unauthenticated(ApiError):
    status_code = 401
    default_message = "Not authorized, no token"


class Forbidden(ApiError):
    status_code = 403
    default_message = "Insufficient permissions"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class Conflict(ApiError):
    status_code = 409
    default_message = "Duplicate value"


class Internal(ApiError):
    status_code = 500
    default_message = "Server Error"


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _validation_message(exc: RequestValidationError) -> str:
    messages = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        msg = err.get("msg", "Invalid value")
        messages.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return ". ".join(messages) or "Invalid request"


def install_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return error_response(400, _validation_message(exc))

    @app.exception_handler(DuplicateKeyError)
    async def duplicate_key(request: Request, exc: DuplicateKeyError):
        key_value = (exc.details or {}).get("keyValue") or {}
        if key_value:
            field = next(iter(key_value))
            message = f'Duplicate field value: {field} with value "{key_value[field]}" already exists'
        else:
            message = "Duplicate field value"
        return error_response(Conflict.status_code, message)

    @app.exception_handler(InvalidId)
    async def invalid_id(request: Request, exc: InvalidId):
        return error_response(InvalidArgument.status_code, "Invalid identifier")

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, "Server Error")

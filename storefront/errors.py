# errors.py
"""
Application-wide exception handlers.

Route handlers raise `HTTPException` for the errors they can name (404, 409,
...). Everything else that escapes a handler is mapped here so that clients
always receive a JSON body with a `detail` message and the process never
crashes on a store failure.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

log = logging.getLogger(__name__)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies, paths and query strings are bad requests."""
    # Rejected input is not echoed back: it may be a password or a non-finite float.
    errors = [{key: value for key, value in error.items() if key != "input"} for error in exc.errors()]
    log.info(f"Rejected {request.method} {request.url.path}: {len(errors)} validation error(s)")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request", "errors": jsonable_encoder(errors)},
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """A unique or foreign-key constraint tripped inside the database."""
    log.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "The request conflicts with existing data."},
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    log.error(f"Database failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "A database error occurred. Please try again later."},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    # IntegrityError is a SQLAlchemyError; Starlette resolves the most specific class first.
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

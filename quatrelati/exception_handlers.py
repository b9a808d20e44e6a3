"""
Exception handlers for the Quatrelati API.

Every error response keeps the ``{"detail": ...}`` shape; 4xx/5xx responses
are also written to the error_logs table so superadmins can inspect them
from the logs screen.
"""

import logging
import traceback
import uuid
from typing import Any, Dict, List

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from quatrelati.utils.error_log import error_type_for_status, log_error

logger = logging.getLogger(__name__)

ROUTE_NOT_FOUND = "Rota não encontrada"
INVALID_DATA = "Dados inválidos"
INTERNAL_ERROR = "Erro interno do servidor"


def format_validation_errors(errors) -> List[Dict[str, Any]]:
    """Turn pydantic errors into [{field, message}]"""
    formatted = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "header")]
        formatted.append({
            "field": ".".join(loc) or None,
            "message": error.get("msg", ""),
        })
    return formatted


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Starlette's router raises a bare 404 for unknown paths
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        logger.info(f"{request.method} {request.url.path} -> 404: unknown route")
        log_error(request, error_type="not_found", error_message=ROUTE_NOT_FOUND)
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": ROUTE_NOT_FOUND, "path": request.url.path},
        )

    if exc.status_code >= 400:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.detail}")
        log_error(
            request,
            error_type=error_type_for_status(exc.status_code),
            error_message=str(exc.detail),
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = format_validation_errors(exc.errors())
    body = exc.body if isinstance(exc.body, dict) else None

    logger.info(f"Validation failed on {request.method} {request.url.path}: {errors}")
    log_error(
        request,
        error_type="validation",
        error_message=INVALID_DATA,
        request_body=jsonable_encoder(body) if body else None,
        validation_errors=errors,
    )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": INVALID_DATA, "errors": errors},
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all for unhandled exceptions.

    The traceback is logged and stored; the client only gets an error id
    to quote when reporting the problem.
    """
    error_id = uuid.uuid4().hex[:12]
    stack_trace = traceback.format_exc()

    logger.error(
        f"Unhandled exception [{error_id}] in {request.method} {request.url.path}: {str(exc)}",
        exc_info=True,
        extra={
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "error_type": type(exc).__name__,
        }
    )
    log_error(
        request,
        error_type="uncaught_error",
        error_message=f"[{error_id}] {type(exc).__name__}: {str(exc)}",
        stack_trace=stack_trace,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": INTERNAL_ERROR, "error_id": error_id},
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the handlers on the application"""
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered")

import logging
from typing import Any, Dict, List, Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError

from quatrelati.database import SessionLocal
from quatrelati.models.logs import ErrorLog
from quatrelati.utils.ip_utils import get_real_ip

logger = logging.getLogger(__name__)

SENSITIVE_FIELDS = (
    "senha", "password", "token", "secret", "api_key", "apiKey",
    "new_password", "current_password", "refresh_token",
)

REDACTED = "[REDACTED]"


def sanitize_body(body: Any) -> Any:
    """Replace sensitive fields of a request body before it is stored"""
    if not isinstance(body, dict):
        return body
    sanitized = dict(body)
    for field in SENSITIVE_FIELDS:
        if sanitized.get(field):
            sanitized[field] = REDACTED
    return sanitized


def error_type_for_status(status_code: int) -> str:
    if status_code == 400:
        return "validation"
    if status_code == 401:
        return "authentication"
    if status_code == 403:
        return "authorization"
    if status_code == 404:
        return "not_found"
    if status_code == 429:
        return "rate_limit"
    if status_code >= 500:
        return "server_error"
    return "unknown"


def log_error(
    request: Request,
    error_type: str,
    error_message: str,
    request_body: Any = None,
    validation_errors: Optional[List[Dict[str, Any]]] = None,
    stack_trace: Optional[str] = None,
) -> None:
    """
    Persist an error in error_logs.

    Runs on its own session: the request session may already be closed or
    in a failed transaction when the error surfaces.
    """
    user = getattr(request.state, "user_info", None) or {}

    db = SessionLocal()
    try:
        db.add(ErrorLog(
            user_id=user.get("id"),
            user_nome=user.get("nome"),
            user_nivel=user.get("nivel"),
            error_type=error_type,
            error_message=str(error_message)[:2000],
            endpoint=str(request.url.path)[:500],
            method=request.method,
            request_body=sanitize_body(request_body) if request.method != "GET" else None,
            validation_errors=validation_errors,
            stack_trace=stack_trace,
            ip_address=get_real_ip(request),
            user_agent=request.headers.get("user-agent"),
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not store error log: {str(e)}")
    finally:
        db.close()

import logging
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quatrelati.models.configuracoes import Configuracao
from quatrelati.models.logs import ActivityLog
from quatrelati.models.usuarios import Usuario
from quatrelati.utils.error_log import sanitize_body
from quatrelati.utils.ip_utils import get_real_ip

logger = logging.getLogger(__name__)


def should_log_user(db: Session, user: Optional[Usuario]) -> bool:
    """Superadmin actions are skipped when log_superadmin is 'false'"""
    if user is None or user.nivel != "superadmin":
        return True
    config = db.query(Configuracao).filter(Configuracao.chave == "log_superadmin").first()
    return not (config and config.valor == "false")


def log_activity(
    db: Session,
    user: Optional[Usuario],
    action: str,
    entity: Optional[str] = None,
    entity_id: Optional[int] = None,
    entity_name: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
    body: Any = None,
) -> None:
    """
    Record a user action in activity_logs.

    Called once the main operation is committed; a failure here is logged
    and rolled back so the response is not affected.
    """
    try:
        if not should_log_user(db, user):
            return

        payload = dict(details or {})
        if request is not None:
            payload.setdefault("method", request.method)
            payload.setdefault("path", request.url.path)
        if body is not None:
            payload["body"] = sanitize_body(body)

        db.add(ActivityLog(
            user_id=user.id if user else None,
            user_nome=user.nome if user else None,
            user_nivel=user.nivel if user else None,
            action=action,
            entity=entity,
            entity_id=entity_id,
            entity_name=str(entity_name)[:255] if entity_name is not None else None,
            details=payload or None,
            ip_address=get_real_ip(request) if request is not None else None,
            user_agent=request.headers.get("user-agent") if request is not None else None,
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not store activity log '{action}' on {entity}: {str(e)}")

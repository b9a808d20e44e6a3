import math
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from quatrelati.database import get_db
from quatrelati.dependencies import check_superadmin_role
from quatrelati.models.logs import ActivityLog, ErrorLog
from quatrelati.models.usuarios import Usuario
from quatrelati.schemas.logs import ActivityLogResponse, ErrorLogResponse

router = APIRouter()


def paginate(query, order_column, page: int, limit: int):
    total = query.count()
    rows = query.order_by(order_column.desc()).offset((page - 1) * limit).limit(limit).all()
    return rows, {
        "total": total,
        "page": page,
        "size": limit,
        "pages": math.ceil(total / limit) if total else 0
    }


def filter_dates(query, column, data_inicio: Optional[date], data_fim: Optional[date]):
    if data_inicio:
        query = query.filter(column >= datetime.combine(data_inicio, datetime.min.time()))
    if data_fim:
        # data_fim covers the whole day
        query = query.filter(column < datetime.combine(data_fim + timedelta(days=1), datetime.min.time()))
    return query


@router.get("/")
async def list_logs(
    user_id: Optional[int] = None,
    action: Optional[str] = None,
    entity: Optional[str] = None,
    data_inicio: Optional[date] = None,
    data_fim: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    current_user: Usuario = Depends(check_superadmin_role),
    db: Session = Depends(get_db)
):
    """
    List activity logs, newest first
    """
    query = db.query(ActivityLog)

    if user_id:
        query = query.filter(ActivityLog.user_id == user_id)
    if action:
        query = query.filter(ActivityLog.action == action)
    if entity:
        query = query.filter(ActivityLog.entity == entity)
    query = filter_dates(query, ActivityLog.created_at, data_inicio, data_fim)

    logs, pagination = paginate(query, ActivityLog.created_at, page, limit)
    return {"logs": [ActivityLogResponse.model_validate(log) for log in logs], **pagination}


@router.get("/usuarios")
async def list_log_usuarios(
    current_user: Usuario = Depends(check_superadmin_role),
    db: Session = Depends(get_db)
):
    """
    Users that appear in the logs, for the filter
    """
    rows = db.query(ActivityLog.user_id, ActivityLog.user_nome, ActivityLog.user_nivel) \
        .filter(ActivityLog.user_id.isnot(None)) \
        .distinct().order_by(ActivityLog.user_nome.asc()).all()

    return {
        "usuarios": [
            {"user_id": row[0], "user_nome": row[1], "user_nivel": row[2]}
            for row in rows
        ]
    }


@router.get("/acoes")
async def list_log_acoes(
    current_user: Usuario = Depends(check_superadmin_role),
    db: Session = Depends(get_db)
):
    rows = db.query(ActivityLog.action).distinct().order_by(ActivityLog.action.asc()).all()
    return {"acoes": [row[0] for row in rows]}


@router.get("/entidades")
async def list_log_entidades(
    current_user: Usuario = Depends(check_superadmin_role),
    db: Session = Depends(get_db)
):
    rows = db.query(ActivityLog.entity).filter(ActivityLog.entity.isnot(None)) \
        .distinct().order_by(ActivityLog.entity.asc()).all()
    return {"entidades": [row[0] for row in rows]}


@router.get("/estatisticas")
async def get_log_estatisticas(
    dias: int = Query(30, ge=1, le=365),
    current_user: Usuario = Depends(check_superadmin_role),
    db: Session = Depends(get_db)
):
    """
    Activity counts over the last days
    """
    desde = datetime.utcnow() - timedelta(days=dias)
    recentes = db.query(ActivityLog).filter(ActivityLog.created_at >= desde)

    total = recentes.count()

    total_col = func.count(ActivityLog.id)
    por_usuario = recentes.with_entities(ActivityLog.user_nome, total_col) \
        .group_by(ActivityLog.user_nome).order_by(total_col.desc()).limit(10).all()
    por_acao = recentes.with_entities(ActivityLog.action, total_col) \
        .group_by(ActivityLog.action).order_by(total_col.desc()).all()

    dia = func.date(ActivityLog.created_at)
    por_dia = recentes.with_entities(dia, total_col).group_by(dia).order_by(dia.desc()).all()

    return {
        "total": total,
        "por_usuario": [{"user_nome": row[0], "total": int(row[1])} for row in por_usuario],
        "por_acao": [{"action": row[0], "total": int(row[1])} for row in por_acao],
        "por_dia": [{"data": str(row[0]), "total": int(row[1])} for row in por_dia],
    }


@router.get("/erros")
async def list_error_logs(
    error_type: Optional[str] = None,
    user_id: Optional[int] = None,
    data_inicio: Optional[date] = None,
    data_fim: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    current_user: Usuario = Depends(check_superadmin_role),
    db: Session = Depends(get_db)
):
    """
    List stored request errors, newest first
    """
    query = db.query(ErrorLog)

    if error_type:
        query = query.filter(ErrorLog.error_type == error_type)
    if user_id:
        query = query.filter(ErrorLog.user_id == user_id)
    query = filter_dates(query, ErrorLog.created_at, data_inicio, data_fim)

    erros, pagination = paginate(query, ErrorLog.created_at, page, limit)
    return {"erros": [ErrorLogResponse.model_validate(e) for e in erros], **pagination}

import logging
import math
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quatrelati.database import get_db
from quatrelati.dependencies import get_current_user, check_superadmin_role, verify_api_key
from quatrelati.models.clientes import Cliente
from quatrelati.models.contatos import ContatoSite
from quatrelati.models.logs import ActivityLog
from quatrelati.models.usuarios import Usuario
from quatrelati.rate_limit import contatos_limiter
from quatrelati.schemas.contatos import (
    ContatoCreate, ContatoStatusUpdate, ContatoResponse, ContatoConverter, StatusContato
)
from quatrelati.utils.activity_log import log_activity
from quatrelati.utils.email import EmailError, send_reply_email

logger = logging.getLogger(__name__)

router = APIRouter()

CONTATO_NOT_FOUND = "Contato não encontrado"

MAX_ATTACHMENTS = 5
MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024


def get_contato_or_404(db: Session, contato_id: int) -> ContatoSite:
    contato = db.query(ContatoSite).filter(ContatoSite.id == contato_id).first()
    if not contato:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=CONTATO_NOT_FOUND
        )
    return contato


def count_novos(db: Session) -> int:
    """Unread landing-page contacts, shown as a menu badge"""
    return db.query(ContatoSite).filter(
        ContatoSite.status == "novo",
        ContatoSite.tipo == "contato"
    ).count()


@router.post(
    "/",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(contatos_limiter), Depends(verify_api_key)]
)
async def receive_contato(
    contato_data: ContatoCreate,
    db: Session = Depends(get_db)
):
    """
    Store a lead sent by the landing page (API key, no JWT)
    """
    contato = ContatoSite(
        nome=contato_data.nome,
        empresa=contato_data.empresa,
        email=contato_data.email,
        telefone=contato_data.telefone,
        mensagem=contato_data.mensagem,
        tipo=contato_data.tipo or "contato",
        token=contato_data.token,
        status=contato_data.status or "novo",
        recebido_em=datetime.utcnow()
    )
    db.add(contato)
    db.commit()
    db.refresh(contato)

    logger.info(f"[CONTATOS] New contato from {contato.nome} ({contato.empresa or 'sem empresa'}), id {contato.id}")
    return {"success": True, "id": contato.id, "recebido_em": contato.recebido_em}


@router.get("/")
async def list_contatos(
    status_filter: Optional[StatusContato] = Query(None, alias="status"),
    tipo: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    List contatos, newest first, with the count of new ones
    """
    query = db.query(ContatoSite)

    if status_filter:
        query = query.filter(ContatoSite.status == status_filter)
    if tipo:
        query = query.filter(ContatoSite.tipo == tipo)
    if search:
        query = query.filter(
            or_(
                ContatoSite.nome.ilike(f"%{search}%"),
                ContatoSite.empresa.ilike(f"%{search}%"),
                ContatoSite.email.ilike(f"%{search}%")
            )
        )

    total = query.count()
    contatos = query.order_by(ContatoSite.recebido_em.desc(), ContatoSite.id.desc()) \
        .offset((page - 1) * limit).limit(limit).all()

    return {
        "contatos": [ContatoResponse.model_validate(c) for c in contatos],
        "total": total,
        "novos": count_novos(db),
        "page": page,
        "size": limit,
        "pages": math.ceil(total / limit) if total else 0
    }


@router.get("/novos/count")
async def get_novos_count(
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"count": count_novos(db)}


@router.get("/{contato_id}")
async def get_contato(
    contato_id: int,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Get contato by ID
    """
    return {"contato": ContatoResponse.model_validate(get_contato_or_404(db, contato_id))}


@router.patch("/{contato_id}/status")
async def update_contato_status(
    request: Request,
    contato_id: int,
    status_data: ContatoStatusUpdate,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Move a contato through the sales funnel
    """
    contato = get_contato_or_404(db, contato_id)

    contato.status = status_data.status
    if status_data.observacoes_internas:
        contato.observacoes_internas = status_data.observacoes_internas
    contato.atendido_por = current_user.id
    contato.atualizado_em = datetime.utcnow()

    db.commit()
    db.refresh(contato)

    logger.info(f"[CONTATOS] Contato {contato.id} set to '{contato.status}' by user {current_user.id}")
    log_activity(
        db, current_user, "atualizar", "contato", contato.id, contato.nome,
        request=request, body=status_data.model_dump()
    )
    return {
        "message": "Contato atualizado com sucesso",
        "contato": ContatoResponse.model_validate(contato)
    }


@router.get("/{contato_id}/historico")
async def get_contato_historico(
    contato_id: int,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Activity recorded for a contato
    """
    logs = db.query(ActivityLog).filter(
        ActivityLog.entity == "contato",
        ActivityLog.entity_id == contato_id
    ).order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(50).all()

    return {
        "historico": [
            {
                "id": log.id,
                "usuario_nome": log.user_nome,
                "acao": log.action,
                "detalhes": log.details,
                "created_at": log.created_at,
            }
            for log in logs
        ]
    }


@router.post("/{contato_id}/email")
async def send_contato_email(
    request: Request,
    contato_id: int,
    assunto: str = Form(..., min_length=1),
    corpo: str = Form(..., min_length=1),
    arquivos: Optional[List[UploadFile]] = File(None),
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Answer a contato by email, with up to five attachments
    """
    contato = get_contato_or_404(db, contato_id)
    if not contato.email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Este contato não possui email cadastrado"
        )

    arquivos = arquivos or []

    if len(arquivos) > MAX_ATTACHMENTS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Máximo de {MAX_ATTACHMENTS} anexos por email"
        )

    attachments = []
    for arquivo in arquivos:
        content = await arquivo.read()
        if len(content) > MAX_ATTACHMENT_BYTES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Anexo {arquivo.filename} excede 10MB"
            )
        attachments.append((arquivo.filename or "anexo", arquivo.content_type or "application/octet-stream", content))

    try:
        send_reply_email(contato.email, contato.nome, assunto, corpo, current_user.nome, attachments)
    except EmailError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erro interno ao enviar email"
        )

    logger.info(f"[CONTATOS] Email sent to {contato.email} by user {current_user.id} ({len(attachments)} attachment(s))")
    details = {"assunto": assunto, "corpo": corpo}
    if attachments:
        details["num_anexos"] = len(attachments)
    log_activity(
        db, current_user, "email_enviado", "contato", contato.id, contato.nome,
        details=details, request=request
    )
    return {"success": True}


@router.post("/{contato_id}/converter", status_code=status.HTTP_201_CREATED)
async def convert_contato(
    request: Request,
    contato_id: int,
    cliente_data: ContatoConverter,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Turn a contato into a cliente; both rows change in one transaction
    """
    contato = db.query(ContatoSite).filter(ContatoSite.id == contato_id).with_for_update().first()
    if not contato:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=CONTATO_NOT_FOUND
        )

    if contato.status == "convertido":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Contato já foi convertido em cliente"
        )

    cliente = Cliente(
        **cliente_data.model_dump(),
        created_by=current_user.id
    )
    db.add(cliente)

    try:
        db.flush()
        contato.status = "convertido"
        contato.cliente_id = cliente.id
        contato.atendido_por = current_user.id
        contato.atualizado_em = datetime.utcnow()
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"[CONTATOS] Conversion of contato {contato_id} rejected: {str(e.orig)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="CNPJ/CPF já cadastrado"
        )

    logger.info(f"[CONTATOS] Contato {contato_id} converted into cliente {cliente.id}")
    log_activity(
        db, current_user, "converter", "contato", contato_id, cliente.nome,
        details={"cliente_id": cliente.id}, request=request
    )
    return {"success": True, "cliente_id": cliente.id, "cliente_nome": cliente.nome}


@router.delete("/{contato_id}")
async def delete_contato(
    request: Request,
    contato_id: int,
    current_user: Usuario = Depends(check_superadmin_role),
    db: Session = Depends(get_db)
):
    """
    Permanently delete a contato
    """
    contato = get_contato_or_404(db, contato_id)
    nome = contato.nome

    db.delete(contato)
    db.commit()

    logger.info(f"[CONTATOS] Contato {contato_id} ({nome}) deleted by superadmin {current_user.id}")
    log_activity(db, current_user, "apagar", "contato", contato_id, nome, request=request)
    return {"success": True}

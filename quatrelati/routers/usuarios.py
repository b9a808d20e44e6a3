import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from quatrelati.config import settings
from quatrelati.database import get_db
from quatrelati.dependencies import check_admin_role
from quatrelati.models.auth import MagicLink, RefreshToken
from quatrelati.models.pedidos import Pedido
from quatrelati.models.usuarios import Usuario
from quatrelati.schemas.usuarios import UsuarioCreate, UsuarioUpdate, UsuarioInvite, UsuarioResponse
from quatrelati.utils.activity_log import log_activity
from quatrelati.utils.auth import get_password_hash, generate_magic_token, generate_random_password
from quatrelati.utils.email import EmailError, send_invite_email

logger = logging.getLogger(__name__)

router = APIRouter()

USUARIO_NOT_FOUND = "Usuário não encontrado"


def get_usuario_or_404(db: Session, usuario_id: int) -> Usuario:
    usuario = db.query(Usuario).filter(Usuario.id == usuario_id).first()
    if not usuario:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=USUARIO_NOT_FOUND
        )
    return usuario


def ensure_email_available(db: Session, email: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Usuario).filter(Usuario.email == email)
    if exclude_id is not None:
        query = query.filter(Usuario.id != exclude_id)
    if query.first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email já cadastrado"
        )


def send_invite(db: Session, usuario: Usuario) -> str:
    """
    Store a 48h invite magic link and email it

    Returns:
        str: the invite URL
    """
    token = generate_magic_token()
    db.add(MagicLink(
        user_id=usuario.id,
        token=token,
        type="invite",
        expires_at=datetime.utcnow() + timedelta(hours=settings.INVITE_EXPIRE_HOURS)
    ))
    db.commit()

    invite_link = f"{settings.FRONTEND_URL}/magic-link?token={token}"
    try:
        send_invite_email(usuario.email, usuario.nome, invite_link)
    except EmailError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erro ao enviar convite"
        )
    logger.info(f"[INVITE] Invite sent to {usuario.email}")
    return invite_link


@router.get("/")
async def list_usuarios(
    ativo: Optional[bool] = None,
    current_user: Usuario = Depends(check_admin_role),
    db: Session = Depends(get_db)
):
    """
    List users ordered by name
    """
    query = db.query(Usuario)
    if ativo is not None:
        query = query.filter(Usuario.ativo == ativo)

    usuarios = query.order_by(Usuario.nome).all()
    return {"usuarios": [UsuarioResponse.model_validate(u) for u in usuarios]}


@router.post("/invite", status_code=status.HTTP_201_CREATED)
async def invite_new_usuario(
    request: Request,
    invite_data: UsuarioInvite,
    current_user: Usuario = Depends(check_admin_role),
    db: Session = Depends(get_db)
):
    """
    Create a user with a random password and email an invite
    """
    email = invite_data.email.lower()
    ensure_email_available(db, email)

    if invite_data.nivel == "superadmin" and current_user.nivel != "superadmin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Apenas superadmin pode criar outro superadmin"
        )

    usuario = Usuario(
        nome=invite_data.nome.strip(),
        email=email,
        telefone=invite_data.telefone,
        nivel=invite_data.nivel,
        senha_hash=get_password_hash(generate_random_password())
    )
    db.add(usuario)
    db.commit()
    db.refresh(usuario)

    invite_link = send_invite(db, usuario)
    log_activity(
        db, current_user, "enviar_convite", "usuario", usuario.id, usuario.nome,
        request=request, body=invite_data.model_dump()
    )

    response = {
        "message": "Usuário criado e convite enviado com sucesso",
        "usuario": UsuarioResponse.model_validate(usuario)
    }
    if not settings.is_production:
        response["dev_link"] = invite_link
    return response


@router.get("/{usuario_id}")
async def get_usuario(
    usuario_id: int,
    current_user: Usuario = Depends(check_admin_role),
    db: Session = Depends(get_db)
):
    """
    Get user by ID
    """
    return {"usuario": UsuarioResponse.model_validate(get_usuario_or_404(db, usuario_id))}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_usuario(
    request: Request,
    usuario_data: UsuarioCreate,
    current_user: Usuario = Depends(check_admin_role),
    db: Session = Depends(get_db)
):
    """
    Create a new user
    """
    email = usuario_data.email.lower()
    ensure_email_available(db, email)

    if usuario_data.nivel == "superadmin" and current_user.nivel != "superadmin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Apenas superadmin pode criar outro superadmin"
        )

    usuario = Usuario(
        nome=usuario_data.nome.strip(),
        email=email,
        telefone=usuario_data.telefone,
        nivel=usuario_data.nivel,
        pode_visualizar_todos=usuario_data.pode_visualizar_todos,
        senha_hash=get_password_hash(usuario_data.senha)
    )
    db.add(usuario)
    db.commit()
    db.refresh(usuario)

    log_activity(
        db, current_user, "criar", "usuario", usuario.id, usuario.nome,
        request=request, body=usuario_data.model_dump()
    )
    return {
        "message": "Usuário criado com sucesso",
        "usuario": UsuarioResponse.model_validate(usuario)
    }


@router.put("/{usuario_id}")
async def update_usuario(
    request: Request,
    usuario_id: int,
    usuario_data: UsuarioUpdate,
    current_user: Usuario = Depends(check_admin_role),
    db: Session = Depends(get_db)
):
    """
    Update a user; only superadmins touch superadmin accounts
    """
    usuario = get_usuario_or_404(db, usuario_id)
    update_data = usuario_data.model_dump(exclude_unset=True)

    if usuario.id == current_user.id and update_data.get("ativo") is False:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Você não pode desativar seu próprio usuário"
        )

    if current_user.nivel != "superadmin" and (
        usuario.nivel == "superadmin" or update_data.get("nivel") == "superadmin"
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Apenas superadmin pode editar ou promover superadmin"
        )

    if update_data.get("email"):
        update_data["email"] = update_data["email"].lower()
        ensure_email_available(db, update_data["email"], exclude_id=usuario.id)

    senha = update_data.pop("senha", None)
    if senha:
        usuario.senha_hash = get_password_hash(senha)

    for key, value in update_data.items():
        if value is None and key in ("nome", "email", "nivel", "ativo", "pode_visualizar_todos"):
            continue
        setattr(usuario, key, value)

    if update_data.get("ativo") is False:
        db.query(RefreshToken).filter(RefreshToken.user_id == usuario.id).delete(synchronize_session=False)

    db.commit()
    db.refresh(usuario)

    log_activity(
        db, current_user, "editar", "usuario", usuario.id, usuario.nome,
        request=request, body=usuario_data.model_dump(exclude_unset=True)
    )
    return {
        "message": "Usuário atualizado com sucesso",
        "usuario": UsuarioResponse.model_validate(usuario)
    }


@router.delete("/{usuario_id}")
async def delete_usuario(
    request: Request,
    usuario_id: int,
    current_user: Usuario = Depends(check_admin_role),
    db: Session = Depends(get_db)
):
    """
    Delete a user, or deactivate it when it created pedidos
    """
    if usuario_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Você não pode excluir seu próprio usuário"
        )

    usuario = get_usuario_or_404(db, usuario_id)

    if usuario.nivel == "superadmin" and current_user.nivel != "superadmin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Apenas superadmin pode excluir outro superadmin"
        )

    nome = usuario.nome
    db.query(RefreshToken).filter(RefreshToken.user_id == usuario.id).delete(synchronize_session=False)

    has_pedidos = db.query(Pedido.id).filter(Pedido.created_by == usuario.id).first() is not None
    if has_pedidos:
        usuario.ativo = False
        db.commit()
        message = "Usuário desativado (possui pedidos vinculados)"
    else:
        db.delete(usuario)
        db.commit()
        message = "Usuário excluído com sucesso"

    log_activity(
        db, current_user, "excluir", "usuario", usuario_id, nome,
        details={"soft_delete": has_pedidos}, request=request
    )
    return {"message": message, "usuario": {"id": usuario_id, "nome": nome, "ativo": False}}


@router.post("/{usuario_id}/invite")
async def resend_invite(
    request: Request,
    usuario_id: int,
    current_user: Usuario = Depends(check_admin_role),
    db: Session = Depends(get_db)
):
    """
    Email a fresh invite to an existing user
    """
    usuario = get_usuario_or_404(db, usuario_id)
    if not usuario.ativo:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Não é possível enviar convite para usuário inativo"
        )

    invite_link = send_invite(db, usuario)
    log_activity(db, current_user, "reenviar_convite", "usuario", usuario.id, usuario.nome, request=request)

    response = {"message": "Convite enviado com sucesso"}
    if not settings.is_production:
        response["dev_link"] = invite_link
    return response

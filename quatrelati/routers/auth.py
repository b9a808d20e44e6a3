import logging
from datetime import datetime, timedelta
from typing import Dict, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from jose import JWTError
from sqlalchemy.orm import Session

from quatrelati.config import settings
from quatrelati.database import get_db
from quatrelati.dependencies import get_current_user
from quatrelati.models.auth import MagicLink, RefreshToken
from quatrelati.models.usuarios import Usuario
from quatrelati.rate_limit import (
    login_limiter, forgot_password_limiter, whatsapp_recovery_limiter,
    verify_limiter, reset_password_limiter
)
from quatrelati.schemas.auth import (
    LoginRequest, LoginResponse, RefreshTokenRequest, LogoutRequest, UserInfo,
    ProfileUpdate, PasswordChangeRequest, PasswordResetRequest, MagicLinkVerify,
    WhatsAppRecoveryRequest, WhatsAppCodeVerify, PasswordResetConfirm
)
from quatrelati.utils.auth import (
    verify_password, get_password_hash, create_tokens, create_access_token,
    decode_refresh_token, generate_magic_token, generate_numeric_code, normalize_phone
)
from quatrelati.utils.activity_log import log_activity
from quatrelati.utils.email import EmailError, send_magic_link_email
from quatrelati.utils.ip_utils import get_country_from_ip, get_real_ip
from quatrelati.utils.whatsapp import (
    WhatsAppError, get_twilio_client, send_whatsapp_code, format_whatsapp_number
)

logger = logging.getLogger(__name__)

router = APIRouter()

FORGOT_PASSWORD_MESSAGE = "Se o email existir, enviaremos um link de acesso"
WHATSAPP_GENERIC_MESSAGE = "Se o número estiver cadastrado, você receberá um código via WhatsApp"
MIN_PHONE_DIGITS = 9

# Magic link types that may open a session
LOGIN_LINK_TYPES = ("password_reset", "invite")


def _login_response(db: Session, user: Usuario, message: str) -> Dict[str, Any]:
    tokens = create_tokens(db, user)
    return {
        "message": message,
        "user": UserInfo.model_validate(user),
        **tokens
    }


def _valid_link_query(db: Session, token: str):
    """Unused, unexpired magic links for active users"""
    return db.query(MagicLink).join(Usuario, MagicLink.user_id == Usuario.id).filter(
        MagicLink.token == token,
        MagicLink.used_at.is_(None),
        MagicLink.expires_at > datetime.utcnow(),
        Usuario.ativo == True
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    request: Request,
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    """
    Authenticate user with email and password
    """
    login_limiter.check(request, login_data.email)

    user = db.query(Usuario).filter(Usuario.email == login_data.email.lower()).first()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Credenciais inválidas"
        )

    # Check if user is active
    if not user.ativo:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Usuário desativado"
        )

    if not verify_password(login_data.password, user.senha_hash):
        logger.info(f"Failed login for {user.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Credenciais inválidas"
        )

    response = _login_response(db, user, "Login realizado com sucesso")
    country = await run_in_threadpool(get_country_from_ip, get_real_ip(request))
    log_activity(
        db, user, "login", "usuario", user.id, user.nome,
        details={"country": country}, request=request
    )
    return response


@router.post("/refresh")
async def refresh_token(
    token_data: RefreshTokenRequest,
    db: Session = Depends(get_db)
):
    """
    Get a new access token using a refresh token
    """
    if not token_data.refresh_token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Refresh token não fornecido"
        )

    stored = db.query(RefreshToken).filter(
        RefreshToken.token == token_data.refresh_token,
        RefreshToken.expires_at > datetime.utcnow()
    ).first()

    invalid = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Refresh token inválido ou expirado"
    )
    if not stored:
        raise invalid

    try:
        payload = decode_refresh_token(token_data.refresh_token)
    except JWTError:
        raise invalid

    if payload.get("type") != "refresh_token" or str(stored.user_id) != payload.get("sub"):
        raise invalid

    user = db.query(Usuario).filter(Usuario.id == stored.user_id).first()
    if not user or not user.ativo:
        db.delete(stored)
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Usuário desativado"
        )

    return {
        "access_token": create_access_token(user),
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_HOURS * 3600
    }


@router.post("/logout")
async def logout(
    request: Request,
    logout_data: Optional[LogoutRequest] = None,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Invalidate the given refresh token of the current user
    """
    if logout_data and logout_data.refresh_token:
        db.query(RefreshToken).filter(
            RefreshToken.token == logout_data.refresh_token,
            RefreshToken.user_id == current_user.id
        ).delete(synchronize_session=False)
        db.commit()

    log_activity(db, current_user, "logout", "usuario", current_user.id, current_user.nome, request=request)
    return {"message": "Logout realizado com sucesso"}


@router.get("/me")
async def get_me(current_user: Usuario = Depends(get_current_user)):
    """
    Get current user information
    """
    return {"user": UserInfo.model_validate(current_user)}


@router.put("/profile")
async def update_profile(
    request: Request,
    profile_data: ProfileUpdate,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Update name and phone of the current user
    """
    current_user.nome = profile_data.nome
    current_user.telefone = profile_data.telefone or None
    db.commit()
    db.refresh(current_user)

    log_activity(
        db, current_user, "atualizar_perfil", "usuario", current_user.id, current_user.nome,
        request=request, body=profile_data.model_dump()
    )
    return {
        "message": "Perfil atualizado com sucesso",
        "user": UserInfo.model_validate(current_user)
    }


@router.post("/forgot-password")
async def forgot_password(
    reset_data: PasswordResetRequest,
    db: Session = Depends(get_db),
    _: None = Depends(forgot_password_limiter)
):
    """
    Email a one-time access link; the answer never reveals whether the email exists
    """
    user = db.query(Usuario).filter(
        Usuario.email == reset_data.email.lower(),
        Usuario.ativo == True
    ).first()

    if not user:
        return {"message": FORGOT_PASSWORD_MESSAGE}

    token = generate_magic_token()
    db.add(MagicLink(
        user_id=user.id,
        token=token,
        type="password_reset",
        expires_at=datetime.utcnow() + timedelta(minutes=settings.MAGIC_LINK_EXPIRE_MINUTES)
    ))
    db.commit()

    magic_link_url = f"{settings.FRONTEND_URL}/magic-link?token={token}"
    try:
        send_magic_link_email(user.email, user.nome, magic_link_url)
    except EmailError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erro ao enviar email. Tente novamente."
        )

    response = {"message": FORGOT_PASSWORD_MESSAGE}
    if not settings.is_production:
        response["dev_link"] = magic_link_url
    return response


@router.post("/verify-magic-link", response_model=LoginResponse)
async def verify_magic_link(
    request: Request,
    link_data: MagicLinkVerify,
    db: Session = Depends(get_db),
    _: None = Depends(verify_limiter)
):
    """
    Exchange a magic link token for a session
    """
    magic_link = _valid_link_query(db, link_data.token).filter(
        MagicLink.type.in_(LOGIN_LINK_TYPES)
    ).first()

    if not magic_link:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Link inválido ou expirado"
        )

    magic_link.used_at = datetime.utcnow()
    user = magic_link.user
    response = _login_response(db, user, "Login realizado com sucesso")
    log_activity(
        db, user, "login_magic_link", "usuario", user.id, user.nome,
        details={"tipo": magic_link.type}, request=request
    )
    return response


@router.put("/change-password")
async def change_password(
    request: Request,
    password_data: PasswordChangeRequest,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Change the password of the current user and close every other session
    """
    if not verify_password(password_data.current_password, current_user.senha_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Senha atual incorreta"
        )

    current_user.senha_hash = get_password_hash(password_data.new_password)
    db.query(RefreshToken).filter(RefreshToken.user_id == current_user.id).delete(synchronize_session=False)
    db.commit()

    log_activity(db, current_user, "alterar_senha", "usuario", current_user.id, current_user.nome, request=request)
    return {"message": "Senha alterada com sucesso"}


@router.post("/forgot-password-whatsapp")
async def forgot_password_whatsapp(
    recovery_data: WhatsAppRecoveryRequest,
    db: Session = Depends(get_db),
    _: None = Depends(whatsapp_recovery_limiter)
):
    """
    Send a 6-digit recovery code to the user's WhatsApp
    """
    digits = normalize_phone(recovery_data.phone)
    if len(digits) < MIN_PHONE_DIGITS:
        logger.info("[WHATSAPP RECOVERY] Phone with too few digits, answering generically")
        return {"success": True, "message": WHATSAPP_GENERIC_MESSAGE}
    last_digits = digits[-MIN_PHONE_DIGITS:]

    candidates = db.query(Usuario).filter(
        Usuario.ativo == True,
        Usuario.telefone.isnot(None)
    ).order_by(Usuario.id).all()
    user = next(
        (u for u in candidates if normalize_phone(u.telefone).endswith(last_digits)),
        None
    )

    if not user:
        return {"success": True, "message": WHATSAPP_GENERIC_MESSAGE}

    code = generate_numeric_code(6)
    db.add(MagicLink(
        user_id=user.id,
        token=code,
        type="whatsapp_recovery",
        expires_at=datetime.utcnow() + timedelta(minutes=settings.WHATSAPP_CODE_EXPIRE_MINUTES)
    ))
    db.commit()

    client = get_twilio_client()
    if client is None:
        logger.info(f"[WHATSAPP RECOVERY] Code generated for {user.email} without Twilio configured")
        if settings.is_production:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Serviço de WhatsApp não configurado"
            )
        return {
            "success": True,
            "message": "Código enviado (modo desenvolvimento)",
            "dev_code": code,
            "email": user.email
        }

    try:
        send_whatsapp_code(client, user.telefone, user.nome, code)
    except WhatsAppError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erro ao enviar mensagem WhatsApp. Verifique se o número está correto e tente novamente."
        )

    return {
        "success": True,
        "message": "Código enviado para seu WhatsApp",
        "user_phone": f"****{format_whatsapp_number(user.telefone)[-4:]}",
        "email": user.email
    }


@router.post("/verify-whatsapp-code")
async def verify_whatsapp_code(
    code_data: WhatsAppCodeVerify,
    db: Session = Depends(get_db),
    _: None = Depends(verify_limiter)
):
    """
    Trade a WhatsApp code for a short-lived password reset token
    """
    recovery = _valid_link_query(db, code_data.code).filter(
        MagicLink.type == "whatsapp_recovery",
        Usuario.email == code_data.email.lower()
    ).first()

    if not recovery:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Código inválido ou expirado"
        )

    recovery.used_at = datetime.utcnow()
    reset_token = generate_magic_token()
    db.add(MagicLink(
        user_id=recovery.user_id,
        token=reset_token,
        type="password_reset",
        expires_at=datetime.utcnow() + timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES)
    ))
    db.commit()

    user = recovery.user
    return {
        "message": "Código verificado com sucesso",
        "reset_token": reset_token,
        "user": {"nome": user.nome, "email": user.email}
    }


@router.post("/reset-password")
async def reset_password(
    request: Request,
    reset_data: PasswordResetConfirm,
    db: Session = Depends(get_db),
    _: None = Depends(reset_password_limiter)
):
    """
    Set a new password from a password_reset token
    """
    magic_link = _valid_link_query(db, reset_data.token).filter(
        MagicLink.type == "password_reset"
    ).first()

    if not magic_link:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Token inválido ou expirado"
        )

    user = magic_link.user
    user.senha_hash = get_password_hash(reset_data.new_password)
    magic_link.used_at = datetime.utcnow()
    db.query(RefreshToken).filter(RefreshToken.user_id == user.id).delete(synchronize_session=False)
    db.commit()

    log_activity(db, user, "redefinir_senha", "usuario", user.id, user.nome, request=request)
    return {"message": "Senha redefinida com sucesso"}

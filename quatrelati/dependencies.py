import hmac
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.orm import Session

from quatrelati.config import settings
from quatrelati.database import get_db
from quatrelati.models.usuarios import Usuario
from quatrelati.schemas.auth import TokenData

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login", auto_error=False)

PERMISSION_DENIED = "Você não tem permissão para acessar este recurso"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
):
    """
    Get the current authenticated user based on JWT token
    """
    if not token:
        raise _unauthorized("Token não fornecido")

    try:
        # Decode JWT token
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except ExpiredSignatureError:
        raise _unauthorized("Token expirado")
    except JWTError:
        raise _unauthorized("Token inválido")

    # Extract user ID and token type
    user_id = payload.get("sub")
    if user_id is None or payload.get("type") != "access_token":
        raise _unauthorized("Token inválido")

    try:
        token_data = TokenData(user_id=int(user_id))
    except ValueError:
        raise _unauthorized("Token inválido")

    # Get user from database
    user = db.query(Usuario).filter(Usuario.id == token_data.user_id).first()
    if user is None or not user.ativo:
        raise _unauthorized("Usuário não encontrado ou desativado")

    # Snapshot for the error logger, which runs after the session closes
    request.state.user_info = {"id": user.id, "nome": user.nome, "nivel": user.nivel}
    return user


def check_superadmin_role(
    current_user: Usuario = Depends(get_current_user)
):
    """
    Check if the current user is a superadmin
    """
    if current_user.nivel != "superadmin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=PERMISSION_DENIED
        )
    return current_user


def check_admin_role(
    current_user: Usuario = Depends(get_current_user)
):
    """
    Check if the current user has admin role (superadmin included)
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=PERMISSION_DENIED
        )
    return current_user


def can_view_all(user: Usuario) -> bool:
    """Admins and users flagged pode_visualizar_todos see every record"""
    return user.is_admin or bool(user.pode_visualizar_todos)


def get_vendedor_id(user: Usuario, requested: Optional[int] = None) -> Optional[int]:
    """
    Resolve the vendedor filter for a query.

    Users restricted to their own records always get their own id; the
    others get the requested vendedor, or None for no filter.
    """
    if not can_view_all(user):
        return user.id
    return int(requested) if requested else None


def verify_api_key(x_api_key: Optional[str] = Header(None)):
    """
    Inter-service authentication for the landing page
    """
    if not settings.SITE_API_KEY:
        logger.warning("SITE_API_KEY not configured, accepting request without API key")
        return None

    if not x_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key não fornecida"
        )

    if not hmac.compare_digest(x_api_key.encode("utf-8"), settings.SITE_API_KEY.encode("utf-8")):
        logger.warning("Invalid API key received")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key inválida"
        )
    return x_api_key

import logging
from typing import List

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quatrelati.config import settings
from quatrelati.models.configuracoes import Configuracao
from quatrelati.models.usuarios import Usuario
from quatrelati.utils.auth import get_password_hash

logger = logging.getLogger(__name__)

# Well-known bcrypt hash shipped by the initial SQL dumps
PLACEHOLDER_HASH_PREFIX = "$2a$10$92IXUNpkjO0rOQ5"

DEFAULT_CONFIGURACOES = {
    "log_superadmin": ("true", "Registrar atividades de superadmins no log"),
}


def seed_passwords(db: Session) -> List[str]:
    """
    Replace placeholder or empty password hashes with the default password.

    Returns the emails of the updated users.
    """
    users = db.query(Usuario).filter(
        or_(
            Usuario.senha_hash.like(f"{PLACEHOLDER_HASH_PREFIX}%"),
            Usuario.senha_hash == "",
        )
    ).all()

    if not users:
        logger.info("All user passwords are already configured")
        return []

    senha_hash = get_password_hash(settings.DEFAULT_PASSWORD)
    for user in users:
        user.senha_hash = senha_hash

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not reset placeholder passwords: {str(e)}")
        raise

    emails = [user.email for user in users]
    logger.info(f"Passwords reset for: {', '.join(emails)}")
    return emails


def seed_defaults(db: Session) -> None:
    """Create the initial superadmin and the default configuracoes"""
    superadmin = db.query(Usuario).filter(Usuario.email == settings.SUPERADMIN_EMAIL).first()
    if not superadmin:
        db.add(Usuario(
            nome="Administrador",
            email=settings.SUPERADMIN_EMAIL,
            senha_hash=get_password_hash(settings.DEFAULT_PASSWORD),
            nivel="superadmin",
            ativo=True,
            pode_visualizar_todos=True,
        ))
        logger.info(f"Superadmin {settings.SUPERADMIN_EMAIL} created")

    for chave, (valor, descricao) in DEFAULT_CONFIGURACOES.items():
        exists = db.query(Configuracao).filter(Configuracao.chave == chave).first()
        if not exists:
            db.add(Configuracao(chave=chave, valor=valor, descricao=descricao))

    db.commit()

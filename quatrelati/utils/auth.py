from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session
import secrets
import string

from quatrelati.config import settings
from quatrelati.models.auth import RefreshToken

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_TOKEN = "access_token"
REFRESH_TOKEN = "refresh_token"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify if the plain password matches the hashed password"""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # placeholder or malformed hash stored in the database
        return False


def get_password_hash(password: str) -> str:
    """Hash a password"""
    return pwd_context.hash(password)


def create_jwt_token(
    data: Dict[str, Any],
    token_type: str,
    expires_delta: Optional[timedelta] = None,
    secret_key: Optional[str] = None,
) -> str:
    """
    Create a JWT token with the provided data

    Args:
        data: Dictionary containing data to encode in the token
        token_type: Type of token ('access_token' or 'refresh_token')
        expires_delta: Optional expiration time delta
        secret_key: Signing key, defaults to the access token secret

    Returns:
        JWT token string
    """
    to_encode = data.copy()

    # Set expiration time
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    elif token_type == ACCESS_TOKEN:
        expire = datetime.utcnow() + timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS)
    elif token_type == REFRESH_TOKEN:
        expire = datetime.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    else:
        expire = datetime.utcnow() + timedelta(minutes=15)  # Default

    # Add claims to token
    to_encode.update({
        "exp": expire,
        "iat": datetime.utcnow(),
        "type": token_type
    })

    return jwt.encode(
        to_encode,
        secret_key or settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )


def create_access_token(user) -> str:
    """Access token carrying the user's id, email and nivel"""
    return create_jwt_token(
        data={"sub": str(user.id), "email": user.email, "nivel": user.nivel},
        token_type=ACCESS_TOKEN,
    )


def create_refresh_token(user_id: int) -> str:
    """Refresh token signed with its own secret; jti keeps every token unique"""
    return create_jwt_token(
        data={"sub": str(user_id), "jti": secrets.token_hex(8)},
        token_type=REFRESH_TOKEN,
        secret_key=settings.JWT_REFRESH_SECRET_KEY,
    )


def decode_refresh_token(token: str) -> Dict[str, Any]:
    """Decode a refresh token, raising JWTError when invalid or expired"""
    return jwt.decode(
        token,
        settings.JWT_REFRESH_SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM]
    )


def create_tokens(db: Session, user) -> Dict[str, Any]:
    """
    Create access and refresh tokens for a user and persist the refresh token

    Args:
        db: Database session (committed by this function)
        user: Usuario receiving the tokens

    Returns:
        Dictionary with access_token, refresh_token, token_type, and expires_in
    """
    access_token = create_access_token(user)
    refresh_token = create_refresh_token(user.id)

    db.add(RefreshToken(
        user_id=user.id,
        token=refresh_token,
        expires_at=datetime.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    ))
    db.commit()

    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_HOURS * 3600  # seconds
    }


def generate_magic_token() -> str:
    """32 random bytes, hex encoded"""
    return secrets.token_hex(32)


def generate_numeric_code(length: int = 6) -> str:
    """Numeric code without a leading zero"""
    first = secrets.choice("123456789")
    return first + "".join(secrets.choice(string.digits) for _ in range(length - 1))


def generate_random_password(length: int = 24) -> str:
    """Random password for accounts activated through an invite"""
    return secrets.token_urlsafe(length)


def normalize_phone(phone: Optional[str]) -> str:
    """Keep only the digits of a phone number"""
    return "".join(ch for ch in (phone or "") if ch.isdigit())

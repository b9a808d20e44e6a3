from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime


# Token schema for JWT authentication
class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


# Token data schema for decoded JWT payload
class TokenData(BaseModel):
    user_id: int


# Schema for login with email and password
class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


# Schema for refresh token
class RefreshTokenRequest(BaseModel):
    refresh_token: Optional[str] = None


# Schema for logout (the refresh token is optional)
class LogoutRequest(BaseModel):
    refresh_token: Optional[str] = None


# Public data of the logged user
class UserInfo(BaseModel):
    id: int
    nome: str
    email: str
    nivel: str
    telefone: Optional[str] = None
    pode_visualizar_todos: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Login and magic link responses
class LoginResponse(Token):
    message: str
    user: UserInfo


# Schema for profile update
class ProfileUpdate(BaseModel):
    nome: str
    telefone: Optional[str] = Field(None, max_length=20)

    @field_validator("nome")
    @classmethod
    def nome_min_length(cls, v):
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Nome deve ter pelo menos 2 caracteres")
        return v


# Schema for password change
class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)


# Schema for password reset request
class PasswordResetRequest(BaseModel):
    email: EmailStr


# Schema for magic link verification
class MagicLinkVerify(BaseModel):
    token: str = Field(..., min_length=1)


# Schema for WhatsApp recovery request
class WhatsAppRecoveryRequest(BaseModel):
    phone: str = Field(..., min_length=8)


# Schema for WhatsApp code verification
class WhatsAppCodeVerify(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=6, max_length=6)


# Schema for password reset confirmation
class PasswordResetConfirm(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, Literal
from datetime import datetime

Nivel = Literal["superadmin", "admin", "vendedor", "visualizador"]


# Base Usuario schema with common attributes
class UsuarioBase(BaseModel):
    nome: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    telefone: Optional[str] = Field(None, max_length=20)
    nivel: Nivel = "vendedor"
    pode_visualizar_todos: bool = False


# Schema for creating a new usuario
class UsuarioCreate(UsuarioBase):
    senha: str = Field(..., min_length=8)


# Schema for updating a usuario
class UsuarioUpdate(BaseModel):
    nome: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    senha: Optional[str] = Field(None, min_length=8)
    telefone: Optional[str] = Field(None, max_length=20)
    nivel: Optional[Nivel] = None
    ativo: Optional[bool] = None
    pode_visualizar_todos: Optional[bool] = None


# Schema for inviting a usuario without a password
class UsuarioInvite(BaseModel):
    nome: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    nivel: Nivel = "vendedor"
    telefone: Optional[str] = Field(None, max_length=20)


# Schema for returning a usuario
class UsuarioResponse(BaseModel):
    id: int
    nome: str
    email: str
    telefone: Optional[str] = None
    nivel: str
    ativo: bool
    pode_visualizar_todos: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

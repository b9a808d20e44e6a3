from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime


def _empty_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


# Base Cliente schema with common attributes
class ClienteBase(BaseModel):
    nome: str = Field(..., min_length=2, max_length=150)
    razao_social: Optional[str] = Field(None, max_length=200)
    cnpj_cpf: Optional[str] = Field(None, max_length=20)
    telefone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    endereco: Optional[str] = None
    endereco_entrega: Optional[str] = None
    cidade: Optional[str] = Field(None, max_length=100)
    estado: Optional[str] = Field(None, max_length=2)
    cep: Optional[str] = Field(None, max_length=10)
    contato_nome: Optional[str] = Field(None, max_length=100)
    observacoes: Optional[str] = None
    logo_url: Optional[str] = None

    @field_validator("email", "cnpj_cpf", mode="before")
    @classmethod
    def blank_as_none(cls, v):
        return _empty_to_none(v)


# Schema for creating a new cliente
class ClienteCreate(ClienteBase):
    vendedor_id: Optional[int] = None


# Schema for updating a cliente
class ClienteUpdate(ClienteBase):
    nome: Optional[str] = Field(None, min_length=2, max_length=150)
    ativo: Optional[bool] = None
    vendedor_id: Optional[int] = None


# Schema for returning a cliente
class ClienteResponse(ClienteBase):
    id: int
    nome: str
    email: Optional[str] = None
    ativo: bool
    vendedor_id: Optional[int] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Cliente with its pedidos summary
class ClienteWithStatsResponse(ClienteResponse):
    vendedor_nome: Optional[str] = None
    total_pedidos: int = 0
    valor_total_pedidos: float = 0
    peso_total_pedidos: Optional[float] = None

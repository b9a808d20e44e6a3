from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, Literal
from datetime import datetime

StatusContato = Literal["pendente", "novo", "em_atendimento", "convertido", "descartado"]


def _strip(v):
    return v.strip() if isinstance(v, str) else v


# Lead forwarded by the landing page
class ContatoCreate(BaseModel):
    nome: str = Field(..., max_length=150)
    empresa: Optional[str] = Field(None, max_length=150)
    email: Optional[str] = Field(None, max_length=255)
    telefone: Optional[str] = Field(None, max_length=30)
    mensagem: str
    tipo: Optional[str] = Field(None, max_length=30)
    token: Optional[str] = Field(None, max_length=255)
    status: Optional[StatusContato] = None

    @field_validator("nome", "mensagem")
    @classmethod
    def required_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Campo obrigatório")
        return v

    @field_validator("empresa", "telefone", "tipo", "token")
    @classmethod
    def strip_optional(cls, v):
        return _strip(v) or None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        v = _strip(v)
        return v.lower() if v else None


# Schema for changing the status of a contato
class ContatoStatusUpdate(BaseModel):
    status: StatusContato
    observacoes_internas: Optional[str] = None


# Schema for returning a contato
class ContatoResponse(BaseModel):
    id: int
    nome: str
    empresa: Optional[str] = None
    email: Optional[str] = None
    telefone: Optional[str] = None
    mensagem: str
    tipo: str
    status: str
    observacoes_internas: Optional[str] = None
    atendido_por: Optional[int] = None
    atendido_por_nome: Optional[str] = None
    cliente_id: Optional[int] = None
    cliente_nome: Optional[str] = None
    recebido_em: Optional[datetime] = None
    atualizado_em: Optional[datetime] = None

    class Config:
        from_attributes = True


# Public contact form of the main API
class ContactRequest(BaseModel):
    nome: str = Field(..., min_length=1, max_length=150)
    empresa: str = Field(..., min_length=1, max_length=150)
    email: EmailStr
    telefone: str = Field(..., min_length=1, max_length=30)
    mensagem: str = Field(..., min_length=1, max_length=5000)

    @field_validator("nome", "empresa", "telefone", "mensagem", mode="before")
    @classmethod
    def strip_text(cls, v):
        return _strip(v)


# Contact form of the landing page service
class LandingContactForm(BaseModel):
    nome: str = Field(..., min_length=2, max_length=150)
    empresa: str = Field(..., min_length=2, max_length=150)
    email: Optional[EmailStr] = None
    telefone: str = Field(..., min_length=10, max_length=30)
    mensagem: str = Field(..., min_length=10, max_length=5000)

    @field_validator("nome", "empresa", "telefone", "mensagem", mode="before")
    @classmethod
    def strip_text(cls, v):
        return _strip(v)

    @field_validator("email", mode="before")
    @classmethod
    def blank_email(cls, v):
        return _strip(v) or None


# Cliente created from a contato
class ContatoConverter(BaseModel):
    nome: str = Field(..., min_length=2, max_length=150)
    razao_social: Optional[str] = Field(None, max_length=200)
    cnpj_cpf: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    telefone: Optional[str] = Field(None, max_length=20)
    observacoes: Optional[str] = None
    vendedor_id: Optional[int] = None

    @field_validator("nome", "razao_social", "cnpj_cpf", "telefone", "observacoes", mode="before")
    @classmethod
    def strip_text(cls, v):
        return _strip(v) or None

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v):
        v = _strip(v)
        return v.lower() if v else None

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal


# Base Produto schema with common attributes
class ProdutoBase(BaseModel):
    nome: str = Field(..., min_length=2, max_length=150)
    codigo: Optional[str] = Field(None, max_length=50)
    descricao: Optional[str] = None
    peso_caixa_kg: Decimal = Field(..., ge=Decimal("0.001"))
    preco_padrao: Optional[Decimal] = Field(None, ge=0)
    imagem_url: Optional[str] = None

    @field_validator("codigo", mode="before")
    @classmethod
    def blank_codigo(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


# Schema for creating a new produto
class ProdutoCreate(ProdutoBase):
    pass


# Schema for updating a produto
class ProdutoUpdate(ProdutoBase):
    nome: Optional[str] = Field(None, min_length=2, max_length=150)
    peso_caixa_kg: Optional[Decimal] = Field(None, ge=Decimal("0.001"))
    ativo: Optional[bool] = None


# Schema for returning a produto
class ProdutoResponse(BaseModel):
    id: int
    codigo: Optional[str] = None
    nome: str
    descricao: Optional[str] = None
    peso_caixa_kg: float
    preco_padrao: Optional[float] = None
    imagem_url: Optional[str] = None
    ativo: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Produto with sales figures for the list screen
class ProdutoWithStatsResponse(ProdutoResponse):
    total_pedidos: int = 0
    total_caixas_vendidas: int = 0
    valor_total_vendas: float = 0

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal


# One line of a pedido as sent by the client
class PedidoItemCreate(BaseModel):
    produto_id: int = Field(..., ge=1)
    quantidade_caixas: int = Field(..., ge=1)
    preco_unitario: Decimal = Field(..., ge=Decimal("0.01"))


# Schema for creating a new pedido
class PedidoCreate(BaseModel):
    data_pedido: date
    cliente_id: int = Field(..., ge=1)
    nf: Optional[str] = Field(None, max_length=50)
    data_entrega: Optional[date] = None
    observacoes: Optional[str] = None
    preco_descarga_pallet: Optional[Decimal] = Field(None, ge=0)
    horario_recebimento: Optional[str] = Field(None, max_length=100)
    itens: List[PedidoItemCreate] = Field(..., min_length=1)


# Schema for updating a pedido; itens replaces every line when present
class PedidoUpdate(BaseModel):
    data_pedido: Optional[date] = None
    cliente_id: Optional[int] = Field(None, ge=1)
    nf: Optional[str] = Field(None, max_length=50)
    data_entrega: Optional[date] = None
    observacoes: Optional[str] = None
    preco_descarga_pallet: Optional[Decimal] = Field(None, ge=0)
    horario_recebimento: Optional[str] = Field(None, max_length=100)
    entregue: Optional[bool] = None
    data_entrega_real: Optional[date] = None
    created_by: Optional[int] = Field(None, ge=1)
    itens: Optional[List[PedidoItemCreate]] = None


# Schema for marking a pedido as delivered
class PedidoEntregar(BaseModel):
    data_entrega_real: Optional[date] = None


# Schema for returning a pedido line
class PedidoItemResponse(BaseModel):
    id: int
    produto_id: int
    produto_nome: Optional[str] = None
    peso_caixa_kg: Optional[float] = None
    imagem_url: Optional[str] = None
    quantidade_caixas: int
    peso_kg: float
    preco_unitario: float
    subtotal: float

    class Config:
        from_attributes = True


# Schema for returning a pedido
class PedidoResponse(BaseModel):
    id: int
    numero_pedido: str
    data_pedido: date
    cliente_id: int
    cliente_nome: Optional[str] = None
    nf: Optional[str] = None
    data_entrega: Optional[date] = None
    quantidade_caixas: int
    peso_kg: float
    preco_unitario: float
    total: float
    entregue: bool
    data_entrega_real: Optional[date] = None
    observacoes: Optional[str] = None
    preco_descarga_pallet: Optional[float] = None
    horario_recebimento: Optional[str] = None
    created_by: Optional[int] = None
    vendedor_nome: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    itens: List[PedidoItemResponse] = []

    class Config:
        from_attributes = True


# Wrapper used by every write endpoint
class PedidoMessageResponse(BaseModel):
    message: str
    pedido: PedidoResponse

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Numeric
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from quatrelati.database import Base


class Produto(Base):
    __tablename__ = "produtos"

    id = Column(Integer, primary_key=True, index=True)
    codigo = Column(String(50), unique=True, index=True, nullable=True)
    nome = Column(String(150), nullable=False)
    descricao = Column(Text)
    peso_caixa_kg = Column(Numeric(10, 3), nullable=False)
    preco_padrao = Column(Numeric(10, 2), default=0)
    imagem_url = Column(Text)
    ativo = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    itens = relationship("PedidoItem", back_populates="produto")

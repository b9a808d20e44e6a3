from sqlalchemy import Column, Integer, String, Text, Boolean, Date, DateTime, Numeric, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from quatrelati.database import Base


class Pedido(Base):
    __tablename__ = "pedidos"

    id = Column(Integer, primary_key=True, index=True)
    numero_pedido = Column(String(10), unique=True, index=True, nullable=False)
    data_pedido = Column(Date, nullable=False)
    cliente_id = Column(Integer, ForeignKey("clientes.id"), nullable=False)
    nf = Column(String(50))
    data_entrega = Column(Date)
    quantidade_caixas = Column(Integer, nullable=False, default=0)
    peso_kg = Column(Numeric(12, 3), nullable=False, default=0)
    preco_unitario = Column(Numeric(12, 4), nullable=False, default=0)
    total = Column(Numeric(14, 2), nullable=False, default=0)
    entregue = Column(Boolean, nullable=False, default=False)
    data_entrega_real = Column(Date)
    observacoes = Column(Text)
    preco_descarga_pallet = Column(Numeric(10, 2))
    horario_recebimento = Column(String(100))
    created_by = Column(Integer, ForeignKey("usuarios.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    cliente = relationship("Cliente", back_populates="pedidos")
    vendedor = relationship("Usuario", back_populates="pedidos")
    itens = relationship(
        "PedidoItem",
        back_populates="pedido",
        cascade="all, delete-orphan",
        order_by="PedidoItem.id",
    )

    @property
    def cliente_nome(self):
        return self.cliente.nome if self.cliente else None

    @property
    def vendedor_nome(self):
        return self.vendedor.nome if self.vendedor else None


class PedidoItem(Base):
    __tablename__ = "pedido_itens"

    id = Column(Integer, primary_key=True, index=True)
    pedido_id = Column(Integer, ForeignKey("pedidos.id", ondelete="CASCADE"), nullable=False)
    produto_id = Column(Integer, ForeignKey("produtos.id"), nullable=False)
    quantidade_caixas = Column(Integer, nullable=False)
    peso_kg = Column(Numeric(12, 3), nullable=False)
    preco_unitario = Column(Numeric(12, 4), nullable=False)
    subtotal = Column(Numeric(14, 2), nullable=False)

    # Relationships
    pedido = relationship("Pedido", back_populates="itens")
    produto = relationship("Produto", back_populates="itens")

    @property
    def produto_nome(self):
        return self.produto.nome if self.produto else None

    @property
    def peso_caixa_kg(self):
        return self.produto.peso_caixa_kg if self.produto else None

    @property
    def imagem_url(self):
        return self.produto.imagem_url if self.produto else None

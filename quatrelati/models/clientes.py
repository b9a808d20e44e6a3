from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from quatrelati.database import Base


class Cliente(Base):
    __tablename__ = "clientes"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(150), nullable=False)
    razao_social = Column(String(200))
    cnpj_cpf = Column(String(20), unique=True, index=True)
    telefone = Column(String(20))
    email = Column(String(255))
    endereco = Column(Text)
    endereco_entrega = Column(Text)
    cidade = Column(String(100))
    estado = Column(String(2))
    cep = Column(String(10))
    contato_nome = Column(String(100))
    observacoes = Column(Text)
    logo_url = Column(Text)
    ativo = Column(Boolean, nullable=False, default=True)
    vendedor_id = Column(Integer, ForeignKey("usuarios.id", ondelete="SET NULL"), nullable=True)
    created_by = Column(Integer, ForeignKey("usuarios.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    vendedor = relationship("Usuario", back_populates="clientes", foreign_keys=[vendedor_id])
    criador = relationship("Usuario", foreign_keys=[created_by])
    pedidos = relationship("Pedido", back_populates="cliente")

    @property
    def vendedor_nome(self):
        return self.vendedor.nome if self.vendedor else None

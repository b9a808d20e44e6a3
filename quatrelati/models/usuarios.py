from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from quatrelati.database import Base

NIVEIS = ("superadmin", "admin", "vendedor", "visualizador")


class Usuario(Base):
    __tablename__ = "usuarios"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    senha_hash = Column(Text, nullable=False)
    telefone = Column(String(20))
    nivel = Column(String(20), nullable=False, default="vendedor")
    ativo = Column(Boolean, nullable=False, default=True)
    pode_visualizar_todos = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan")
    magic_links = relationship("MagicLink", back_populates="user", cascade="all, delete-orphan")
    clientes = relationship("Cliente", back_populates="vendedor", foreign_keys="Cliente.vendedor_id")
    pedidos = relationship("Pedido", back_populates="vendedor")

    @property
    def is_admin(self) -> bool:
        return self.nivel in ("superadmin", "admin")

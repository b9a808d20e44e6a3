from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from quatrelati.database import Base

STATUS_CONTATO = ("pendente", "novo", "em_atendimento", "convertido", "descartado")


class ContatoSite(Base):
    __tablename__ = "contatos_site"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(150), nullable=False)
    empresa = Column(String(150))
    email = Column(String(255))
    telefone = Column(String(30))
    mensagem = Column(Text, nullable=False)
    tipo = Column(String(30), nullable=False, default="contato")
    token = Column(String(255))
    status = Column(String(30), nullable=False, default="novo", index=True)
    observacoes_internas = Column(Text)
    atendido_por = Column(Integer, ForeignKey("usuarios.id", ondelete="SET NULL"), nullable=True)
    cliente_id = Column(Integer, ForeignKey("clientes.id", ondelete="SET NULL"), nullable=True)
    recebido_em = Column(DateTime, server_default=func.now())
    atualizado_em = Column(DateTime)

    # Relationships
    atendente = relationship("Usuario")
    cliente = relationship("Cliente")

    @property
    def atendido_por_nome(self):
        return self.atendente.nome if self.atendente else None

    @property
    def cliente_nome(self):
        return self.cliente.nome if self.cliente else None

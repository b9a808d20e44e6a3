from sqlalchemy import Column, Integer, String, Text, DateTime, JSON
from sqlalchemy.sql import func

from quatrelati.database import Base


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, index=True)
    user_nome = Column(String(100))
    user_nivel = Column(String(20))
    action = Column(String(50), index=True, nullable=False)
    entity = Column(String(50), index=True)
    entity_id = Column(Integer)
    entity_name = Column(String(255))
    details = Column(JSON)
    ip_address = Column(String(64))
    user_agent = Column(Text)
    created_at = Column(DateTime, server_default=func.now(), index=True)


class ErrorLog(Base):
    __tablename__ = "error_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, index=True)
    user_nome = Column(String(100))
    user_nivel = Column(String(20))
    error_type = Column(String(30), index=True)
    error_message = Column(Text)
    endpoint = Column(String(500))
    method = Column(String(10))
    request_body = Column(JSON)
    validation_errors = Column(JSON)
    stack_trace = Column(Text)
    ip_address = Column(String(64))
    user_agent = Column(Text)
    created_at = Column(DateTime, server_default=func.now(), index=True)

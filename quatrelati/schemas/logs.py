from pydantic import BaseModel
from typing import Any, Optional
from datetime import datetime


# Schema for returning an activity log entry
class ActivityLogResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    user_nome: Optional[str] = None
    user_nivel: Optional[str] = None
    action: str
    entity: Optional[str] = None
    entity_id: Optional[int] = None
    entity_name: Optional[str] = None
    details: Optional[Any] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Schema for returning a stored error
class ErrorLogResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    user_nome: Optional[str] = None
    user_nivel: Optional[str] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    endpoint: Optional[str] = None
    method: Optional[str] = None
    request_body: Optional[Any] = None
    validation_errors: Optional[Any] = None
    stack_trace: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

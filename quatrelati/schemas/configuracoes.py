from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from datetime import datetime


# Schema for updating a configuracao value
class ConfiguracaoUpdate(BaseModel):
    valor: Optional[str] = None
    descricao: Optional[str] = None


# Schema for returning a configuracao
class ConfiguracaoResponse(BaseModel):
    id: int
    chave: str
    valor: Optional[str] = None
    descricao: Optional[str] = None
    updated_by: Optional[int] = None
    updated_by_nome: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Summary returned by the JSON imports
class ImportResult(BaseModel):
    message: str = "Importação concluída"
    importados: int = 0
    atualizados: int = 0
    erros: List[Dict[str, Any]] = []

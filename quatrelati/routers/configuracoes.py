import json
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quatrelati.database import get_db
from quatrelati.dependencies import check_superadmin_role
from quatrelati.models.clientes import Cliente
from quatrelati.models.configuracoes import Configuracao
from quatrelati.models.pedidos import Pedido, PedidoItem
from quatrelati.models.produtos import Produto
from quatrelati.models.usuarios import Usuario
from quatrelati.schemas.clientes import ClienteCreate, ClienteResponse
from quatrelati.schemas.configuracoes import ConfiguracaoUpdate, ConfiguracaoResponse, ImportResult
from quatrelati.schemas.pedidos import PedidoResponse
from quatrelati.schemas.produtos import ProdutoCreate, ProdutoResponse
from quatrelati.utils.activity_log import log_activity

logger = logging.getLogger(__name__)

router = APIRouter()

EXPORT_VERSION = "1.0"
MAX_IMPORT_SIZE = 10 * 1024 * 1024

ModoImportacao = Literal["adicionar", "substituir"]


def export_response(filename: str, content: Dict[str, Any]) -> JSONResponse:
    """JSON download named after today's date"""
    return JSONResponse(
        content=jsonable_encoder(content),
        headers={"Content-Disposition": f"attachment; filename={filename}_{date.today().isoformat()}.json"}
    )


def export_envelope(tipo: str, dados: List[Any], **extra) -> Dict[str, Any]:
    return {
        "tipo": tipo,
        "versao": EXPORT_VERSION,
        "data_exportacao": datetime.utcnow().isoformat(),
        **extra,
        "total_registros": len(dados),
        "dados": dados,
    }


def export_clientes_data(db: Session, ativos_apenas: bool = False) -> List[Dict[str, Any]]:
    query = db.query(Cliente)
    if ativos_apenas:
        query = query.filter(Cliente.ativo == True)
    return [ClienteResponse.model_validate(c).model_dump(mode="json") for c in query.order_by(Cliente.nome).all()]


def export_produtos_data(db: Session, ativos_apenas: bool = False) -> List[Dict[str, Any]]:
    query = db.query(Produto)
    if ativos_apenas:
        query = query.filter(Produto.ativo == True)
    return [ProdutoResponse.model_validate(p).model_dump(mode="json") for p in query.order_by(Produto.nome).all()]


def export_pedidos_data(
    db: Session,
    data_inicio: Optional[date] = None,
    data_fim: Optional[date] = None,
    status_entrega: Optional[str] = None
) -> List[Dict[str, Any]]:
    query = db.query(Pedido)
    if data_inicio:
        query = query.filter(Pedido.data_pedido >= data_inicio)
    if data_fim:
        query = query.filter(Pedido.data_pedido <= data_fim)
    if status_entrega in ("entregue", "pendente"):
        query = query.filter(Pedido.entregue == (status_entrega == "entregue"))

    pedidos = query.order_by(Pedido.data_pedido.desc()).all()
    return [PedidoResponse.model_validate(p).model_dump(mode="json") for p in pedidos]


async def read_import_file(arquivo: UploadFile, tipo: str) -> List[Dict[str, Any]]:
    """
    Parse an uploaded export file and check it holds the expected tipo
    """
    content = await arquivo.read()
    if len(content) > MAX_IMPORT_SIZE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Arquivo muito grande. Máximo: 10MB"
        )

    try:
        data = json.loads(content)
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Arquivo JSON inválido"
        )

    if not isinstance(data, dict) or data.get("tipo") != tipo:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Tipo de arquivo inválido. Esperado: {tipo}"
        )

    dados = data.get("dados")
    if not isinstance(dados, list):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Arquivo sem a lista de dados"
        )
    return dados


def import_error(registro: Any, error: Exception) -> Dict[str, Any]:
    nome = registro.get("nome") if isinstance(registro, dict) else None
    if isinstance(error, ValidationError):
        message = "; ".join(f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in error.errors())
    else:
        message = str(error)
    return {"registro": nome, "erro": message}


@router.get("/")
async def list_configuracoes(
    current_user: Usuario = Depends(check_superadmin_role),
    db: Session = Depends(get_db)
):
    """
    List every configuration key
    """
    configuracoes = db.query(Configuracao).order_by(Configuracao.chave).all()
    return {"configuracoes": [ConfiguracaoResponse.model_validate(c) for c in configuracoes]}


@router.get("/exportar/clientes")
async def export_clientes(
    ativos_apenas: bool = False,
    current_user: Usuario = Depends(check_superadmin_role),
    db: Session = Depends(get_db)
):
    dados = export_clientes_data(db, ativos_apenas)
    return export_response("clientes", export_envelope("clientes", dados))


@router.get("/exportar/produtos")
async def export_produtos(
    ativos_apenas: bool = False,
    current_user: Usuario = Depends(check_superadmin_role),
    db: Session = Depends(get_db)
):
    dados = export_produtos_data(db, ativos_apenas)
    return export_response("produtos", export_envelope("produtos", dados))


@router.get("/exportar/pedidos")
async def export_pedidos(
    data_inicio: Optional[date] = None,
    data_fim: Optional[date] = None,
    status_entrega: Optional[Literal["entregue", "pendente"]] = None,
    current_user: Usuario = Depends(check_superadmin_role),
    db: Session = Depends(get_db)
):
    """
    Export pedidos with their itens, optionally filtered by order date
    """
    dados = export_pedidos_data(db, data_inicio, data_fim, status_entrega)
    filtros = {"data_inicio": data_inicio, "data_fim": data_fim, "status_entrega": status_entrega}
    return export_response("pedidos", export_envelope("pedidos", dados, filtros=filtros))


@router.get("/exportar/completo")
async def export_completo(
    current_user: Usuario = Depends(check_superadmin_role),
    db: Session = Depends(get_db)
):
    """
    Full backup of clientes, produtos and pedidos
    """
    clientes = export_clientes_data(db)
    produtos = export_produtos_data(db)
    pedidos = export_pedidos_data(db)

    content = {
        "tipo": "backup_completo",
        "versao": EXPORT_VERSION,
        "data_exportacao": datetime.utcnow().isoformat(),
        "total_registros": len(clientes) + len(produtos) + len(pedidos),
        "dados": {
            "clientes": {"total": len(clientes), "dados": clientes},
            "produtos": {"total": len(produtos), "dados": produtos},
            "pedidos": {"total": len(pedidos), "dados": pedidos},
        }
    }
    return export_response("backup_quatrelati", content)


@router.post("/importar/clientes", response_model=ImportResult)
async def import_clientes(
    request: Request,
    arquivo: UploadFile = File(...),
    modo: ModoImportacao = Form("adicionar"),
    current_user: Usuario = Depends(check_superadmin_role),
    db: Session = Depends(get_db)
):
    """
    Import clientes from an export file, matching existing ones by CNPJ/CPF
    """
    dados = await read_import_file(arquivo, "clientes")

    if modo == "substituir":
        if db.query(Pedido.id).first() is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Não é possível substituir clientes com pedidos existentes"
            )
        db.query(Cliente).delete(synchronize_session=False)
        db.flush()

    result = ImportResult()
    for registro in dados:
        try:
            cliente_data = ClienteCreate.model_validate(registro)
            values = cliente_data.model_dump(exclude={"vendedor_id"})
            ativo = registro.get("ativo") is not False

            with db.begin_nested():
                existente = None
                if cliente_data.cnpj_cpf:
                    existente = db.query(Cliente).filter(Cliente.cnpj_cpf == cliente_data.cnpj_cpf).first()

                if existente:
                    for key, value in values.items():
                        setattr(existente, key, value)
                    existente.ativo = ativo
                    result.atualizados += 1
                else:
                    db.add(Cliente(**values, ativo=ativo, created_by=current_user.id))
                    result.importados += 1
        except (ValidationError, SQLAlchemyError) as e:
            result.erros.append(import_error(registro, e))

    db.commit()
    logger.info(f"[IMPORT] clientes: {result.importados} new, {result.atualizados} updated, {len(result.erros)} errors")

    log_activity(
        db, current_user, "importar", "cliente", None, arquivo.filename,
        details={"modo": modo, "importados": result.importados, "atualizados": result.atualizados},
        request=request
    )
    return result


@router.post("/importar/produtos", response_model=ImportResult)
async def import_produtos(
    request: Request,
    arquivo: UploadFile = File(...),
    modo: ModoImportacao = Form("adicionar"),
    current_user: Usuario = Depends(check_superadmin_role),
    db: Session = Depends(get_db)
):
    """
    Import produtos from an export file, matching existing ones by codigo
    """
    dados = await read_import_file(arquivo, "produtos")

    if modo == "substituir":
        if db.query(PedidoItem.id).first() is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Não é possível substituir produtos com pedidos existentes"
            )
        db.query(Produto).delete(synchronize_session=False)
        db.flush()

    result = ImportResult()
    for registro in dados:
        try:
            if isinstance(registro, dict) and "preco_padrao" not in registro and "preco" in registro:
                registro = {**registro, "preco_padrao": registro["preco"]}
            produto_data = ProdutoCreate.model_validate(registro)
            values = produto_data.model_dump()
            if values.get("preco_padrao") is None:
                values["preco_padrao"] = 0
            ativo = registro.get("ativo") is not False

            with db.begin_nested():
                existente = None
                if produto_data.codigo:
                    existente = db.query(Produto).filter(Produto.codigo == produto_data.codigo).first()

                if existente:
                    for key, value in values.items():
                        setattr(existente, key, value)
                    existente.ativo = ativo
                    result.atualizados += 1
                else:
                    db.add(Produto(**values, ativo=ativo))
                    result.importados += 1
        except (ValidationError, SQLAlchemyError) as e:
            result.erros.append(import_error(registro, e))

    db.commit()
    logger.info(f"[IMPORT] produtos: {result.importados} new, {result.atualizados} updated, {len(result.erros)} errors")

    log_activity(
        db, current_user, "importar", "produto", None, arquivo.filename,
        details={"modo": modo, "importados": result.importados, "atualizados": result.atualizados},
        request=request
    )
    return result


@router.get("/{chave}")
async def get_configuracao(
    chave: str,
    current_user: Usuario = Depends(check_superadmin_role),
    db: Session = Depends(get_db)
):
    """
    Get a configuration by key
    """
    configuracao = db.query(Configuracao).filter(Configuracao.chave == chave).first()
    if not configuracao:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Configuração não encontrada"
        )
    return {"configuracao": ConfiguracaoResponse.model_validate(configuracao)}


@router.put("/{chave}")
async def update_configuracao(
    request: Request,
    chave: str,
    config_data: ConfiguracaoUpdate,
    current_user: Usuario = Depends(check_superadmin_role),
    db: Session = Depends(get_db)
):
    """
    Set a configuration value, creating the key when it does not exist
    """
    configuracao = db.query(Configuracao).filter(Configuracao.chave == chave).first()
    created = configuracao is None
    if created:
        configuracao = Configuracao(chave=chave)
        db.add(configuracao)

    configuracao.valor = config_data.valor
    if config_data.descricao is not None:
        configuracao.descricao = config_data.descricao
    configuracao.updated_by = current_user.id
    configuracao.updated_at = datetime.utcnow()

    db.commit()
    db.refresh(configuracao)

    log_activity(
        db, current_user, "atualizar", "configuracao", configuracao.id, chave,
        details={"valor": config_data.valor}, request=request
    )
    return {
        "message": "Configuração criada com sucesso" if created else "Configuração atualizada com sucesso",
        "configuracao": ConfiguracaoResponse.model_validate(configuracao)
    }

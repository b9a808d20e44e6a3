import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from quatrelati.database import get_db
from quatrelati.dependencies import get_current_user, can_view_all, get_vendedor_id
from quatrelati.models.clientes import Cliente
from quatrelati.models.pedidos import Pedido
from quatrelati.models.usuarios import Usuario
from quatrelati.schemas.clientes import ClienteCreate, ClienteUpdate, ClienteWithStatsResponse
from quatrelati.schemas.pedidos import PedidoResponse
from quatrelati.utils.activity_log import log_activity

logger = logging.getLogger(__name__)

router = APIRouter()

CLIENTE_NOT_FOUND = "Cliente não encontrado"


def _pedidos_aggregate(aggregate):
    return (
        select(aggregate)
        .where(Pedido.cliente_id == Cliente.id)
        .correlate(Cliente)
        .scalar_subquery()
    )


def pedido_stats_columns():
    """Correlated subqueries with the pedidos totals of each cliente"""
    total_pedidos = _pedidos_aggregate(func.count(Pedido.id))
    valor_total = _pedidos_aggregate(func.coalesce(func.sum(Pedido.total), 0))
    peso_total = _pedidos_aggregate(func.coalesce(func.sum(Pedido.peso_kg), 0))
    return total_pedidos, valor_total, peso_total


def serialize_cliente(cliente: Cliente, total_pedidos=0, valor_total=0, peso_total=None) -> ClienteWithStatsResponse:
    data = ClienteWithStatsResponse.model_validate(cliente)
    data.total_pedidos = int(total_pedidos or 0)
    data.valor_total_pedidos = float(valor_total or 0)
    data.peso_total_pedidos = float(peso_total) if peso_total is not None else None
    return data


def can_see_cliente(user: Usuario, cliente: Cliente) -> bool:
    return can_view_all(user) or cliente.vendedor_id == user.id


def can_edit_cliente(user: Usuario, cliente: Cliente) -> bool:
    return user.is_admin or cliente.vendedor_id == user.id


def get_cliente_or_404(db: Session, cliente_id: int) -> Cliente:
    cliente = db.query(Cliente).filter(Cliente.id == cliente_id).first()
    if not cliente:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=CLIENTE_NOT_FOUND
        )
    return cliente


def ensure_cnpj_available(db: Session, cnpj_cpf: Optional[str], exclude_id: Optional[int] = None) -> None:
    if not cnpj_cpf:
        return
    query = db.query(Cliente).filter(Cliente.cnpj_cpf == cnpj_cpf)
    if exclude_id is not None:
        query = query.filter(Cliente.id != exclude_id)
    if query.first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="CNPJ/CPF já cadastrado"
        )


@router.get("/")
async def list_clientes(
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    search: Optional[str] = None,
    ativo: Optional[bool] = None,
    vendedor_id: Optional[int] = Query(None, ge=1),
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    List clientes with their pedidos totals
    """
    total_pedidos, valor_total, _ = pedido_stats_columns()
    query = db.query(Cliente, total_pedidos, valor_total)

    # Vendedores only see their own carteira
    vendedor_filter = get_vendedor_id(current_user, vendedor_id)
    if vendedor_filter is not None:
        query = query.filter(Cliente.vendedor_id == vendedor_filter)

    if ativo is not None:
        query = query.filter(Cliente.ativo == ativo)

    if search:
        query = query.filter(
            or_(
                Cliente.nome.ilike(f"%{search}%"),
                Cliente.cidade.ilike(f"%{search}%")
            )
        )

    total = query.count()
    rows = query.order_by(Cliente.nome).offset((page - 1) * limit).limit(limit).all()

    return {
        "clientes": [serialize_cliente(c, count, valor) for c, count, valor in rows],
        "total": total,
        "page": page,
        "size": limit,
        "pages": math.ceil(total / limit) if total else 0
    }


@router.get("/{cliente_id}")
async def get_cliente(
    cliente_id: int,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Get cliente by ID with its pedidos totals
    """
    total_pedidos, valor_total, peso_total = pedido_stats_columns()
    row = db.query(Cliente, total_pedidos, valor_total, peso_total).filter(Cliente.id == cliente_id).first()

    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=CLIENTE_NOT_FOUND
        )

    cliente, count, valor, peso = row
    if not can_see_cliente(current_user, cliente):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Você não tem permissão para visualizar este cliente"
        )

    return {"cliente": serialize_cliente(cliente, count, valor, peso)}


@router.get("/{cliente_id}/pedidos")
async def get_cliente_pedidos(
    cliente_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Pedido history of a cliente
    """
    cliente = get_cliente_or_404(db, cliente_id)
    if not can_see_cliente(current_user, cliente):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Você não tem permissão para visualizar este cliente"
        )

    query = db.query(Pedido).filter(Pedido.cliente_id == cliente_id)
    total = query.count()
    pedidos = query.order_by(Pedido.data_pedido.desc(), Pedido.numero_pedido.desc()) \
        .offset((page - 1) * limit).limit(limit).all()

    return {
        "pedidos": [PedidoResponse.model_validate(p) for p in pedidos],
        "total": total,
        "page": page,
        "size": limit,
        "pages": math.ceil(total / limit) if total else 0
    }


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_cliente(
    request: Request,
    cliente_data: ClienteCreate,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create a new cliente; vendedores always own the clientes they create
    """
    ensure_cnpj_available(db, cliente_data.cnpj_cpf)

    data = cliente_data.model_dump()
    if not current_user.is_admin or not data.get("vendedor_id"):
        data["vendedor_id"] = current_user.id

    cliente = Cliente(**data, created_by=current_user.id)
    db.add(cliente)
    db.commit()
    db.refresh(cliente)

    log_activity(
        db, current_user, "criar", "cliente", cliente.id, cliente.nome,
        request=request, body=cliente_data.model_dump(mode="json")
    )
    return {
        "message": "Cliente criado com sucesso",
        "cliente": serialize_cliente(cliente)
    }


@router.put("/{cliente_id}")
async def update_cliente(
    request: Request,
    cliente_id: int,
    cliente_data: ClienteUpdate,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Update a cliente (its vendedor or an admin)
    """
    cliente = get_cliente_or_404(db, cliente_id)

    if not can_edit_cliente(current_user, cliente):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Você não tem permissão para editar este cliente"
        )

    update_data = cliente_data.model_dump(exclude_unset=True)

    # Only admins move a cliente to another vendedor
    if not current_user.is_admin:
        update_data.pop("vendedor_id", None)

    if "cnpj_cpf" in update_data:
        ensure_cnpj_available(db, update_data["cnpj_cpf"], exclude_id=cliente.id)

    for key, value in update_data.items():
        if value is None and key in ("nome", "ativo"):
            continue
        setattr(cliente, key, value)

    db.commit()
    db.refresh(cliente)

    log_activity(
        db, current_user, "atualizar", "cliente", cliente.id, cliente.nome,
        request=request, body=cliente_data.model_dump(mode="json", exclude_unset=True)
    )
    return {
        "message": "Cliente atualizado com sucesso",
        "cliente": serialize_cliente(cliente)
    }


@router.delete("/{cliente_id}")
async def delete_cliente(
    request: Request,
    cliente_id: int,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Delete a cliente, or deactivate it when it has pedidos
    """
    cliente = get_cliente_or_404(db, cliente_id)

    if not can_edit_cliente(current_user, cliente):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Você não tem permissão para excluir este cliente"
        )

    nome = cliente.nome
    has_pedidos = db.query(Pedido.id).filter(Pedido.cliente_id == cliente.id).first() is not None
    if has_pedidos:
        cliente.ativo = False
        db.commit()
        message = "Cliente desativado (possui pedidos vinculados)"
    else:
        db.delete(cliente)
        db.commit()
        message = "Cliente excluído com sucesso"

    log_activity(
        db, current_user, "excluir", "cliente", cliente_id, nome,
        details={"soft_delete": has_pedidos}, request=request
    )
    return {"message": message}

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import distinct, func, or_, select
from sqlalchemy.orm import Session
from typing import Optional

from quatrelati.database import get_db
from quatrelati.dependencies import get_current_user, check_admin_role
from quatrelati.models.pedidos import PedidoItem
from quatrelati.models.produtos import Produto
from quatrelati.models.usuarios import Usuario
from quatrelati.schemas.produtos import ProdutoCreate, ProdutoUpdate, ProdutoResponse, ProdutoWithStatsResponse
from quatrelati.utils.activity_log import log_activity

router = APIRouter()

PRODUTO_NOT_FOUND = "Produto não encontrado"


def _itens_aggregate(aggregate):
    return (
        select(aggregate)
        .where(PedidoItem.produto_id == Produto.id)
        .correlate(Produto)
        .scalar_subquery()
    )


def get_produto_or_404(db: Session, produto_id: int) -> Produto:
    produto = db.query(Produto).filter(Produto.id == produto_id).first()
    if not produto:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=PRODUTO_NOT_FOUND
        )
    return produto


def ensure_codigo_available(db: Session, codigo: Optional[str], exclude_id: Optional[int] = None) -> None:
    if not codigo:
        return
    query = db.query(Produto).filter(Produto.codigo == codigo)
    if exclude_id is not None:
        query = query.filter(Produto.id != exclude_id)
    if query.first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Código de produto já cadastrado"
        )


@router.get("/")
async def list_produtos(
    ativo: Optional[bool] = None,
    search: Optional[str] = None,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    List produtos with their sales figures
    """
    total_pedidos = _itens_aggregate(func.count(distinct(PedidoItem.pedido_id)))
    total_caixas = _itens_aggregate(func.coalesce(func.sum(PedidoItem.quantidade_caixas), 0))
    valor_total = _itens_aggregate(func.coalesce(func.sum(PedidoItem.subtotal), 0))

    query = db.query(Produto, total_pedidos, total_caixas, valor_total)

    if ativo is not None:
        query = query.filter(Produto.ativo == ativo)

    if search:
        query = query.filter(
            or_(
                Produto.nome.ilike(f"%{search}%"),
                Produto.descricao.ilike(f"%{search}%"),
                Produto.codigo.ilike(f"%{search}%")
            )
        )

    produtos = []
    for produto, pedidos_count, caixas, valor in query.order_by(Produto.nome).all():
        data = ProdutoWithStatsResponse.model_validate(produto)
        data.total_pedidos = int(pedidos_count or 0)
        data.total_caixas_vendidas = int(caixas or 0)
        data.valor_total_vendas = float(valor or 0)
        produtos.append(data)

    return {"produtos": produtos}


@router.get("/{produto_id}")
async def get_produto(
    produto_id: int,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Get produto by ID
    """
    return {"produto": ProdutoResponse.model_validate(get_produto_or_404(db, produto_id))}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_produto(
    request: Request,
    produto_data: ProdutoCreate,
    current_user: Usuario = Depends(check_admin_role),
    db: Session = Depends(get_db)
):
    """
    Create a new produto
    """
    ensure_codigo_available(db, produto_data.codigo)

    data = produto_data.model_dump()
    if data.get("preco_padrao") is None:
        data["preco_padrao"] = 0

    produto = Produto(**data)
    db.add(produto)
    db.commit()
    db.refresh(produto)

    log_activity(
        db, current_user, "criar", "produto", produto.id, produto.nome,
        request=request, body=produto_data.model_dump(mode="json")
    )
    return {
        "message": "Produto criado com sucesso",
        "produto": ProdutoResponse.model_validate(produto)
    }


@router.put("/{produto_id}")
async def update_produto(
    request: Request,
    produto_id: int,
    produto_data: ProdutoUpdate,
    current_user: Usuario = Depends(check_admin_role),
    db: Session = Depends(get_db)
):
    """
    Update produto information
    """
    produto = get_produto_or_404(db, produto_id)
    update_data = produto_data.model_dump(exclude_unset=True)

    if "codigo" in update_data:
        ensure_codigo_available(db, update_data["codigo"], exclude_id=produto.id)

    for key, value in update_data.items():
        if value is None and key in ("nome", "peso_caixa_kg", "ativo"):
            continue
        setattr(produto, key, value)

    db.commit()
    db.refresh(produto)

    log_activity(
        db, current_user, "atualizar", "produto", produto.id, produto.nome,
        request=request, body=produto_data.model_dump(mode="json", exclude_unset=True)
    )
    return {
        "message": "Produto atualizado com sucesso",
        "produto": ProdutoResponse.model_validate(produto)
    }


@router.delete("/{produto_id}")
async def delete_produto(
    request: Request,
    produto_id: int,
    current_user: Usuario = Depends(check_admin_role),
    db: Session = Depends(get_db)
):
    """
    Delete a produto, or deactivate it when pedidos use it
    """
    produto = get_produto_or_404(db, produto_id)
    nome = produto.nome

    in_use = db.query(PedidoItem.id).filter(PedidoItem.produto_id == produto.id).first() is not None
    if in_use:
        produto.ativo = False
        db.commit()
        message = "Produto desativado (possui pedidos vinculados)"
    else:
        db.delete(produto)
        db.commit()
        message = "Produto excluído com sucesso"

    log_activity(
        db, current_user, "excluir", "produto", produto_id, nome,
        details={"soft_delete": in_use}, request=request
    )
    return {"message": message}

import logging
import math
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Literal, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy import case, extract, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quatrelati.database import get_db
from quatrelati.dependencies import get_current_user, can_view_all, get_vendedor_id
from quatrelati.models.clientes import Cliente
from quatrelati.models.pedidos import Pedido, PedidoItem
from quatrelati.models.produtos import Produto
from quatrelati.models.usuarios import Usuario
from quatrelati.schemas.pedidos import (
    PedidoCreate, PedidoUpdate, PedidoEntregar, PedidoItemCreate,
    PedidoResponse, PedidoMessageResponse
)
from quatrelati.utils.activity_log import log_activity
from quatrelati.utils.pdf_utils import generate_pedido_pdf, generate_pedidos_report_pdf

logger = logging.getLogger(__name__)

router = APIRouter()

PEDIDO_NOT_FOUND = "Pedido não encontrado"

CENTS = Decimal("0.01")
PRICE_PLACES = Decimal("0.0001")


class PedidoFilters:
    """Query parameters shared by the list and the PDF export"""

    def __init__(
        self,
        mes: Optional[int] = Query(None, ge=1, le=12),
        ano: Optional[int] = Query(None, ge=2020, le=2100),
        cliente_id: Optional[int] = Query(None, ge=1),
        produto_id: Optional[int] = Query(None, ge=1),
        vendedor_id: Optional[int] = Query(None, ge=1),
        status: Literal["entregue", "pendente", "todos"] = "todos",
    ):
        self.mes = mes
        self.ano = ano
        self.cliente_id = cliente_id
        self.produto_id = produto_id
        self.vendedor_id = vendedor_id
        self.status = status

    def apply(self, query, user: Usuario):
        # Users without pode_visualizar_todos only see what they created
        vendedor = get_vendedor_id(user, self.vendedor_id)
        if vendedor is not None:
            query = query.filter(Pedido.created_by == vendedor)

        # Period filters use the delivery date
        if self.mes and self.ano:
            query = query.filter(
                extract("month", Pedido.data_entrega) == self.mes,
                extract("year", Pedido.data_entrega) == self.ano
            )
        elif self.ano:
            query = query.filter(extract("year", Pedido.data_entrega) == self.ano)

        if self.cliente_id:
            query = query.filter(Pedido.cliente_id == self.cliente_id)

        if self.produto_id:
            query = query.filter(
                Pedido.itens.any(PedidoItem.produto_id == self.produto_id)
            )

        if self.status != "todos":
            query = query.filter(Pedido.entregue == (self.status == "entregue"))

        return query


def compute_totais(query) -> Dict[str, Any]:
    """Totals of a filtered pedidos query, split by delivery status"""
    entregue = Pedido.entregue == True
    pendente = Pedido.entregue == False

    def split(condition, column):
        return func.coalesce(func.sum(case((condition, column), else_=0)), 0)

    row = query.with_entities(
        func.coalesce(func.sum(Pedido.total), 0),
        func.coalesce(func.sum(Pedido.peso_kg), 0),
        func.coalesce(func.sum(Pedido.quantidade_caixas), 0),
        func.count(Pedido.id),
        func.coalesce(func.sum(case((entregue, 1), else_=0)), 0),
        func.coalesce(func.sum(case((pendente, 1), else_=0)), 0),
        split(pendente, Pedido.peso_kg),
        split(pendente, Pedido.quantidade_caixas),
        split(pendente, Pedido.total),
        split(entregue, Pedido.peso_kg),
        split(entregue, Pedido.quantidade_caixas),
        split(entregue, Pedido.total),
    ).order_by(None).one()

    return {
        "valor_total": float(row[0]),
        "peso_total": float(row[1]),
        "unidades_total": int(row[2]),
        "quantidade_pedidos": int(row[3]),
        "entregues": int(row[4]),
        "pendentes": int(row[5]),
        "peso_pendente": float(row[6]),
        "unidades_pendente": int(row[7]),
        "valor_pendente": float(row[8]),
        "peso_entregue": float(row[9]),
        "unidades_entregue": int(row[10]),
        "valor_entregue": float(row[11]),
    }


def next_numero_pedido(db: Session, data_pedido: date) -> str:
    """YYMM of data_pedido followed by the next two-digit sequence of that month"""
    prefix = data_pedido.strftime("%y%m")
    last = db.query(Pedido.numero_pedido).filter(
        Pedido.numero_pedido.like(f"{prefix}%")
    ).order_by(Pedido.numero_pedido.desc()).first()

    sequencial = int(last[0][4:]) + 1 if last else 1
    return f"{prefix}{sequencial:02d}"


def build_itens(db: Session, itens: List[PedidoItemCreate]) -> Tuple[List[PedidoItem], int, Decimal, Decimal]:
    """
    Price every line from its produto

    Returns:
        (itens, quantidade_caixas, peso_kg, total)
    """
    built = []
    quantidade = 0
    peso_total = Decimal("0")
    total = Decimal("0")

    for item in itens:
        produto = db.query(Produto).filter(Produto.id == item.produto_id).first()
        if not produto:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Produto {item.produto_id} não encontrado"
            )

        peso = Decimal(str(produto.peso_caixa_kg)) * item.quantidade_caixas
        subtotal = (peso * item.preco_unitario).quantize(CENTS, rounding=ROUND_HALF_UP)

        built.append(PedidoItem(
            produto_id=produto.id,
            quantidade_caixas=item.quantidade_caixas,
            peso_kg=peso,
            preco_unitario=item.preco_unitario,
            subtotal=subtotal
        ))
        quantidade += item.quantidade_caixas
        peso_total += peso
        total += subtotal

    return built, quantidade, peso_total, total


def ensure_cliente_exists(db: Session, cliente_id: int) -> None:
    if not db.query(Cliente.id).filter(Cliente.id == cliente_id).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cliente não encontrado"
        )


def get_pedido_for_user(db: Session, pedido_id: int, user: Usuario) -> Pedido:
    pedido = db.query(Pedido).filter(Pedido.id == pedido_id).first()
    if not pedido:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=PEDIDO_NOT_FOUND
        )
    if not can_view_all(user) and pedido.created_by != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Você não tem permissão para acessar este pedido"
        )
    return pedido


def commit_pedido(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Pedido rejected by the database: {str(e.orig)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Número de pedido já existe"
        )


def pedido_log_details(pedido: Pedido) -> Dict[str, Any]:
    return {
        "numero_pedido": pedido.numero_pedido,
        "cliente_id": pedido.cliente_id,
        "total": float(pedido.total or 0),
    }


@router.get("/")
async def list_pedidos(
    filters: PedidoFilters = Depends(),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    List pedidos with their itens and the totals of the filtered period
    """
    query = filters.apply(db.query(Pedido), current_user)

    total = query.count()
    pedidos = query.order_by(Pedido.data_pedido.desc(), Pedido.numero_pedido.desc()) \
        .offset((page - 1) * limit).limit(limit).all()

    return {
        "pedidos": [PedidoResponse.model_validate(p) for p in pedidos],
        "total": total,
        "page": page,
        "size": limit,
        "pages": math.ceil(total / limit) if total else 0,
        "totais": compute_totais(query)
    }


@router.get("/exportar/pdf")
async def export_pedidos_pdf(
    filters: PedidoFilters = Depends(),
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    PDF report of the filtered pedidos, ordered by delivery date
    """
    query = filters.apply(db.query(Pedido), current_user)
    pedidos = query.order_by(Pedido.data_entrega.asc(), Pedido.numero_pedido.asc()).all()

    vendedor_id = get_vendedor_id(current_user, filters.vendedor_id)
    vendedor_nome = None
    if vendedor_id:
        vendedor = db.query(Usuario).filter(Usuario.id == vendedor_id).first()
        vendedor_nome = vendedor.nome if vendedor else None

    report = {
        "mes": filters.mes,
        "ano": filters.ano,
        "vendedor_nome": vendedor_nome,
        "totais": compute_totais(query),
        "pedidos": [PedidoResponse.model_validate(p).model_dump() for p in pedidos],
    }
    pdf = generate_pedidos_report_pdf(report)

    filename = f"pedidos-quatrelati-{filters.ano or 'todos'}-{filters.mes or 'todos'}.pdf"
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/{pedido_id}")
async def get_pedido(
    pedido_id: int,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Get pedido by ID with its itens
    """
    pedido = get_pedido_for_user(db, pedido_id, current_user)
    return {"pedido": PedidoResponse.model_validate(pedido)}


@router.get("/{pedido_id}/pdf")
async def get_pedido_pdf(
    pedido_id: int,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    PDF of a single pedido
    """
    pedido = get_pedido_for_user(db, pedido_id, current_user)

    data = PedidoResponse.model_validate(pedido).model_dump()
    cliente = pedido.cliente
    data.update({
        "cliente_cnpj": cliente.cnpj_cpf if cliente else None,
        "cliente_telefone": cliente.telefone if cliente else None,
        "cliente_endereco_entrega": (cliente.endereco_entrega or cliente.endereco) if cliente else None,
    })
    pdf = generate_pedido_pdf(data)

    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=pedido-{pedido.numero_pedido}.pdf"}
    )


@router.post("/", response_model=PedidoMessageResponse, status_code=status.HTTP_201_CREATED)
async def create_pedido(
    request: Request,
    pedido_data: PedidoCreate,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create a pedido with one or more itens
    """
    ensure_cliente_exists(db, pedido_data.cliente_id)
    itens, quantidade, peso, total = build_itens(db, pedido_data.itens)

    pedido = Pedido(
        numero_pedido=next_numero_pedido(db, pedido_data.data_pedido),
        data_pedido=pedido_data.data_pedido,
        cliente_id=pedido_data.cliente_id,
        nf=pedido_data.nf,
        data_entrega=pedido_data.data_entrega,
        observacoes=pedido_data.observacoes,
        preco_descarga_pallet=pedido_data.preco_descarga_pallet,
        horario_recebimento=pedido_data.horario_recebimento,
        quantidade_caixas=quantidade,
        peso_kg=peso,
        # Header price is the first line's price until the itens are edited
        preco_unitario=itens[0].preco_unitario,
        total=total,
        created_by=current_user.id,
        itens=itens
    )
    db.add(pedido)
    commit_pedido(db)
    db.refresh(pedido)

    log_activity(
        db, current_user, "criar", "pedido", pedido.id, pedido.numero_pedido,
        details=pedido_log_details(pedido), request=request
    )
    return {"message": "Pedido criado com sucesso", "pedido": PedidoResponse.model_validate(pedido)}


@router.put("/{pedido_id}", response_model=PedidoMessageResponse)
async def update_pedido(
    request: Request,
    pedido_id: int,
    pedido_data: PedidoUpdate,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Update a pedido; when itens is sent every line is replaced and the
    header totals recomputed
    """
    pedido = get_pedido_for_user(db, pedido_id, current_user)
    update_data = pedido_data.model_dump(exclude_unset=True)
    novos_itens = update_data.pop("itens", None)

    if update_data.get("cliente_id"):
        ensure_cliente_exists(db, update_data["cliente_id"])

    if "created_by" in update_data and not can_view_all(current_user):
        update_data.pop("created_by")

    for key, value in update_data.items():
        if value is None and key in ("data_pedido", "cliente_id", "entregue", "created_by"):
            continue
        setattr(pedido, key, value)

    if novos_itens:
        itens, quantidade, peso, total = build_itens(db, pedido_data.itens)
        pedido.itens = itens
        pedido.quantidade_caixas = quantidade
        pedido.peso_kg = peso
        pedido.total = total
        # Weighted average price per kg
        pedido.preco_unitario = (total / peso).quantize(PRICE_PLACES, rounding=ROUND_HALF_UP) \
            if peso > 0 else itens[0].preco_unitario

    commit_pedido(db)
    db.refresh(pedido)

    log_activity(
        db, current_user, "atualizar", "pedido", pedido.id, pedido.numero_pedido,
        details=pedido_log_details(pedido), request=request
    )
    return {"message": "Pedido atualizado com sucesso", "pedido": PedidoResponse.model_validate(pedido)}


@router.delete("/{pedido_id}")
async def delete_pedido(
    request: Request,
    pedido_id: int,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Delete a pedido and its itens
    """
    pedido = get_pedido_for_user(db, pedido_id, current_user)
    details = pedido_log_details(pedido)
    numero = pedido.numero_pedido

    db.delete(pedido)
    db.commit()

    log_activity(
        db, current_user, "excluir", "pedido", pedido_id, numero,
        details=details, request=request
    )
    return {"message": "Pedido excluído com sucesso"}


@router.patch("/{pedido_id}/entregar", response_model=PedidoMessageResponse)
async def mark_entregue(
    request: Request,
    pedido_id: int,
    entrega: Optional[PedidoEntregar] = None,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Mark a pedido as delivered (today unless a date is given)
    """
    pedido = get_pedido_for_user(db, pedido_id, current_user)
    pedido.entregue = True
    pedido.data_entrega_real = (entrega.data_entrega_real if entrega else None) or date.today()
    db.commit()
    db.refresh(pedido)

    log_activity(
        db, current_user, "entregar", "pedido", pedido.id, pedido.numero_pedido,
        details={"data_entrega_real": pedido.data_entrega_real.isoformat()}, request=request
    )
    return {"message": "Pedido marcado como entregue", "pedido": PedidoResponse.model_validate(pedido)}


@router.patch("/{pedido_id}/reverter-entrega", response_model=PedidoMessageResponse)
async def revert_entrega(
    request: Request,
    pedido_id: int,
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Put a delivered pedido back to pending
    """
    pedido = get_pedido_for_user(db, pedido_id, current_user)
    pedido.entregue = False
    pedido.data_entrega_real = None
    db.commit()
    db.refresh(pedido)

    log_activity(
        db, current_user, "reverter_entrega", "pedido", pedido.id, pedido.numero_pedido,
        request=request
    )
    return {"message": "Entrega revertida com sucesso", "pedido": PedidoResponse.model_validate(pedido)}

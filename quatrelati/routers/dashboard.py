import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import and_, case, distinct, extract, func
from sqlalchemy.orm import Session

from quatrelati.database import get_db
from quatrelati.dependencies import get_current_user, check_admin_role, can_view_all, get_vendedor_id
from quatrelati.models.clientes import Cliente
from quatrelati.models.pedidos import Pedido, PedidoItem
from quatrelati.models.produtos import Produto
from quatrelati.models.usuarios import Usuario
from quatrelati.schemas.pedidos import PedidoResponse

logger = logging.getLogger(__name__)

router = APIRouter()

MESES_ABREV = ["Jan", "Fev", "Mar", "Abr", "Mai", "Jun", "Jul", "Ago", "Set", "Out", "Nov", "Dez"]


def filter_period(query, mes: Optional[int], ano: Optional[int]):
    """Restrict a pedidos query to the delivery month, when both are given"""
    if mes and ano:
        query = query.filter(
            extract("month", Pedido.data_entrega) == mes,
            extract("year", Pedido.data_entrega) == ano
        )
    return query


def filter_vendedor(query, vendedor_id: Optional[int]):
    if vendedor_id is not None:
        query = query.filter(Pedido.created_by == vendedor_id)
    return query


def previous_month(mes: int, ano: int):
    if mes == 1:
        return 12, ano - 1
    return mes - 1, ano


def variacao(atual: float, anterior: float) -> float:
    """Percent change, 0 when there is nothing to compare against"""
    if not anterior:
        return 0
    return round((atual - anterior) / anterior * 100, 1)


def month_totals(db: Session, mes: int, ano: int, vendedor_id: Optional[int]) -> dict:
    query = db.query(
        func.count(Pedido.id),
        func.coalesce(func.sum(Pedido.total), 0),
        func.coalesce(func.sum(Pedido.peso_kg), 0),
        func.coalesce(func.sum(Pedido.quantidade_caixas), 0),
        func.coalesce(func.sum(case((Pedido.entregue == True, 1), else_=0)), 0),
        func.coalesce(func.sum(case((Pedido.entregue == False, 1), else_=0)), 0),
    )
    query = filter_vendedor(filter_period(query, mes, ano), vendedor_id)
    row = query.one()

    return {
        "total_pedidos": int(row[0]),
        "valor_total": float(row[1]),
        "peso_total": float(row[2]),
        "total_caixas": int(row[3]),
        "entregues": int(row[4]),
        "pendentes": int(row[5]),
    }


@router.get("/resumo")
async def get_resumo(
    mes: Optional[int] = Query(None, ge=1, le=12),
    ano: Optional[int] = Query(None, ge=2020, le=2100),
    vendedor_id: Optional[int] = Query(None, ge=1),
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Monthly summary compared with the previous month
    """
    hoje = date.today()
    mes = mes or hoje.month
    ano = ano or hoje.year
    vendedor = get_vendedor_id(current_user, vendedor_id)

    atual = month_totals(db, mes, ano, vendedor)
    mes_anterior, ano_anterior = previous_month(mes, ano)
    anterior = month_totals(db, mes_anterior, ano_anterior, vendedor)

    total = atual["total_pedidos"]
    atual["taxa_entrega"] = round(atual["entregues"] / total * 100, 1) if total else 0

    return {
        "mes": mes,
        "ano": ano,
        "resumo": atual,
        "comparativo": {
            "pedidos_variacao": variacao(atual["total_pedidos"], anterior["total_pedidos"]),
            "valor_variacao": variacao(atual["valor_total"], anterior["valor_total"]),
            "peso_variacao": variacao(atual["peso_total"], anterior["peso_total"]),
        }
    }


@router.get("/stats")
async def get_stats(
    vendedor_id: Optional[int] = Query(None, ge=1),
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    All-time figures
    """
    vendedor = get_vendedor_id(current_user, vendedor_id)

    total_clientes = db.query(func.count(Cliente.id)).filter(Cliente.ativo == True).scalar()
    total_produtos = db.query(func.count(Produto.id)).filter(Produto.ativo == True).scalar()

    pedidos = filter_vendedor(db.query(
        func.count(Pedido.id),
        func.coalesce(func.sum(Pedido.total), 0),
        func.coalesce(func.sum(Pedido.peso_kg), 0),
    ), vendedor).one()

    return {
        "stats": {
            "total_clientes": int(total_clientes or 0),
            "total_produtos": int(total_produtos or 0),
            "total_pedidos": int(pedidos[0]),
            "faturamento_total": float(pedidos[1]),
            "peso_total_vendido": float(pedidos[2]),
        }
    }


@router.get("/top-clientes")
async def get_top_clientes(
    mes: Optional[int] = Query(None, ge=1, le=12),
    ano: Optional[int] = Query(None, ge=2020, le=2100),
    vendedor_id: Optional[int] = Query(None, ge=1),
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Five clientes with the highest pedidos value
    """
    valor_total = func.coalesce(func.sum(Pedido.total), 0)
    query = db.query(
        Cliente.id,
        Cliente.nome,
        func.count(Pedido.id),
        valor_total,
        func.coalesce(func.sum(Pedido.peso_kg), 0),
    ).join(Pedido, Pedido.cliente_id == Cliente.id)

    query = filter_period(query, mes, ano)
    query = filter_vendedor(query, get_vendedor_id(current_user, vendedor_id))
    rows = query.group_by(Cliente.id, Cliente.nome).order_by(valor_total.desc()).limit(5).all()

    return {
        "clientes": [
            {
                "id": row[0],
                "nome": row[1],
                "total_pedidos": int(row[2]),
                "valor_total": float(row[3]),
                "peso_total": float(row[4]),
            }
            for row in rows
        ]
    }


@router.get("/top-produtos")
async def get_top_produtos(
    mes: Optional[int] = Query(None, ge=1, le=12),
    ano: Optional[int] = Query(None, ge=2020, le=2100),
    vendedor_id: Optional[int] = Query(None, ge=1),
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Five best selling produtos by boxes, taken from the pedido itens
    """
    total_caixas = func.coalesce(func.sum(PedidoItem.quantidade_caixas), 0)
    query = db.query(
        Produto.id,
        Produto.nome,
        func.count(distinct(PedidoItem.pedido_id)),
        total_caixas,
        func.coalesce(func.sum(PedidoItem.peso_kg), 0),
        func.coalesce(func.sum(PedidoItem.subtotal), 0),
    ).join(PedidoItem, PedidoItem.produto_id == Produto.id) \
        .join(Pedido, Pedido.id == PedidoItem.pedido_id)

    query = filter_period(query, mes, ano)
    query = filter_vendedor(query, get_vendedor_id(current_user, vendedor_id))
    rows = query.group_by(Produto.id, Produto.nome).order_by(total_caixas.desc()).limit(5).all()

    return {
        "produtos": [
            {
                "id": row[0],
                "nome": row[1],
                "total_pedidos": int(row[2]),
                "total_caixas": int(row[3]),
                "peso_total": float(row[4]),
                "valor_total": float(row[5]),
            }
            for row in rows
        ]
    }


@router.get("/evolucao")
async def get_evolucao(
    vendedor_id: Optional[int] = Query(None, ge=1),
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Monthly totals of the last six months, current month included
    """
    hoje = date.today()
    mes, ano = hoje.month, hoje.year
    for _ in range(5):
        mes, ano = previous_month(mes, ano)
    inicio = date(ano, mes, 1)

    ano_col = extract("year", Pedido.data_entrega)
    mes_col = extract("month", Pedido.data_entrega)
    query = db.query(
        ano_col,
        mes_col,
        func.count(Pedido.id),
        func.coalesce(func.sum(Pedido.total), 0),
        func.coalesce(func.sum(Pedido.peso_kg), 0),
        func.coalesce(func.sum(case((Pedido.entregue == True, 1), else_=0)), 0),
    ).filter(Pedido.data_entrega >= inicio)

    query = filter_vendedor(query, get_vendedor_id(current_user, vendedor_id))
    rows = query.group_by(ano_col, mes_col).order_by(ano_col, mes_col).all()

    evolucao = []
    for row in rows:
        row_ano, row_mes = int(row[0]), int(row[1])
        evolucao.append({
            "periodo": f"{MESES_ABREV[row_mes - 1]}/{row_ano}",
            "mes": row_mes,
            "ano": row_ano,
            "total_pedidos": int(row[2]),
            "valor_total": float(row[3]),
            "peso_total": float(row[4]),
            "entregues": int(row[5]),
        })

    return {"evolucao": evolucao}


@router.get("/proximas-entregas")
async def get_proximas_entregas(
    vendedor_id: Optional[int] = Query(None, ge=1),
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Pending deliveries due within the next seven days
    """
    hoje = date.today()
    query = db.query(Pedido).filter(
        Pedido.entregue == False,
        Pedido.data_entrega >= hoje,
        Pedido.data_entrega <= hoje + timedelta(days=7)
    )
    query = filter_vendedor(query, get_vendedor_id(current_user, vendedor_id))
    pedidos = query.order_by(Pedido.data_entrega.asc()).limit(10).all()

    return {"entregas": [PedidoResponse.model_validate(p) for p in pedidos]}


@router.get("/entregas-atrasadas")
async def get_entregas_atrasadas(
    vendedor_id: Optional[int] = Query(None, ge=1),
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Pending pedidos whose delivery date has passed
    """
    hoje = date.today()
    query = db.query(Pedido).filter(Pedido.entregue == False, Pedido.data_entrega < hoje)
    query = filter_vendedor(query, get_vendedor_id(current_user, vendedor_id))

    atrasados = []
    for pedido in query.order_by(Pedido.data_entrega.asc()).all():
        data = PedidoResponse.model_validate(pedido).model_dump()
        data["dias_atraso"] = (hoje - pedido.data_entrega).days
        atrasados.append(data)

    return {"atrasados": atrasados}


@router.get("/empresa")
async def get_dashboard_empresa(
    mes: Optional[int] = Query(None, ge=1, le=12),
    ano: Optional[int] = Query(None, ge=2020, le=2100),
    current_user: Usuario = Depends(check_admin_role),
    db: Session = Depends(get_db)
):
    """
    Company-wide dashboard broken down by vendedor
    """
    hoje = date.today()
    mes = mes or hoje.month
    ano = ano or hoje.year

    resumo = month_totals(db, mes, ano, None)

    # Pedidos of the month, joined on the outer side so idle vendedores still show
    no_periodo = and_(
        Pedido.created_by == Usuario.id,
        extract("month", Pedido.data_entrega) == mes,
        extract("year", Pedido.data_entrega) == ano
    )
    total_clientes = db.query(func.count(Cliente.id)) \
        .filter(Cliente.vendedor_id == Usuario.id) \
        .correlate(Usuario).scalar_subquery()
    valor_total = func.coalesce(func.sum(Pedido.total), 0)

    vendedores = db.query(
        Usuario.id,
        Usuario.nome,
        Usuario.email,
        func.count(Pedido.id),
        valor_total,
        func.coalesce(func.sum(Pedido.peso_kg), 0),
        func.coalesce(func.sum(Pedido.quantidade_caixas), 0),
        func.coalesce(func.sum(case((Pedido.entregue == True, 1), else_=0)), 0),
        func.coalesce(func.sum(case((Pedido.entregue == False, 1), else_=0)), 0),
        total_clientes,
    ).outerjoin(Pedido, no_periodo) \
        .filter(Usuario.nivel == "vendedor", Usuario.ativo == True) \
        .group_by(Usuario.id, Usuario.nome, Usuario.email) \
        .order_by(valor_total.desc()).all()

    por_vendedor = [
        {
            "vendedor_id": row[0],
            "vendedor_nome": row[1],
            "vendedor_email": row[2],
            "total_pedidos": int(row[3]),
            "valor_total": float(row[4]),
            "peso_total": float(row[5]),
            "total_caixas": int(row[6]),
            "entregues": int(row[7]),
            "pendentes": int(row[8]),
            "total_clientes": int(row[9] or 0),
        }
        for row in vendedores
    ]

    cliente_valor = func.coalesce(func.sum(Pedido.total), 0)
    clientes = db.query(
        Cliente.id,
        Cliente.nome,
        Usuario.nome,
        func.count(Pedido.id),
        cliente_valor,
    ).outerjoin(Usuario, Cliente.vendedor_id == Usuario.id) \
        .outerjoin(Pedido, and_(
            Pedido.cliente_id == Cliente.id,
            extract("month", Pedido.data_entrega) == mes,
            extract("year", Pedido.data_entrega) == ano
        )) \
        .group_by(Cliente.id, Cliente.nome, Usuario.nome) \
        .order_by(cliente_valor.desc()).limit(10).all()

    top_clientes = [
        {
            "id": row[0],
            "nome": row[1],
            "vendedor_nome": row[2],
            "total_pedidos": int(row[3]),
            "valor_total": float(row[4]),
        }
        for row in clientes
    ]

    status_rows = filter_period(db.query(
        Pedido.entregue,
        func.count(Pedido.id),
        func.coalesce(func.sum(Pedido.total), 0),
    ), mes, ano).group_by(Pedido.entregue).all()

    por_status = [
        {"entregue": bool(row[0]), "total": int(row[1]), "valor": float(row[2])}
        for row in status_rows
    ]

    return {
        "mes": mes,
        "ano": ano,
        "resumo": resumo,
        "por_vendedor": por_vendedor,
        "top_clientes": top_clientes,
        "por_status": por_status,
    }


@router.get("/vendedores")
async def list_vendedores(
    current_user: Usuario = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Active vendedores and admins, for the dashboard filter
    """
    if not can_view_all(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Acesso negado"
        )

    usuarios = db.query(Usuario).filter(
        Usuario.nivel.in_(("vendedor", "admin")),
        Usuario.ativo == True
    ).order_by(Usuario.nome.asc()).all()

    return {
        "vendedores": [
            {"id": u.id, "nome": u.nome, "email": u.email, "nivel": u.nivel}
            for u in usuarios
        ]
    }

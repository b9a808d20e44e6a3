import os
from datetime import date
from decimal import Decimal

# Point the settings at an in-memory database before the app is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["AWS_ACCESS_KEY_ID"] = ""
os.environ["TWILIO_ACCOUNT_SID"] = ""
os.environ["SITE_API_KEY"] = "test-site-key"

import pytest
from fastapi.testclient import TestClient

import quatrelati.models  # noqa: F401
from quatrelati.database import Base, SessionLocal, engine
from quatrelati.models.clientes import Cliente
from quatrelati.models.pedidos import Pedido, PedidoItem
from quatrelati.models.produtos import Produto
from quatrelati.models.usuarios import Usuario
from quatrelati.rate_limit import reset_limits
from quatrelati.utils.auth import create_access_token, get_password_hash

from fastapi_app import app

DEFAULT_TEST_PASSWORD = "Senha@1234"


@pytest.fixture(autouse=True)
def setup_database():
    """Fresh schema and rate limit counters for every test."""
    Base.metadata.create_all(bind=engine)
    reset_limits()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make_user(nivel="vendedor", **kwargs):
        counter["n"] += 1
        data = {
            "nome": f"Usuario {nivel.title()} {counter['n']}",
            "email": f"{nivel}{counter['n']}@quatrelati.com.br",
            "senha_hash": get_password_hash(DEFAULT_TEST_PASSWORD),
            "nivel": nivel,
            "ativo": True,
            "pode_visualizar_todos": False,
        }
        data.update(kwargs)
        user = Usuario(**data)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def superadmin(make_user):
    return make_user("superadmin", nome="Super Admin", email="super@quatrelati.com.br", pode_visualizar_todos=True)


@pytest.fixture
def admin(make_user):
    return make_user("admin", nome="Ana Admin", email="admin@quatrelati.com.br")


@pytest.fixture
def vendedor(make_user):
    return make_user("vendedor", nome="Vitor Vendedor", email="vendedor@quatrelati.com.br", telefone="(11) 98765-4321")


@pytest.fixture
def outro_vendedor(make_user):
    return make_user("vendedor", nome="Olga Vendedora", email="olga@quatrelati.com.br")


@pytest.fixture
def auth_headers():
    def _auth_headers(user) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _auth_headers


@pytest.fixture
def make_cliente(db_session):
    def _make_cliente(nome="Padaria Central", vendedor=None, **kwargs):
        cliente = Cliente(
            nome=nome,
            vendedor_id=vendedor.id if vendedor else None,
            created_by=vendedor.id if vendedor else None,
            ativo=kwargs.pop("ativo", True),
            **kwargs
        )
        db_session.add(cliente)
        db_session.commit()
        db_session.refresh(cliente)
        return cliente

    return _make_cliente


@pytest.fixture
def make_produto(db_session):
    def _make_produto(nome="Manteiga 500g", peso_caixa_kg="10.000", preco_padrao="25.00", **kwargs):
        produto = Produto(
            nome=nome,
            peso_caixa_kg=Decimal(peso_caixa_kg),
            preco_padrao=Decimal(preco_padrao),
            ativo=kwargs.pop("ativo", True),
            **kwargs
        )
        db_session.add(produto)
        db_session.commit()
        db_session.refresh(produto)
        return produto

    return _make_produto


@pytest.fixture
def make_pedido(db_session):
    """Insert a pedido with a single item, priced the way the API prices it."""
    counter = {"n": 0}

    def _make_pedido(cliente, produto, user, quantidade=10, preco="20.00",
                     data_pedido=None, data_entrega=None, entregue=False):
        counter["n"] += 1
        data_pedido = data_pedido or date.today()
        peso = Decimal(str(produto.peso_caixa_kg)) * quantidade
        subtotal = (peso * Decimal(preco)).quantize(Decimal("0.01"))
        pedido = Pedido(
            numero_pedido=f"{data_pedido.strftime('%y%m')}{counter['n'] + 50:02d}",
            data_pedido=data_pedido,
            data_entrega=data_entrega or data_pedido,
            cliente_id=cliente.id,
            quantidade_caixas=quantidade,
            peso_kg=peso,
            preco_unitario=Decimal(preco),
            total=subtotal,
            entregue=entregue,
            created_by=user.id,
            itens=[PedidoItem(
                produto_id=produto.id,
                quantidade_caixas=quantidade,
                peso_kg=peso,
                preco_unitario=Decimal(preco),
                subtotal=subtotal,
            )]
        )
        db_session.add(pedido)
        db_session.commit()
        db_session.refresh(pedido)
        return pedido

    return _make_pedido

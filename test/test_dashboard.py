from datetime import date, timedelta

import pytest

from quatrelati.routers.dashboard import previous_month, variacao


class TestHelpers:
    @pytest.mark.parametrize("mes, ano, expected", [
        (3, 2026, (2, 2026)),
        (1, 2026, (12, 2025)),
    ])
    def test_previous_month(self, mes, ano, expected):
        assert previous_month(mes, ano) == expected

    def test_variacao(self):
        assert variacao(150, 100) == 50.0
        assert variacao(1, 3) == -66.7
        assert variacao(10, 0) == 0


class TestResumo:
    def test_resumo_compares_with_previous_month(
        self, client, vendedor, make_cliente, make_produto, make_pedido, auth_headers
    ):
        cliente = make_cliente(vendedor=vendedor)
        produto = make_produto(peso_caixa_kg="10.000")
        make_pedido(cliente, produto, vendedor, quantidade=1, preco="10.00", data_entrega=date(2026, 2, 10))
        make_pedido(cliente, produto, vendedor, quantidade=1, preco="10.00", data_entrega=date(2026, 3, 5), entregue=True)
        make_pedido(cliente, produto, vendedor, quantidade=2, preco="10.00", data_entrega=date(2026, 3, 8))

        data = client.get("/api/dashboard/resumo?mes=3&ano=2026", headers=auth_headers(vendedor)).json()

        assert data["mes"] == 3
        assert data["resumo"]["total_pedidos"] == 2
        assert data["resumo"]["valor_total"] == 300.0
        assert data["resumo"]["total_caixas"] == 3
        assert data["resumo"]["taxa_entrega"] == 50.0
        assert data["comparativo"]["pedidos_variacao"] == 100.0
        assert data["comparativo"]["valor_variacao"] == 200.0

    def test_resumo_scoped_to_vendedor(
        self, client, vendedor, outro_vendedor, make_cliente, make_produto, make_pedido, auth_headers
    ):
        produto = make_produto()
        make_pedido(make_cliente(vendedor=outro_vendedor), produto, outro_vendedor, data_entrega=date(2026, 3, 5))

        data = client.get(
            f"/api/dashboard/resumo?mes=3&ano=2026&vendedor_id={outro_vendedor.id}",
            headers=auth_headers(vendedor)
        ).json()

        assert data["resumo"]["total_pedidos"] == 0
        assert data["resumo"]["taxa_entrega"] == 0


class TestRankings:
    def test_stats(self, client, superadmin, vendedor, make_cliente, make_produto, make_pedido, auth_headers):
        make_pedido(make_cliente(vendedor=vendedor), make_produto(peso_caixa_kg="2.000"), vendedor, quantidade=5, preco="3.00")
        make_produto("Inativo", ativo=False)

        stats = client.get("/api/dashboard/stats", headers=auth_headers(superadmin)).json()["stats"]

        assert stats == {
            "total_clientes": 1,
            "total_produtos": 1,
            "total_pedidos": 1,
            "faturamento_total": 30.0,
            "peso_total_vendido": 10.0,
        }

    def test_top_clientes_and_produtos(
        self, client, superadmin, vendedor, make_cliente, make_produto, make_pedido, auth_headers
    ):
        grande = make_cliente("Atacadão", vendedor=vendedor)
        pequeno = make_cliente("Mercearia", vendedor=vendedor)
        manteiga = make_produto("Manteiga")
        queijo = make_produto("Queijo")
        make_pedido(grande, manteiga, vendedor, quantidade=20)
        make_pedido(pequeno, queijo, vendedor, quantidade=5)
        make_pedido(pequeno, queijo, vendedor, quantidade=5)

        headers = auth_headers(superadmin)
        clientes = client.get("/api/dashboard/top-clientes", headers=headers).json()["clientes"]
        produtos = client.get("/api/dashboard/top-produtos", headers=headers).json()["produtos"]

        assert [c["nome"] for c in clientes] == ["Atacadão", "Mercearia"]
        assert clientes[1]["total_pedidos"] == 2
        assert [p["nome"] for p in produtos] == ["Manteiga", "Queijo"]
        assert produtos[1]["total_pedidos"] == 2
        assert produtos[1]["total_caixas"] == 10

    def test_evolucao_labels(self, client, vendedor, make_cliente, make_produto, make_pedido, auth_headers):
        hoje = date.today()
        make_pedido(make_cliente(vendedor=vendedor), make_produto(), vendedor, data_entrega=hoje)

        evolucao = client.get("/api/dashboard/evolucao", headers=auth_headers(vendedor)).json()["evolucao"]

        assert len(evolucao) == 1
        assert evolucao[0]["mes"] == hoje.month
        assert evolucao[0]["periodo"].endswith(f"/{hoje.year}")


class TestEntregas:
    def test_proximas_and_atrasadas(
        self, client, vendedor, make_cliente, make_produto, make_pedido, auth_headers
    ):
        cliente = make_cliente(vendedor=vendedor)
        produto = make_produto()
        hoje = date.today()
        make_pedido(cliente, produto, vendedor, data_entrega=hoje + timedelta(days=3))
        make_pedido(cliente, produto, vendedor, data_entrega=hoje + timedelta(days=30))
        make_pedido(cliente, produto, vendedor, data_entrega=hoje - timedelta(days=4))
        make_pedido(cliente, produto, vendedor, data_entrega=hoje - timedelta(days=9), entregue=True)

        headers = auth_headers(vendedor)
        entregas = client.get("/api/dashboard/proximas-entregas", headers=headers).json()["entregas"]
        atrasados = client.get("/api/dashboard/entregas-atrasadas", headers=headers).json()["atrasados"]

        assert len(entregas) == 1
        assert entregas[0]["data_entrega"] == (hoje + timedelta(days=3)).isoformat()
        assert len(atrasados) == 1
        assert atrasados[0]["dias_atraso"] == 4


class TestEmpresa:
    def test_vendedor_forbidden(self, client, vendedor, auth_headers):
        response = client.get("/api/dashboard/empresa", headers=auth_headers(vendedor))
        assert response.status_code == 403

    def test_breakdown_by_vendedor(
        self, client, admin, vendedor, outro_vendedor, make_cliente, make_produto, make_pedido, auth_headers
    ):
        produto = make_produto(peso_caixa_kg="10.000")
        make_pedido(make_cliente("Cliente A", vendedor=vendedor), produto, vendedor,
                    quantidade=1, preco="10.00", data_entrega=date(2026, 3, 5), entregue=True)
        make_cliente("Cliente B", vendedor=outro_vendedor)

        data = client.get("/api/dashboard/empresa?mes=3&ano=2026", headers=auth_headers(admin)).json()

        assert data["resumo"]["total_pedidos"] == 1
        vendedores = {v["vendedor_nome"]: v for v in data["por_vendedor"]}
        assert vendedores[vendedor.nome]["valor_total"] == 100.0
        assert vendedores[vendedor.nome]["entregues"] == 1
        assert vendedores[outro_vendedor.nome]["total_pedidos"] == 0
        assert vendedores[outro_vendedor.nome]["total_clientes"] == 1
        assert data["top_clientes"][0]["nome"] == "Cliente A"
        assert data["por_status"] == [{"entregue": True, "total": 1, "valor": 100.0}]


class TestVendedores:
    def test_requires_view_all(self, client, vendedor, auth_headers):
        response = client.get("/api/dashboard/vendedores", headers=auth_headers(vendedor))
        assert response.status_code == 403
        assert response.json()["detail"] == "Acesso negado"

    def test_lists_vendedores_and_admins(self, client, superadmin, admin, vendedor, auth_headers):
        data = client.get("/api/dashboard/vendedores", headers=auth_headers(superadmin)).json()
        assert [v["nome"] for v in data["vendedores"]] == [admin.nome, vendedor.nome]

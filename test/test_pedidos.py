from datetime import date, timedelta

from quatrelati.models.pedidos import Pedido, PedidoItem


def pedido_payload(cliente, produto, quantidade=10, preco="20.00", data_pedido="2026-03-10", **extra):
    payload = {
        "data_pedido": data_pedido,
        "cliente_id": cliente.id,
        "data_entrega": "2026-03-20",
        "itens": [{"produto_id": produto.id, "quantidade_caixas": quantidade, "preco_unitario": preco}],
    }
    payload.update(extra)
    return payload


class TestCreatePedido:
    def test_create_computes_totals(self, client, vendedor, make_cliente, make_produto, auth_headers):
        cliente = make_cliente(vendedor=vendedor)
        produto = make_produto(peso_caixa_kg="12.500")

        response = client.post(
            "/api/pedidos/", json=pedido_payload(cliente, produto, quantidade=3, preco="18.33"),
            headers=auth_headers(vendedor)
        )

        assert response.status_code == 201
        pedido = response.json()["pedido"]
        assert pedido["numero_pedido"] == "260301"
        assert pedido["quantidade_caixas"] == 3
        assert pedido["peso_kg"] == 37.5
        # 37.5 kg x 18.33 = 687.375, rounded half up
        assert pedido["total"] == 687.38
        assert pedido["created_by"] == vendedor.id
        assert pedido["cliente_nome"] == cliente.nome
        assert pedido["itens"][0]["produto_nome"] == produto.nome

    def test_numero_pedido_is_sequential_per_month(self, client, vendedor, make_cliente, make_produto, auth_headers):
        cliente = make_cliente(vendedor=vendedor)
        produto = make_produto()
        headers = auth_headers(vendedor)

        numeros = [
            client.post("/api/pedidos/", json=pedido_payload(cliente, produto), headers=headers).json()["pedido"]["numero_pedido"]
            for _ in range(2)
        ]
        abril = client.post(
            "/api/pedidos/", json=pedido_payload(cliente, produto, data_pedido="2026-04-01"), headers=headers
        ).json()["pedido"]["numero_pedido"]

        assert numeros == ["260301", "260302"]
        assert abril == "260401"

    def test_multiple_itens(self, client, vendedor, make_cliente, make_produto, auth_headers):
        cliente = make_cliente(vendedor=vendedor)
        manteiga = make_produto("Manteiga", peso_caixa_kg="10.000")
        queijo = make_produto("Queijo", peso_caixa_kg="5.000")

        payload = pedido_payload(cliente, manteiga, quantidade=2, preco="20.00")
        payload["itens"].append({"produto_id": queijo.id, "quantidade_caixas": 4, "preco_unitario": "30.00"})
        pedido = client.post("/api/pedidos/", json=payload, headers=auth_headers(vendedor)).json()["pedido"]

        assert pedido["quantidade_caixas"] == 6
        assert pedido["peso_kg"] == 40.0
        assert pedido["total"] == 1000.0
        assert len(pedido["itens"]) == 2

    def test_unknown_cliente(self, client, vendedor, make_produto, auth_headers):
        payload = {
            "data_pedido": "2026-03-10", "cliente_id": 999,
            "itens": [{"produto_id": make_produto().id, "quantidade_caixas": 1, "preco_unitario": "1.00"}]
        }
        response = client.post("/api/pedidos/", json=payload, headers=auth_headers(vendedor))
        assert response.status_code == 400
        assert response.json()["detail"] == "Cliente não encontrado"

    def test_unknown_produto(self, client, vendedor, make_cliente, auth_headers):
        payload = {
            "data_pedido": "2026-03-10", "cliente_id": make_cliente().id,
            "itens": [{"produto_id": 999, "quantidade_caixas": 1, "preco_unitario": "1.00"}]
        }
        response = client.post("/api/pedidos/", json=payload, headers=auth_headers(vendedor))
        assert response.status_code == 400
        assert response.json()["detail"] == "Produto 999 não encontrado"

    def test_itens_required(self, client, vendedor, make_cliente, auth_headers):
        payload = {"data_pedido": "2026-03-10", "cliente_id": make_cliente().id, "itens": []}
        response = client.post("/api/pedidos/", json=payload, headers=auth_headers(vendedor))
        assert response.status_code == 400
        assert response.json()["detail"] == "Dados inválidos"


class TestListPedidos:
    def test_vendedor_sees_only_own(
        self, client, vendedor, outro_vendedor, make_cliente, make_produto, make_pedido, auth_headers
    ):
        produto = make_produto()
        make_pedido(make_cliente("Cliente A", vendedor=vendedor), produto, vendedor)
        make_pedido(make_cliente("Cliente B", vendedor=outro_vendedor), produto, outro_vendedor)

        data = client.get("/api/pedidos/", headers=auth_headers(vendedor)).json()

        assert data["total"] == 1
        assert data["pedidos"][0]["cliente_nome"] == "Cliente A"

    def test_admin_with_view_all(
        self, client, superadmin, vendedor, outro_vendedor, make_cliente, make_produto, make_pedido, auth_headers
    ):
        produto = make_produto()
        make_pedido(make_cliente(vendedor=vendedor), produto, vendedor)
        make_pedido(make_cliente(vendedor=outro_vendedor), produto, outro_vendedor)

        todos = client.get("/api/pedidos/", headers=auth_headers(superadmin)).json()
        filtrados = client.get(f"/api/pedidos/?vendedor_id={vendedor.id}", headers=auth_headers(superadmin)).json()

        assert todos["total"] == 2
        assert filtrados["total"] == 1

    def test_totais_split_by_status(
        self, client, vendedor, make_cliente, make_produto, make_pedido, auth_headers
    ):
        cliente = make_cliente(vendedor=vendedor)
        produto = make_produto(peso_caixa_kg="10.000")
        make_pedido(cliente, produto, vendedor, quantidade=1, preco="10.00", entregue=True)
        make_pedido(cliente, produto, vendedor, quantidade=2, preco="10.00")

        totais = client.get("/api/pedidos/", headers=auth_headers(vendedor)).json()["totais"]

        assert totais["quantidade_pedidos"] == 2
        assert totais["valor_total"] == 300.0
        assert totais["entregues"] == 1
        assert totais["pendentes"] == 1
        assert totais["valor_entregue"] == 100.0
        assert totais["valor_pendente"] == 200.0
        assert totais["unidades_pendente"] == 2

    def test_filter_by_month_and_status(
        self, client, vendedor, make_cliente, make_produto, make_pedido, auth_headers
    ):
        cliente = make_cliente(vendedor=vendedor)
        produto = make_produto()
        make_pedido(cliente, produto, vendedor, data_pedido=date(2026, 1, 5), data_entrega=date(2026, 2, 1))
        make_pedido(cliente, produto, vendedor, data_pedido=date(2026, 1, 6), data_entrega=date(2026, 1, 20), entregue=True)

        headers = auth_headers(vendedor)
        fevereiro = client.get("/api/pedidos/?mes=2&ano=2026", headers=headers).json()
        entregues = client.get("/api/pedidos/?status=entregue", headers=headers).json()

        assert fevereiro["total"] == 1
        assert fevereiro["pedidos"][0]["data_entrega"] == "2026-02-01"
        assert entregues["total"] == 1
        assert entregues["pedidos"][0]["entregue"] is True

    def test_filter_by_produto(
        self, client, vendedor, make_cliente, make_produto, make_pedido, auth_headers
    ):
        cliente = make_cliente(vendedor=vendedor)
        manteiga = make_produto("Manteiga")
        make_pedido(cliente, manteiga, vendedor)
        make_pedido(cliente, make_produto("Queijo"), vendedor)

        data = client.get(f"/api/pedidos/?produto_id={manteiga.id}", headers=auth_headers(vendedor)).json()
        assert data["total"] == 1


class TestPedidoAccess:
    def test_other_vendedor_forbidden(
        self, client, vendedor, outro_vendedor, make_cliente, make_produto, make_pedido, auth_headers
    ):
        pedido = make_pedido(make_cliente(vendedor=outro_vendedor), make_produto(), outro_vendedor)
        response = client.get(f"/api/pedidos/{pedido.id}", headers=auth_headers(vendedor))
        assert response.status_code == 403

    def test_unknown_pedido(self, client, vendedor, auth_headers):
        response = client.get("/api/pedidos/999", headers=auth_headers(vendedor))
        assert response.status_code == 404
        assert response.json()["detail"] == "Pedido não encontrado"


class TestUpdatePedido:
    def test_replacing_itens_recomputes_header(
        self, client, vendedor, make_cliente, make_produto, make_pedido, auth_headers, db_session
    ):
        cliente = make_cliente(vendedor=vendedor)
        manteiga = make_produto("Manteiga", peso_caixa_kg="10.000")
        queijo = make_produto("Queijo", peso_caixa_kg="5.000")
        pedido = make_pedido(cliente, manteiga, vendedor)

        response = client.put(f"/api/pedidos/{pedido.id}", json={
            "nf": "NF-123",
            "itens": [
                {"produto_id": manteiga.id, "quantidade_caixas": 1, "preco_unitario": "20.00"},
                {"produto_id": queijo.id, "quantidade_caixas": 2, "preco_unitario": "35.00"},
            ]
        }, headers=auth_headers(vendedor))

        assert response.status_code == 200
        data = response.json()["pedido"]
        assert data["nf"] == "NF-123"
        assert data["quantidade_caixas"] == 3
        assert data["peso_kg"] == 20.0
        assert data["total"] == 550.0
        assert data["preco_unitario"] == 27.5
        assert data["numero_pedido"] == pedido.numero_pedido

        db_session.expire_all()
        assert db_session.query(PedidoItem).filter(PedidoItem.pedido_id == pedido.id).count() == 2

    def test_update_without_itens_keeps_lines(
        self, client, vendedor, make_cliente, make_produto, make_pedido, auth_headers
    ):
        pedido = make_pedido(make_cliente(vendedor=vendedor), make_produto(), vendedor, quantidade=4)
        response = client.put(f"/api/pedidos/{pedido.id}", json={"observacoes": "Entregar cedo"}, headers=auth_headers(vendedor))

        data = response.json()["pedido"]
        assert data["observacoes"] == "Entregar cedo"
        assert data["quantidade_caixas"] == 4
        assert len(data["itens"]) == 1

    def test_delete(self, client, vendedor, make_cliente, make_produto, make_pedido, auth_headers, db_session):
        pedido = make_pedido(make_cliente(vendedor=vendedor), make_produto(), vendedor)

        response = client.delete(f"/api/pedidos/{pedido.id}", headers=auth_headers(vendedor))

        assert response.json()["message"] == "Pedido excluído com sucesso"
        db_session.expire_all()
        assert db_session.get(Pedido, pedido.id) is None
        assert db_session.query(PedidoItem).count() == 0


class TestEntrega:
    def test_entregar_defaults_to_today(self, client, vendedor, make_cliente, make_produto, make_pedido, auth_headers):
        pedido = make_pedido(make_cliente(vendedor=vendedor), make_produto(), vendedor)

        response = client.patch(f"/api/pedidos/{pedido.id}/entregar", headers=auth_headers(vendedor))

        assert response.status_code == 200
        data = response.json()["pedido"]
        assert data["entregue"] is True
        assert data["data_entrega_real"] == date.today().isoformat()

    def test_entregar_with_date_and_revert(
        self, client, vendedor, make_cliente, make_produto, make_pedido, auth_headers
    ):
        pedido = make_pedido(make_cliente(vendedor=vendedor), make_produto(), vendedor)
        headers = auth_headers(vendedor)
        ontem = (date.today() - timedelta(days=1)).isoformat()

        entregue = client.patch(
            f"/api/pedidos/{pedido.id}/entregar", json={"data_entrega_real": ontem}, headers=headers
        ).json()["pedido"]
        revertido = client.patch(f"/api/pedidos/{pedido.id}/reverter-entrega", headers=headers).json()

        assert entregue["data_entrega_real"] == ontem
        assert revertido["message"] == "Entrega revertida com sucesso"
        assert revertido["pedido"]["entregue"] is False
        assert revertido["pedido"]["data_entrega_real"] is None


class TestPedidoPdf:
    def test_single_pedido_pdf(self, client, vendedor, make_cliente, make_produto, make_pedido, auth_headers):
        pedido = make_pedido(make_cliente(vendedor=vendedor, cnpj_cpf="12.345.678/0001-90"), make_produto(), vendedor)

        response = client.get(f"/api/pedidos/{pedido.id}/pdf", headers=auth_headers(vendedor))

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert f"pedido-{pedido.numero_pedido}.pdf" in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")

    def test_report_pdf(self, client, superadmin, vendedor, make_cliente, make_produto, make_pedido, auth_headers):
        make_pedido(make_cliente(vendedor=vendedor), make_produto(), vendedor, data_entrega=date(2026, 3, 15))

        response = client.get(
            f"/api/pedidos/exportar/pdf?mes=3&ano=2026&vendedor_id={vendedor.id}",
            headers=auth_headers(superadmin)
        )

        assert response.status_code == 200
        assert "pedidos-quatrelati-2026-3.pdf" in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")

    def test_pdfs_with_typographic_characters(self, client, superadmin, vendedor, make_cliente, make_produto,
                                              make_pedido, auth_headers, db_session):
        cliente = make_cliente("Laticínios D’Ávila — Filial", vendedor=vendedor)
        produto = make_produto("Queijo “Minas” • 1kg")
        pedido = make_pedido(cliente, produto, vendedor, data_entrega=date(2026, 3, 15))
        pedido.observacoes = "Entregar até 10h… pagamento em € não aceito 🧀"
        db_session.commit()

        single = client.get(f"/api/pedidos/{pedido.id}/pdf", headers=auth_headers(vendedor))
        report = client.get(
            f"/api/pedidos/exportar/pdf?vendedor_id={vendedor.id}",
            headers=auth_headers(superadmin)
        )

        assert single.status_code == 200
        assert single.content.startswith(b"%PDF")
        assert report.status_code == 200
        assert report.content.startswith(b"%PDF")

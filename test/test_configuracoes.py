import json
from datetime import date

from quatrelati.models.clientes import Cliente
from quatrelati.models.produtos import Produto


def export_file(tipo, dados, filename="export.json"):
    content = json.dumps({"tipo": tipo, "versao": "1.0", "dados": dados})
    return {"arquivo": (filename, content, "application/json")}


class TestConfiguracoes:
    def test_superadmin_only(self, client, admin, auth_headers):
        assert client.get("/api/configuracoes/", headers=auth_headers(admin)).status_code == 403

    def test_put_creates_then_updates(self, client, superadmin, auth_headers):
        headers = auth_headers(superadmin)

        criada = client.put("/api/configuracoes/log_superadmin", json={"valor": "false", "descricao": "Logar superadmin"}, headers=headers)
        atualizada = client.put("/api/configuracoes/log_superadmin", json={"valor": "true"}, headers=headers)
        lida = client.get("/api/configuracoes/log_superadmin", headers=headers).json()["configuracao"]

        assert criada.json()["message"] == "Configuração criada com sucesso"
        assert atualizada.json()["message"] == "Configuração atualizada com sucesso"
        assert lida["valor"] == "true"
        assert lida["descricao"] == "Logar superadmin"
        assert lida["updated_by_nome"] == superadmin.nome

    def test_unknown_chave(self, client, superadmin, auth_headers):
        response = client.get("/api/configuracoes/nao_existe", headers=auth_headers(superadmin))
        assert response.status_code == 404
        assert response.json()["detail"] == "Configuração não encontrada"


class TestExport:
    def test_export_clientes(self, client, superadmin, make_cliente, auth_headers):
        make_cliente("Ativo")
        make_cliente("Inativo", ativo=False)

        response = client.get("/api/configuracoes/exportar/clientes?ativos_apenas=true", headers=auth_headers(superadmin))

        assert response.status_code == 200
        assert f"clientes_{date.today().isoformat()}.json" in response.headers["content-disposition"]
        data = response.json()
        assert data["tipo"] == "clientes"
        assert data["versao"] == "1.0"
        assert data["total_registros"] == 1
        assert data["dados"][0]["nome"] == "Ativo"

    def test_export_pedidos_with_filters(
        self, client, superadmin, vendedor, make_cliente, make_produto, make_pedido, auth_headers
    ):
        cliente = make_cliente(vendedor=vendedor)
        produto = make_produto()
        make_pedido(cliente, produto, vendedor, data_pedido=date(2026, 1, 10), entregue=True)
        make_pedido(cliente, produto, vendedor, data_pedido=date(2026, 2, 10))

        data = client.get(
            "/api/configuracoes/exportar/pedidos?data_inicio=2026-01-01&status_entrega=entregue",
            headers=auth_headers(superadmin)
        ).json()

        assert data["total_registros"] == 1
        assert data["filtros"]["status_entrega"] == "entregue"
        assert data["dados"][0]["itens"][0]["produto_nome"] == produto.nome

    def test_export_completo(
        self, client, superadmin, vendedor, make_cliente, make_produto, make_pedido, auth_headers
    ):
        make_pedido(make_cliente(vendedor=vendedor), make_produto(), vendedor)

        data = client.get("/api/configuracoes/exportar/completo", headers=auth_headers(superadmin)).json()

        assert data["tipo"] == "backup_completo"
        assert data["total_registros"] == 3
        assert data["dados"]["pedidos"]["total"] == 1


class TestImport:
    def test_import_clientes_adds_and_updates(self, client, superadmin, make_cliente, auth_headers, db_session):
        make_cliente("Nome Antigo", cnpj_cpf="11.111.111/0001-11")
        dados = [
            {"nome": "Nome Novo", "cnpj_cpf": "11.111.111/0001-11", "cidade": "Santos"},
            {"nome": "Mercado Novo", "cnpj_cpf": "22.222.222/0001-22"},
            {"nome": "X"},
        ]

        response = client.post(
            "/api/configuracoes/importar/clientes",
            files=export_file("clientes", dados), headers=auth_headers(superadmin)
        )

        assert response.status_code == 200
        result = response.json()
        assert result["importados"] == 1
        assert result["atualizados"] == 1
        assert result["erros"][0]["registro"] == "X"
        db_session.expire_all()
        assert db_session.query(Cliente).filter(Cliente.cnpj_cpf == "11.111.111/0001-11").one().cidade == "Santos"

    def test_wrong_tipo(self, client, superadmin, auth_headers):
        response = client.post(
            "/api/configuracoes/importar/clientes",
            files=export_file("produtos", []), headers=auth_headers(superadmin)
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Tipo de arquivo inválido. Esperado: clientes"

    def test_invalid_json(self, client, superadmin, auth_headers):
        response = client.post(
            "/api/configuracoes/importar/produtos",
            files={"arquivo": ("p.json", "{nao json", "application/json")}, headers=auth_headers(superadmin)
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Arquivo JSON inválido"

    def test_substituir_blocked_by_pedidos(
        self, client, superadmin, vendedor, make_cliente, make_produto, make_pedido, auth_headers
    ):
        make_pedido(make_cliente(vendedor=vendedor), make_produto(), vendedor)

        response = client.post(
            "/api/configuracoes/importar/clientes",
            files=export_file("clientes", []), data={"modo": "substituir"},
            headers=auth_headers(superadmin)
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Não é possível substituir clientes com pedidos existentes"

    def test_substituir_produtos(self, client, superadmin, make_produto, auth_headers, db_session):
        make_produto("Antigo", codigo="OLD")

        result = client.post(
            "/api/configuracoes/importar/produtos",
            files=export_file("produtos", [{"nome": "Ricota", "codigo": "RC-1", "peso_caixa_kg": 6, "preco": "12.50"}]),
            data={"modo": "substituir"}, headers=auth_headers(superadmin)
        ).json()

        assert result["importados"] == 1
        db_session.expire_all()
        produtos = db_session.query(Produto).all()
        assert [p.nome for p in produtos] == ["Ricota"]
        assert float(produtos[0].preco_padrao) == 12.5

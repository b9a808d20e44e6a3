from datetime import datetime
from unittest.mock import patch

import pytest

from quatrelati.models.clientes import Cliente
from quatrelati.models.contatos import ContatoSite
from quatrelati.utils.email import EmailError

API_KEY_HEADERS = {"X-Api-Key": "test-site-key"}


@pytest.fixture
def make_contato(db_session):
    def _make_contato(nome="Joana Lima", email="joana@padaria.com.br", status="novo", tipo="contato", **kwargs):
        contato = ContatoSite(
            nome=nome, empresa="Padaria Lima", email=email, telefone="(11) 91234-5678",
            mensagem="Gostaria de um orçamento de manteiga.", tipo=tipo, status=status,
            recebido_em=datetime.utcnow(), **kwargs
        )
        db_session.add(contato)
        db_session.commit()
        db_session.refresh(contato)
        return contato

    return _make_contato


class TestReceiveContato:
    def test_landing_page_posts_with_api_key(self, client, db_session):
        response = client.post("/api/contatos/", json={
            "nome": "  Joana Lima ", "empresa": "Padaria Lima", "email": "Joana@Padaria.com.br",
            "telefone": "(11) 91234-5678", "mensagem": "Quero um orçamento"
        }, headers=API_KEY_HEADERS)

        assert response.status_code == 201
        assert response.json()["success"] is True
        contato = db_session.get(ContatoSite, response.json()["id"])
        assert contato.nome == "Joana Lima"
        assert contato.email == "joana@padaria.com.br"
        assert contato.status == "novo"
        assert contato.tipo == "contato"

    def test_missing_api_key(self, client):
        response = client.post("/api/contatos/", json={"nome": "Joana", "mensagem": "Oi"})
        assert response.status_code == 401
        assert response.json()["detail"] == "API key não fornecida"

    def test_wrong_api_key(self, client):
        response = client.post("/api/contatos/", json={"nome": "Joana", "mensagem": "Oi"}, headers={"X-Api-Key": "errada"})
        assert response.status_code == 403

    def test_blank_mensagem(self, client):
        response = client.post("/api/contatos/", json={"nome": "Joana", "mensagem": "   "}, headers=API_KEY_HEADERS)
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "mensagem"

    def test_intake_is_rate_limited(self, client):
        payload = {"nome": "Joana Lima", "mensagem": "Quero um orçamento"}
        for i in range(30):
            response = client.post(
                "/api/contatos/", json=payload,
                headers={**API_KEY_HEADERS, "x-forwarded-for": f"203.0.113.{i}"}
            )
            assert response.status_code == 201

        response = client.post("/api/contatos/", json=payload, headers=API_KEY_HEADERS)
        assert response.status_code == 429
        assert response.json()["detail"] == "Muitas requisições. Tente novamente em 15 minutos."


class TestListContatos:
    def test_requires_login(self, client):
        assert client.get("/api/contatos/").status_code == 401

    def test_list_with_filters(self, client, vendedor, make_contato, auth_headers):
        make_contato("Joana Lima")
        make_contato("Pedro Souza", email="pedro@mercado.com.br", status="em_atendimento")
        make_contato("Rita Dias", email=None, tipo="orcamento")

        headers = auth_headers(vendedor)
        todos = client.get("/api/contatos/", headers=headers).json()
        em_atendimento = client.get("/api/contatos/?status=em_atendimento", headers=headers).json()
        busca = client.get("/api/contatos/?search=mercado", headers=headers).json()

        assert todos["total"] == 3
        assert todos["novos"] == 1
        assert [c["nome"] for c in em_atendimento["contatos"]] == ["Pedro Souza"]
        assert [c["nome"] for c in busca["contatos"]] == ["Pedro Souza"]

    def test_novos_count(self, client, vendedor, make_contato, auth_headers):
        make_contato()
        make_contato(status="descartado")
        response = client.get("/api/contatos/novos/count", headers=auth_headers(vendedor))
        assert response.json() == {"count": 1}

    def test_unknown_contato(self, client, vendedor, auth_headers):
        response = client.get("/api/contatos/999", headers=auth_headers(vendedor))
        assert response.status_code == 404
        assert response.json()["detail"] == "Contato não encontrado"


class TestContatoWorkflow:
    def test_update_status_records_history(self, client, vendedor, make_contato, auth_headers):
        contato = make_contato()
        headers = auth_headers(vendedor)

        response = client.patch(f"/api/contatos/{contato.id}/status", json={
            "status": "em_atendimento", "observacoes_internas": "Ligar na segunda"
        }, headers=headers)
        historico = client.get(f"/api/contatos/{contato.id}/historico", headers=headers).json()["historico"]

        assert response.status_code == 200
        data = response.json()["contato"]
        assert data["status"] == "em_atendimento"
        assert data["atendido_por_nome"] == vendedor.nome
        assert data["observacoes_internas"] == "Ligar na segunda"
        assert historico[0]["acao"] == "atualizar"
        assert historico[0]["usuario_nome"] == vendedor.nome

    def test_invalid_status(self, client, vendedor, make_contato, auth_headers):
        contato = make_contato()
        response = client.patch(f"/api/contatos/{contato.id}/status", json={"status": "fechado"}, headers=auth_headers(vendedor))
        assert response.status_code == 400

    def test_send_email(self, client, vendedor, make_contato, auth_headers):
        contato = make_contato()

        with patch("quatrelati.routers.contatos.send_reply_email") as mock_send:
            response = client.post(
                f"/api/contatos/{contato.id}/email",
                data={"assunto": "Orçamento", "corpo": "Segue a proposta."},
                files=[("arquivos", ("proposta.pdf", b"%PDF-1.4", "application/pdf"))],
                headers=auth_headers(vendedor)
            )

        assert response.status_code == 200
        assert response.json() == {"success": True}
        args = mock_send.call_args[0]
        assert args[0] == "joana@padaria.com.br"
        assert args[5] == [("proposta.pdf", "application/pdf", b"%PDF-1.4")]

    def test_send_email_without_attachments_in_dev_mode(self, client, vendedor, make_contato, auth_headers):
        contato = make_contato()
        response = client.post(
            f"/api/contatos/{contato.id}/email",
            data={"assunto": "Olá", "corpo": "Obrigado pelo contato."},
            headers=auth_headers(vendedor)
        )
        assert response.json() == {"success": True}

    def test_email_requires_address(self, client, vendedor, make_contato, auth_headers):
        contato = make_contato(email=None)
        response = client.post(
            f"/api/contatos/{contato.id}/email",
            data={"assunto": "Olá", "corpo": "Texto"}, headers=auth_headers(vendedor)
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Este contato não possui email cadastrado"

    def test_too_many_attachments(self, client, vendedor, make_contato, auth_headers):
        contato = make_contato()
        files = [("arquivos", (f"a{i}.txt", b"x", "text/plain")) for i in range(6)]
        response = client.post(
            f"/api/contatos/{contato.id}/email",
            data={"assunto": "Olá", "corpo": "Texto"}, files=files, headers=auth_headers(vendedor)
        )
        assert response.status_code == 400

    def test_email_failure(self, client, vendedor, make_contato, auth_headers):
        contato = make_contato()
        with patch("quatrelati.routers.contatos.send_reply_email", side_effect=EmailError("SES down")):
            response = client.post(
                f"/api/contatos/{contato.id}/email",
                data={"assunto": "Olá", "corpo": "Texto"}, headers=auth_headers(vendedor)
            )
        assert response.status_code == 500


class TestConverter:
    def test_convert_into_cliente(self, client, vendedor, make_contato, auth_headers, db_session):
        contato = make_contato()
        headers = auth_headers(vendedor)

        response = client.post(f"/api/contatos/{contato.id}/converter", json={
            "nome": "Padaria Lima", "cnpj_cpf": "33.333.333/0001-33", "email": "Compras@Padaria.com.br",
            "vendedor_id": vendedor.id
        }, headers=headers)
        again = client.post(f"/api/contatos/{contato.id}/converter", json={"nome": "Padaria Lima"}, headers=headers)

        assert response.status_code == 201
        cliente_id = response.json()["cliente_id"]
        db_session.expire_all()
        assert db_session.get(Cliente, cliente_id).email == "compras@padaria.com.br"
        convertido = db_session.get(ContatoSite, contato.id)
        assert convertido.status == "convertido"
        assert convertido.cliente_id == cliente_id
        assert again.status_code == 400
        assert again.json()["detail"] == "Contato já foi convertido em cliente"

    def test_duplicate_cnpj(self, client, vendedor, make_contato, make_cliente, auth_headers, db_session):
        make_cliente(cnpj_cpf="33.333.333/0001-33")
        contato = make_contato()

        response = client.post(f"/api/contatos/{contato.id}/converter", json={
            "nome": "Padaria Lima", "cnpj_cpf": "33.333.333/0001-33"
        }, headers=auth_headers(vendedor))

        assert response.status_code == 400
        assert response.json()["detail"] == "CNPJ/CPF já cadastrado"
        db_session.expire_all()
        assert db_session.get(ContatoSite, contato.id).status == "novo"


class TestDeleteContato:
    def test_only_superadmin(self, client, admin, superadmin, make_contato, auth_headers, db_session):
        contato = make_contato()

        negado = client.delete(f"/api/contatos/{contato.id}", headers=auth_headers(admin))
        apagado = client.delete(f"/api/contatos/{contato.id}", headers=auth_headers(superadmin))

        assert negado.status_code == 403
        assert apagado.json() == {"success": True}
        db_session.expire_all()
        assert db_session.get(ContatoSite, contato.id) is None

from datetime import datetime, timedelta

import pytest

from quatrelati.models.configuracoes import Configuracao
from quatrelati.models.logs import ActivityLog, ErrorLog


@pytest.fixture
def activity(db_session):
    def _activity(user, action, entity="cliente", created_at=None):
        log = ActivityLog(
            user_id=user.id, user_nome=user.nome, user_nivel=user.nivel,
            action=action, entity=entity, entity_id=1,
            created_at=created_at or datetime.utcnow()
        )
        db_session.add(log)
        db_session.commit()
        return log

    return _activity


class TestLogsAccess:
    @pytest.mark.parametrize("path", ["/api/logs/", "/api/logs/erros", "/api/logs/estatisticas"])
    def test_admin_forbidden(self, client, admin, auth_headers, path):
        response = client.get(path, headers=auth_headers(admin))
        assert response.status_code == 403


class TestActivityLogs:
    def test_actions_are_recorded(self, client, superadmin, vendedor, auth_headers):
        client.post("/api/clientes/", json={"nome": "Padaria Sol"}, headers=auth_headers(vendedor))

        data = client.get("/api/logs/", headers=auth_headers(superadmin)).json()

        assert data["total"] == 1
        log = data["logs"][0]
        assert log["action"] == "criar"
        assert log["entity"] == "cliente"
        assert log["entity_name"] == "Padaria Sol"
        assert log["user_nome"] == vendedor.nome
        assert log["details"]["body"]["nome"] == "Padaria Sol"

    def test_passwords_are_redacted(self, client, superadmin, auth_headers):
        client.post("/api/usuarios/", json={
            "nome": "Carla Nova", "email": "carla@quatrelati.com.br", "senha": "Segredo@123"
        }, headers=auth_headers(superadmin))

        log = client.get("/api/logs/?entity=usuario", headers=auth_headers(superadmin)).json()["logs"][0]
        assert log["details"]["body"]["senha"] == "[REDACTED]"

    def test_superadmin_logging_can_be_disabled(self, client, superadmin, auth_headers, db_session):
        db_session.add(Configuracao(chave="log_superadmin", valor="false"))
        db_session.commit()

        client.post("/api/clientes/", json={"nome": "Padaria Sol"}, headers=auth_headers(superadmin))

        assert db_session.query(ActivityLog).count() == 0

    def test_filters(self, client, superadmin, vendedor, admin, activity, auth_headers):
        activity(vendedor, "criar")
        activity(admin, "excluir", entity="produto")
        activity(vendedor, "login", entity=None, created_at=datetime(2025, 1, 10, 12, 0))

        headers = auth_headers(superadmin)
        por_usuario = client.get(f"/api/logs/?user_id={vendedor.id}", headers=headers).json()
        por_acao = client.get("/api/logs/?action=excluir", headers=headers).json()
        por_data = client.get("/api/logs/?data_inicio=2025-01-10&data_fim=2025-01-10", headers=headers).json()

        assert por_usuario["total"] == 2
        assert [log["entity"] for log in por_acao["logs"]] == ["produto"]
        assert [log["action"] for log in por_data["logs"]] == ["login"]

    def test_filter_options(self, client, superadmin, vendedor, admin, activity, auth_headers):
        activity(vendedor, "criar")
        activity(admin, "excluir", entity="produto")
        activity(vendedor, "login", entity=None)

        headers = auth_headers(superadmin)
        usuarios = client.get("/api/logs/usuarios", headers=headers).json()["usuarios"]
        acoes = client.get("/api/logs/acoes", headers=headers).json()["acoes"]
        entidades = client.get("/api/logs/entidades", headers=headers).json()["entidades"]

        assert [u["user_nome"] for u in usuarios] == [admin.nome, vendedor.nome]
        assert acoes == ["criar", "excluir", "login"]
        assert entidades == ["cliente", "produto"]

    def test_estatisticas(self, client, superadmin, vendedor, admin, activity, auth_headers):
        activity(vendedor, "criar")
        activity(vendedor, "atualizar")
        activity(admin, "criar")
        activity(admin, "criar", created_at=datetime.utcnow() - timedelta(days=60))

        data = client.get("/api/logs/estatisticas?dias=30", headers=auth_headers(superadmin)).json()

        assert data["total"] == 3
        assert data["por_usuario"][0] == {"user_nome": vendedor.nome, "total": 2}
        assert data["por_acao"][0] == {"action": "criar", "total": 2}
        assert sum(dia["total"] for dia in data["por_dia"]) == 3


class TestErrorLogs:
    def test_forbidden_request_is_stored(self, client, superadmin, vendedor, auth_headers, db_session):
        client.delete("/api/produtos/1", headers=auth_headers(vendedor))

        erros = client.get("/api/logs/erros", headers=auth_headers(superadmin)).json()["erros"]

        assert len(erros) == 1
        assert erros[0]["error_type"] == "authorization"
        assert erros[0]["user_id"] == vendedor.id
        assert erros[0]["endpoint"] == "/api/produtos/1"
        assert erros[0]["method"] == "DELETE"

    def test_validation_error_keeps_sanitized_body(self, client, superadmin, auth_headers, db_session):
        client.post("/api/auth/login", json={"email": "nao-e-email", "password": "segredo"})

        erro = db_session.query(ErrorLog).filter(ErrorLog.error_type == "validation").one()
        assert erro.request_body["password"] == "[REDACTED]"
        assert erro.validation_errors[0]["field"] == "email"

    def test_filter_by_type(self, client, superadmin, vendedor, auth_headers):
        client.delete("/api/produtos/1", headers=auth_headers(vendedor))
        client.get("/api/clientes/999", headers=auth_headers(vendedor))

        headers = auth_headers(superadmin)
        not_found = client.get("/api/logs/erros?error_type=not_found", headers=headers).json()

        assert not_found["total"] == 1
        assert not_found["erros"][0]["error_message"] == "Cliente não encontrado"

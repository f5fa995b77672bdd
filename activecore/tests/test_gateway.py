import pytest

from activecore.gateway import server


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.get_json()["status"] == "gateway_ok"


def test_ping(client):
    response = client.get("/api/ping")
    assert response.status_code == 200


def test_health_ok(client, mocker):
    mocker.patch("activecore.database.db_connection.check_connection", return_value=True)

    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.get_json()["database"] == "connected"


def test_health_db_down(mocker):
    mocker.patch("activecore.database.db_connection.check_connection", return_value=False)
    app = server.create_app({"TESTING": True})

    response = app.test_client().get("/api/health")

    assert response.status_code == 503


def test_system_status(mocker):
    mocker.patch("activecore.database.db_connection.check_connection", return_value=True)
    mocker.patch("activecore.payments_service.paymongo.gateway_reachable", return_value=False)
    mocker.patch("activecore.meal_planner_service.ai_client.ACTIVE_AI_SERVICE", "openai")
    mocker.patch("activecore.meal_planner_service.ai_client.AI_UNAUTHORIZED", False)
    app = server.create_app({"TESTING": True})

    data = app.test_client().get("/api/system/status").get_json()

    assert data["database"] is True
    assert data["ai"] == {"service": "openai", "available": True}
    assert data["paymentGateway"] is False
    assert list(data) == ["success", "database", "ai", "paymentGateway"]


def test_unknown_route_is_json(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.get_json() == {"error": "Not found"}


def test_wrong_method_is_json(client):
    response = client.delete("/api/ping")
    assert response.status_code == 405
    assert "error" in response.get_json()


def test_cors_header_for_allowed_origin(client):
    response = client.get("/api/ping", headers={"Origin": "http://localhost:3000"})
    assert response.headers.get("Access-Control-Allow-Origin") == "http://localhost:3000"


def test_allowed_origins_from_env(monkeypatch):
    monkeypatch.setenv("FRONTEND_URL", "https://activecore.ph, https://admin.activecore.ph")
    assert server.allowed_origins() == ["https://activecore.ph", "https://admin.activecore.ph"]


def test_scheduler_not_started_in_testing(mocker):
    start = mocker.patch("activecore.notifications_service.sweep.start_notification_scheduler")
    server.create_app({"TESTING": True})
    assert not start.called


def test_scheduler_started_when_enabled(mocker, monkeypatch):
    monkeypatch.setenv("ENABLE_NOTIFICATION_SCHEDULER", "true")
    start = mocker.patch("activecore.notifications_service.sweep.start_notification_scheduler")
    server.create_app()
    assert start.called


@pytest.mark.parametrize("value", ["false", "0", "off"])
def test_scheduler_disabled_by_env(mocker, monkeypatch, value):
    monkeypatch.setenv("ENABLE_NOTIFICATION_SCHEDULER", value)
    start = mocker.patch("activecore.notifications_service.sweep.start_notification_scheduler")
    server.create_app()
    assert not start.called

import asyncio

from fastapi.testclient import TestClient

from src.api.main import app
from src.core.risk_service import RiskServiceError


def test_is_healthy_returns_true_for_active_portfolio(client, installed_runtime):
    asyncio.run(installed_runtime.reconciler.reconcile(installed_runtime.settings.portfolio))

    response = client.get("/is-healthy")

    assert response.status_code == 200
    assert response.json() == {"status": True}


def test_is_healthy_returns_false_when_portfolio_missing(client):
    response = client.get("/is-healthy")

    assert response.status_code == 500
    assert response.json() == {"status": False}


def test_is_healthy_returns_false_when_risk_service_unreachable(client, risk_service):
    risk_service.fail_next["list_portfolios"] = RiskServiceError("RISK_SERVICE_UNAVAILABLE")

    response = client.get("/is-healthy")

    assert response.status_code == 500
    assert response.json() == {"status": False}


def test_health_endpoints_return_expected_status_payloads(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/health/live").json() == {"status": "live"}


def test_readiness_follows_startup_reconciliation(client, installed_runtime):
    not_ready = client.get("/health/ready")
    assert not_ready.status_code == 503
    assert not_ready.json() == {"status": "not_ready"}

    installed_runtime.ready = True
    ready = client.get("/health/ready")
    assert ready.status_code == 200
    assert ready.json() == {"status": "ready"}


def test_readiness_without_runtime_is_not_ready():
    previous = app.state.runtime
    app.state.runtime = None
    try:
        response = TestClient(app).get("/health/ready")
    finally:
        app.state.runtime = previous

    assert response.status_code == 503

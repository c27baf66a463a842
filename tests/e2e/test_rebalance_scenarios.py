import pytest
from fastapi.testclient import TestClient

from src.api import main as main_module
from src.api.bootstrap import assemble_runtime
from src.api.main import app
from src.core.models import ServiceEnvelope
from tests.factories import (
    POOL,
    TEST_PRIVATE_KEY,
    WALLET_ADDRESS,
    WEBHOOK_SECRET,
    allocation_payload,
    auth_headers,
)


def _approve_then_join():
    return {
        "event": "rebalance",
        "allocations": [
            allocation_payload("p1", "tokenApproveJoin", data="0x095ea7b3"),
            allocation_payload("p1", "poolJoin", data="0xb6b55f25"),
        ],
    }


def test_approval_then_join_succeeds_end_to_end(client, risk_service, chain):
    risk_service.queue_submission(ServiceEnvelope(status=True))
    risk_service.queue_submission(ServiceEnvelope(status=True))

    response = client.post("/webhook-target", json=_approve_then_join(), headers=auth_headers())

    assert response.status_code == 200
    assert response.json()["status"] is True
    assert risk_service.submitted == ["0xsigned:7:0x095ea7b3", "0xsigned:8:0xb6b55f25"]
    assert risk_service.failed_reports == []


def test_approval_completes_before_pool_action_begins(client, risk_service, chain):
    client.post("/webhook-target", json=_approve_then_join(), headers=auth_headers())

    sequence = [
        (name, args.get("signedTx"))
        for name, args in risk_service.calls
        if name == "submit_signed_transaction"
    ]
    assert sequence[0][1].endswith("0x095ea7b3")
    assert sequence[1][1].endswith("0xb6b55f25")
    join_estimate = chain.events.index(("estimate_gas", POOL, "0xb6b55f25"))
    approve_sign = chain.events.index(("sign", 7, "0x095ea7b3"))
    assert approve_sign < join_estimate


def test_rejected_approval_halts_batch_and_reports_failure(client, risk_service, chain):
    risk_service.queue_submission(ServiceEnvelope(status=False, error="reverted"))

    response = client.post("/webhook-target", json=_approve_then_join(), headers=auth_headers())

    assert response.status_code == 500
    result = response.json()["result"]
    assert result["failed_step"] == 1
    assert result["failed_kind"] == "tokenApproveJoin"
    assert result["failed_pool_id"] == "p1"
    assert risk_service.submitted == ["0xsigned:7:0x095ea7b3"]
    assert risk_service.failed_reports == [
        {
            "from": WALLET_ADDRESS,
            "to": POOL,
            "data": "0x095ea7b3",
        }
    ]


def test_misordered_delivery_is_corrected_by_precedence_policy(client, risk_service):
    body = _approve_then_join()
    body["allocations"].reverse()

    response = client.post("/webhook-target", json=body, headers=auth_headers())

    assert response.status_code == 200
    assert risk_service.submitted == ["0xsigned:7:0x095ea7b3", "0xsigned:8:0xb6b55f25"]


@pytest.fixture
def lifespan_env(monkeypatch, settings, chain, risk_service):
    monkeypatch.setenv("PRIVATE_KEY", TEST_PRIVATE_KEY)
    monkeypatch.setenv("RISK_API_KEY", WEBHOOK_SECRET)
    monkeypatch.delenv("PORTFOLIO_CONFIG_JSON", raising=False)
    monkeypatch.delenv("EXECUTION_ORDERING_POLICY", raising=False)
    monkeypatch.setenv("BOOTSTRAP_INITIAL_DELAY_SECONDS", "0")

    def build_fake_runtime(loaded_settings):
        return assemble_runtime(
            loaded_settings.model_copy(update={"settlement_delay_seconds": 0.0}),
            chain=chain,
            risk_client=risk_service,
        )

    monkeypatch.setattr(main_module, "build_runtime", build_fake_runtime)


def test_startup_reconciles_then_serves_webhooks(lifespan_env, risk_service):
    with TestClient(app) as client:
        assert client.get("/health/ready").json() == {"status": "ready"}
        assert client.get("/is-healthy").json() == {"status": True}
        assert [name for name, _ in risk_service.calls[:3]] == [
            "list_portfolios",
            "create_portfolio",
            "activate_portfolio",
        ]

        response = client.post(
            "/webhook-target", json=_approve_then_join(), headers=auth_headers()
        )
        assert response.status_code == 200

    assert app.state.runtime is None


def test_startup_fails_when_reconciliation_never_succeeds(lifespan_env, monkeypatch, risk_service):
    monkeypatch.setenv("BOOTSTRAP_MAX_ATTEMPTS", "2")

    async def always_down():
        return ServiceEnvelope(status=False, error="maintenance")

    risk_service.list_portfolios = always_down

    with pytest.raises(Exception, match="PORTFOLIO_LIST_FAILED"):
        with TestClient(app):
            pass

    assert app.state.runtime is None


def test_startup_fails_fast_without_secrets(monkeypatch):
    monkeypatch.delenv("PRIVATE_KEY", raising=False)
    monkeypatch.setenv("RISK_API_KEY", WEBHOOK_SECRET)

    with pytest.raises(Exception, match="PRIVATE_KEY_REQUIRED"):
        with TestClient(app):
            pass

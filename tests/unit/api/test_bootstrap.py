import asyncio

import pytest

from src.api.bootstrap import build_runtime, run_startup_reconciliation
from src.api.config import ConfigurationError
from src.core.execution import CallerOrdering, PrecedenceOrdering
from src.core.models import ServiceEnvelope
from src.core.reconciliation import ReconciliationError
from src.core.risk_service import RiskServiceError
from src.infrastructure.chain import Web3ChainAdapter
from src.infrastructure.risk_service import HttpRiskServiceClient
from tests.factories import WALLET_ADDRESS, service_settings


def _no_sleep(delays):
    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    return sleep


def test_startup_reconciliation_marks_runtime_ready(runtime, risk_service):
    portfolio = asyncio.run(run_startup_reconciliation(runtime, sleep=_no_sleep([])))

    assert runtime.ready is True
    assert portfolio.id == "main-portfolio"
    assert len(risk_service.calls_named("activate_portfolio")) == 1


def test_startup_reconciliation_retries_transient_failures(runtime, risk_service):
    risk_service.fail_next["list_portfolios"] = RiskServiceError("RISK_SERVICE_UNAVAILABLE")
    delays: list[float] = []

    asyncio.run(run_startup_reconciliation(runtime, sleep=_no_sleep(delays)))

    assert runtime.ready is True
    assert len(risk_service.calls_named("list_portfolios")) == 2
    assert len(delays) == 1


def test_startup_reconciliation_gives_up_after_budget(settings, chain, risk_service):
    from src.api.bootstrap import assemble_runtime

    runtime = assemble_runtime(
        settings.model_copy(update={"bootstrap_max_attempts": 3}),
        chain=chain,
        risk_client=risk_service,
    )

    class _AlwaysDown:
        def __init__(self) -> None:
            self.calls = 0

        async def __call__(self):
            self.calls += 1
            return ServiceEnvelope(status=False, error="maintenance")

    down = _AlwaysDown()
    risk_service.list_portfolios = down

    with pytest.raises(ReconciliationError, match="PORTFOLIO_LIST_FAILED"):
        asyncio.run(run_startup_reconciliation(runtime, sleep=_no_sleep([])))

    assert down.calls == 3
    assert runtime.ready is False


def test_build_runtime_wires_real_adapters():
    runtime = build_runtime(service_settings(ordering_policy="CALLER_ORDER"))
    try:
        assert isinstance(runtime.chain, Web3ChainAdapter)
        assert isinstance(runtime.risk_client, HttpRiskServiceClient)
        assert runtime.chain.address == WALLET_ADDRESS
        assert isinstance(runtime.engine.ordering, CallerOrdering)
    finally:
        asyncio.run(runtime.aclose())


def test_build_runtime_defaults_to_precedence_ordering():
    runtime = build_runtime(service_settings())
    try:
        assert isinstance(runtime.engine.ordering, PrecedenceOrdering)
    finally:
        asyncio.run(runtime.aclose())


def test_build_runtime_rejects_invalid_private_key():
    with pytest.raises(ConfigurationError, match="PRIVATE_KEY_INVALID"):
        build_runtime(service_settings(private_key="0xnot-a-key"))


def test_runtime_close_releases_risk_client(runtime, risk_service):
    asyncio.run(runtime.aclose())

    assert risk_service.closed is True

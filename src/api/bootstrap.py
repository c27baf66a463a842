import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from src.api.config import ConfigurationError, ServiceSettings
from src.api.single_flight import SingleFlightGuard
from src.core.chain import ChainAdapter
from src.core.execution import PayloadExecutionEngine, build_ordering_strategy
from src.core.models import RemotePortfolio
from src.core.reconciliation import PortfolioReconciler
from src.core.retry import retry_with_backoff
from src.core.risk_service import RiskServiceClient
from src.infrastructure.chain import Web3ChainAdapter
from src.infrastructure.risk_service import HttpRiskServiceClient

logger = logging.getLogger(__name__)


@dataclass
class ServiceRuntime:
    settings: ServiceSettings
    chain: ChainAdapter
    risk_client: RiskServiceClient
    reconciler: PortfolioReconciler
    engine: PayloadExecutionEngine
    guard: SingleFlightGuard = field(default_factory=SingleFlightGuard)
    ready: bool = False

    async def aclose(self) -> None:
        await self.risk_client.aclose()


def assemble_runtime(
    settings: ServiceSettings, *, chain: ChainAdapter, risk_client: RiskServiceClient
) -> ServiceRuntime:
    return ServiceRuntime(
        settings=settings,
        chain=chain,
        risk_client=risk_client,
        reconciler=PortfolioReconciler(
            client=risk_client, chain=chain, server_origin=settings.server_origin
        ),
        engine=PayloadExecutionEngine(
            chain=chain,
            client=risk_client,
            ordering=build_ordering_strategy(settings.ordering_policy),
            settlement_delay_seconds=settings.settlement_delay_seconds,
        ),
    )


def build_runtime(settings: ServiceSettings) -> ServiceRuntime:
    try:
        chain = Web3ChainAdapter(
            private_key=settings.private_key.get_secret_value(), rpc_url=settings.rpc_url
        )
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc
    logger.info(
        "bootstrap.wallet.derived", extra={"extra_fields": {"wallet_addr": chain.address}}
    )
    risk_client = HttpRiskServiceClient(
        api_url=settings.risk_api_url,
        api_key=settings.risk_api_key.get_secret_value(),
        timeout_seconds=settings.risk_api_timeout_seconds,
    )
    return assemble_runtime(settings, chain=chain, risk_client=risk_client)


async def run_startup_reconciliation(
    runtime: ServiceRuntime,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RemotePortfolio:
    settings = runtime.settings
    portfolio = await retry_with_backoff(
        lambda: runtime.reconciler.reconcile(settings.portfolio),
        max_attempts=settings.bootstrap_max_attempts,
        initial_delay=settings.bootstrap_initial_delay_seconds,
        growth_factor=settings.bootstrap_backoff_factor,
        sleep=sleep,
    )
    runtime.ready = True
    logger.info(
        "bootstrap.portfolio.ready",
        extra={"extra_fields": {"portfolio_id": portfolio.id, "org_id": portfolio.org_id}},
    )
    return portfolio

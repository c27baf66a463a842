from typing import Protocol

from src.core.models import PortfolioSpec, ServiceEnvelope


class RiskServiceError(RuntimeError):
    pass


class RiskServiceClient(Protocol):
    async def list_portfolios(self) -> ServiceEnvelope: ...

    async def create_portfolio(self, spec: PortfolioSpec) -> ServiceEnvelope: ...

    async def activate_portfolio(self, *, portfolio_id: str) -> ServiceEnvelope: ...

    async def submit_signed_transaction(self, *, signed_tx: str) -> ServiceEnvelope: ...

    async def mark_transaction_failed(
        self, *, sender: str, to: str, data: str
    ) -> ServiceEnvelope: ...

    async def aclose(self) -> None: ...

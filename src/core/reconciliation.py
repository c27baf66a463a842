import logging
from typing import Awaitable, List, Optional
from urllib.parse import urljoin

from pydantic import ValidationError

from src.core.chain import ChainAdapter
from src.core.models import PortfolioSpec, RemotePortfolio, ServiceEnvelope
from src.core.risk_service import RiskServiceClient, RiskServiceError

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/webhook-target"


class ReconciliationError(RuntimeError):
    pass


def resolve_webhook_url(spec: PortfolioSpec, server_origin: Optional[str]) -> str:
    if not server_origin:
        return spec.rebalance_webhook_url
    return urljoin(server_origin.rstrip("/") + "/", WEBHOOK_PATH.lstrip("/"))


def parse_portfolio_list(envelope: ServiceEnvelope) -> List[RemotePortfolio]:
    """Parse the listed portfolios, skipping entries that do not fit the portfolio shape.

    Only a non-list `portfolios` field is an error; one malformed entry
    (usually another tenant's) never hides the rest.
    """
    res = envelope.res if isinstance(envelope.res, dict) else {}
    raw_items = res.get("portfolios") or []
    if not isinstance(raw_items, list):
        raise ValueError("PORTFOLIO_LIST_INVALID")
    portfolios: List[RemotePortfolio] = []
    for index, item in enumerate(raw_items):
        try:
            portfolios.append(RemotePortfolio.model_validate(item))
        except ValidationError as exc:
            logger.warning(
                "reconcile.portfolio_list.entry_skipped",
                extra={"extra_fields": {"index": index, "error_count": exc.error_count()}},
            )
    return portfolios


def find_matching_portfolio(
    portfolios: List[RemotePortfolio], spec: PortfolioSpec
) -> Optional[RemotePortfolio]:
    return next((item for item in portfolios if item.matches(spec)), None)


class PortfolioReconciler:
    """Keeps exactly one active remote portfolio for the configured spec.

    Matching is identity based (portfolio id and organization id). A matched
    portfolio is never diffed or updated; activation is always re-issued.
    """

    def __init__(
        self,
        *,
        client: RiskServiceClient,
        chain: ChainAdapter,
        server_origin: Optional[str] = None,
    ) -> None:
        self._client = client
        self._chain = chain
        self._server_origin = server_origin

    def desired_spec(self, spec: PortfolioSpec) -> PortfolioSpec:
        return spec.model_copy(
            update={
                "wallet_addr": self._chain.address,
                "rebalance_webhook_url": resolve_webhook_url(spec, self._server_origin),
            }
        )

    async def reconcile(self, spec: PortfolioSpec) -> RemotePortfolio:
        desired = self.desired_spec(spec)
        logger.info(
            "reconcile.started",
            extra={
                "extra_fields": {
                    "portfolio_id": desired.portfolio_id,
                    "wallet_addr": desired.wallet_addr,
                }
            },
        )

        existing = await self._list_portfolios()
        matched = find_matching_portfolio(existing, desired)
        if matched is not None:
            logger.info(
                "reconcile.portfolio.matched",
                extra={"extra_fields": {"portfolio_id": matched.id}},
            )
        else:
            matched = await self._create_portfolio(desired)

        await self._activate_portfolio(desired.portfolio_id)
        return matched.model_copy(update={"is_active": True})

    async def is_healthy(self, spec: PortfolioSpec) -> bool:
        try:
            envelope = await self._client.list_portfolios()
            if not envelope.status:
                return False
            matched = find_matching_portfolio(parse_portfolio_list(envelope), spec)
        except Exception:
            logger.warning("reconcile.health_check.failed", exc_info=True)
            return False
        if matched is None:
            return False
        return matched.is_active is not False

    async def _list_portfolios(self) -> List[RemotePortfolio]:
        envelope = await self._call("PORTFOLIO_LIST_FAILED", self._client.list_portfolios())
        try:
            return parse_portfolio_list(envelope)
        except ValueError as exc:
            raise ReconciliationError("PORTFOLIO_LIST_INVALID") from exc

    async def _create_portfolio(self, desired: PortfolioSpec) -> RemotePortfolio:
        await self._call("PORTFOLIO_CREATE_FAILED", self._client.create_portfolio(desired))
        logger.info(
            "reconcile.portfolio.created",
            extra={"extra_fields": {"portfolio_id": desired.portfolio_id}},
        )
        return RemotePortfolio(
            id=desired.portfolio_id,
            org_id=desired.org_id,
            name=desired.name,
            chain_id=desired.chain_id,
            wallet_addr=desired.wallet_addr,
        )

    async def _activate_portfolio(self, portfolio_id: str) -> None:
        await self._call(
            "PORTFOLIO_ACTIVATE_FAILED",
            self._client.activate_portfolio(portfolio_id=portfolio_id),
        )
        logger.info(
            "reconcile.portfolio.activated",
            extra={"extra_fields": {"portfolio_id": portfolio_id}},
        )

    async def _call(
        self, error_code: str, call: Awaitable[ServiceEnvelope]
    ) -> ServiceEnvelope:
        try:
            envelope = await call
        except RiskServiceError as exc:
            raise ReconciliationError(error_code) from exc
        if not envelope.status:
            logger.error(
                "reconcile.call.rejected",
                extra={"extra_fields": {"error_code": error_code, "error": str(envelope.error)}},
            )
            raise ReconciliationError(error_code)
        return envelope

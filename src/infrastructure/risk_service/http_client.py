import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from src.core.models import PortfolioSpec, ServiceEnvelope
from src.core.risk_service import RiskServiceError

logger = logging.getLogger(__name__)


def bearer_header(secret: str) -> str:
    return f"Bearer {secret}"


class HttpRiskServiceClient:
    def __init__(
        self,
        *,
        api_url: str,
        api_key: str,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers={"Authorization": bearer_header(api_key)},
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_portfolios(self) -> ServiceEnvelope:
        return await self._request("GET", "/portfolio/my-portfolios")

    async def create_portfolio(self, spec: PortfolioSpec) -> ServiceEnvelope:
        return await self._request(
            "POST", "/portfolio/create", params=spec.to_create_query(), json={}
        )

    async def activate_portfolio(self, *, portfolio_id: str) -> ServiceEnvelope:
        return await self._request(
            "POST", "/portfolio/activate", params={"portfolioId": portfolio_id}, json={}
        )

    async def submit_signed_transaction(self, *, signed_tx: str) -> ServiceEnvelope:
        return await self._request(
            "POST", "/portfolio/submit-signed-transaction", json={"signedTx": signed_tx}
        )

    async def mark_transaction_failed(self, *, sender: str, to: str, data: str) -> ServiceEnvelope:
        return await self._request(
            "POST",
            "/portfolio/mark-tx-as-failed",
            json={"from": sender, "to": to, "data": data},
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> ServiceEnvelope:
        try:
            response = await self._client.request(method, path, params=params, json=json)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "risk_service.request.rejected",
                extra={
                    "extra_fields": {
                        "http_method": method,
                        "endpoint": path,
                        "status_code": exc.response.status_code,
                        "body": exc.response.text[:500],
                    }
                },
            )
            raise RiskServiceError(f"RISK_SERVICE_HTTP_{exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.error(
                "risk_service.request.failed",
                extra={
                    "extra_fields": {"http_method": method, "endpoint": path, "error": str(exc)}
                },
            )
            raise RiskServiceError("RISK_SERVICE_UNAVAILABLE") from exc
        except ValueError as exc:
            raise RiskServiceError("RISK_SERVICE_INVALID_RESPONSE") from exc

        try:
            return ServiceEnvelope.model_validate(body)
        except ValidationError as exc:
            raise RiskServiceError("RISK_SERVICE_INVALID_RESPONSE") from exc

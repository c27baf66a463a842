import json
import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, SecretStr, ValidationError

from src.core.execution.ordering import ORDERING_STRATEGIES, PRECEDENCE_ORDERING
from src.core.models import PortfolioSpec

DEFAULT_RISK_API_URL = "http://localhost:3999"
DEFAULT_RPC_URL = "https://arb1.arbitrum.io/rpc"

DEFAULT_PORTFOLIO: Dict[str, Any] = {
    "portfolioId": "main-portfolio",
    "orgId": "risk-api-client",
    "name": "Main Portfolio",
    "chainId": 42161,
    "maxRiskScore": 3.75,
    "rebalanceFrequencyHours": 1,
    "rebalanceWebhookUrl": "https://risk-api-client.vercel.app/webhook-target",
    "minNumPositions": 3,
    "maxNumPositions": 3,
    "initialAmountInUSD": 10,
    "mainAssetAddr": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
}


class ConfigurationError(RuntimeError):
    pass


def env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed >= 1 else default


def env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def env_str(name: str, default: str) -> str:
    value = (os.getenv(name) or "").strip()
    return value or default


class ServiceSettings(BaseModel):
    model_config = {"frozen": True}

    private_key: SecretStr
    risk_api_key: SecretStr
    risk_api_url: str = DEFAULT_RISK_API_URL
    rpc_url: str = DEFAULT_RPC_URL
    server_origin: Optional[str] = None
    portfolio: PortfolioSpec
    ordering_policy: str = PRECEDENCE_ORDERING
    settlement_delay_seconds: float = 5.0
    bootstrap_max_attempts: int = 5
    bootstrap_initial_delay_seconds: float = 1.0
    bootstrap_backoff_factor: float = 2.0
    risk_api_timeout_seconds: float = 30.0


def _required_secret(name: str) -> SecretStr:
    value = (os.getenv(name) or "").strip()
    if not value:
        raise ConfigurationError(f"{name}_REQUIRED")
    return SecretStr(value)


def load_portfolio_spec(raw_override: Optional[str] = None) -> PortfolioSpec:
    fields = dict(DEFAULT_PORTFOLIO)
    if raw_override:
        try:
            override = json.loads(raw_override)
        except json.JSONDecodeError as exc:
            raise ConfigurationError("PORTFOLIO_CONFIG_JSON_INVALID") from exc
        if not isinstance(override, dict):
            raise ConfigurationError("PORTFOLIO_CONFIG_JSON_INVALID")
        fields.update(override)
    # walletAddr is always derived from the signing key.
    fields.pop("walletAddr", None)
    fields.pop("wallet_addr", None)
    try:
        return PortfolioSpec.model_validate(fields)
    except ValidationError as exc:
        raise ConfigurationError("PORTFOLIO_CONFIG_JSON_INVALID") from exc


def load_settings() -> ServiceSettings:
    private_key = _required_secret("PRIVATE_KEY")
    risk_api_key = _required_secret("RISK_API_KEY")

    ordering_policy = env_str("EXECUTION_ORDERING_POLICY", PRECEDENCE_ORDERING).upper()
    if ordering_policy not in ORDERING_STRATEGIES:
        raise ConfigurationError("EXECUTION_ORDERING_POLICY_INVALID")

    return ServiceSettings(
        private_key=private_key,
        risk_api_key=risk_api_key,
        risk_api_url=env_str("RISK_API_URL", DEFAULT_RISK_API_URL),
        rpc_url=env_str("RPC_URL", DEFAULT_RPC_URL),
        server_origin=os.getenv("SERVER_ORIGIN", "").strip() or None,
        portfolio=load_portfolio_spec(os.getenv("PORTFOLIO_CONFIG_JSON")),
        ordering_policy=ordering_policy,
        settlement_delay_seconds=env_float("SETTLEMENT_DELAY_SECONDS", 5.0),
        bootstrap_max_attempts=env_int("BOOTSTRAP_MAX_ATTEMPTS", 5),
        bootstrap_initial_delay_seconds=env_float("BOOTSTRAP_INITIAL_DELAY_SECONDS", 1.0),
        bootstrap_backoff_factor=env_float("BOOTSTRAP_BACKOFF_FACTOR", 2.0),
        risk_api_timeout_seconds=env_float("RISK_API_TIMEOUT_SECONDS", 30.0),
    )

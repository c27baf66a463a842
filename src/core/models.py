from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


class PayloadKind(str, Enum):
    TOKEN_APPROVE_JOIN = "tokenApproveJoin"
    TOKEN_APPROVE_EXIT = "tokenApproveExit"
    POOL_JOIN = "poolJoin"
    POOL_EXIT = "poolExit"

    @property
    def is_approval(self) -> bool:
        return self in {PayloadKind.TOKEN_APPROVE_JOIN, PayloadKind.TOKEN_APPROVE_EXIT}

    @property
    def is_pool_action(self) -> bool:
        return self in {PayloadKind.POOL_JOIN, PayloadKind.POOL_EXIT}


# Single-kind names emitted by older risk-service deployments.
LEGACY_PAYLOAD_KINDS = {
    "tokenApprove": PayloadKind.TOKEN_APPROVE_JOIN,
    "poolAction": PayloadKind.POOL_JOIN,
}


class PortfolioSpec(BaseModel):
    """Desired portfolio configuration reconciled against the risk service."""

    model_config = {"populate_by_name": True, "frozen": True}

    portfolio_id: str = Field(
        alias="portfolioId", description="Portfolio identifier.", examples=["main-portfolio"]
    )
    org_id: str = Field(
        alias="orgId", description="Owning organization identifier.", examples=["risk-api-client"]
    )
    name: str = Field(description="Display name.", examples=["Main Portfolio"])
    chain_id: int = Field(alias="chainId", description="Target EVM chain id.", examples=[42161])
    max_risk_score: float = Field(
        alias="maxRiskScore", description="Maximum acceptable risk score.", examples=[3.75]
    )
    rebalance_frequency_hours: int = Field(
        alias="rebalanceFrequencyHours", description="Rebalance cadence in hours.", examples=[1]
    )
    rebalance_webhook_url: str = Field(
        alias="rebalanceWebhookUrl",
        description="Callback URL the risk service posts rebalance events to.",
        examples=["https://risk-api-client.vercel.app/webhook-target"],
    )
    min_num_positions: int = Field(alias="minNumPositions", ge=0, examples=[3])
    max_num_positions: int = Field(alias="maxNumPositions", ge=0, examples=[3])
    initial_amount_in_usd: Union[int, float] = Field(
        alias="initialAmountInUSD", ge=0, examples=[10]
    )
    wallet_addr: Optional[str] = Field(
        default=None,
        alias="walletAddr",
        description="Wallet address, always derived from the signing key at bootstrap.",
    )
    main_asset_addr: str = Field(
        alias="mainAssetAddr",
        description="Primary asset contract address.",
        examples=["0xaf88d065e77c8cC2239327C5EDb3A432268e5831"],
    )

    def to_create_query(self) -> Dict[str, str]:
        params = self.model_dump(by_alias=True, exclude_none=True)
        return {key: str(value) for key, value in params.items()}


class RemotePortfolio(BaseModel):
    model_config = {"populate_by_name": True, "extra": "allow"}

    id: str
    org_id: Optional[str] = Field(default=None, alias="orgId")
    is_active: Optional[bool] = Field(default=None, alias="isActive")
    name: Optional[str] = None
    chain_id: Optional[int] = Field(default=None, alias="chainId")
    wallet_addr: Optional[str] = Field(default=None, alias="walletAddr")

    def matches(self, spec: PortfolioSpec) -> bool:
        return self.id == spec.portfolio_id and self.org_id == spec.org_id


class ServiceEnvelope(BaseModel):
    """Response shape shared by every risk-service endpoint."""

    model_config = {"extra": "allow"}

    status: bool = False
    res: Optional[Any] = None
    error: Optional[Any] = None


class Payload(BaseModel):
    model_config = {"populate_by_name": True}

    kind: PayloadKind = Field(alias="type", description="Payload action kind.")
    chain_id: int = Field(alias="chainId", description="Target EVM chain id.")
    to: str = Field(description="Destination contract address.")
    data: str = Field(default="0x", description="ABI-encoded call data.")
    value: Optional[Union[int, str]] = Field(
        default=0, description="Native value to send (wei); null is treated as zero."
    )

    @field_validator("kind", mode="before")
    @classmethod
    def _resolve_legacy_kind(cls, value: Any) -> Any:
        if isinstance(value, str) and value in LEGACY_PAYLOAD_KINDS:
            return LEGACY_PAYLOAD_KINDS[value]
        return value


class Allocation(BaseModel):
    model_config = {"populate_by_name": True, "extra": "allow"}

    pool_id: str = Field(alias="beefyId", description="Target pool identifier.", examples=["p1"])
    status_label: Optional[str] = Field(
        default=None, alias="status", description="Human readable allocation status."
    )
    payload: Payload


class ExecutionStep(BaseModel):
    position: int = Field(ge=1, description="1-based position within the ordered batch.")
    pool_id: str
    status_label: Optional[str] = None
    payload: Payload

    @property
    def kind(self) -> PayloadKind:
        return self.payload.kind


class BatchResult(BaseModel):
    status: Literal["SUCCEEDED", "FAILED"]
    steps_total: int
    steps_attempted: int
    failed_step: Optional[int] = Field(
        default=None, description="1-based position of the step that halted the batch."
    )
    failed_kind: Optional[PayloadKind] = None
    failed_pool_id: Optional[str] = None
    failed_status_label: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "SUCCEEDED"

    @classmethod
    def success(cls, *, steps_total: int) -> "BatchResult":
        return cls(status="SUCCEEDED", steps_total=steps_total, steps_attempted=steps_total)

    @classmethod
    def failure(cls, *, step: ExecutionStep, steps_total: int, error: str) -> "BatchResult":
        return cls(
            status="FAILED",
            steps_total=steps_total,
            steps_attempted=step.position,
            failed_step=step.position,
            failed_kind=step.kind,
            failed_pool_id=step.pool_id,
            failed_status_label=step.status_label,
            error=error,
        )


class RebalanceWebhookRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "event": "rebalance",
                "allocations": [
                    {
                        "beefyId": "p1",
                        "status": "join",
                        "payload": {
                            "type": "tokenApproveJoin",
                            "chainId": 42161,
                            "to": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
                            "data": "0x095ea7b3",
                            "value": "0",
                        },
                    }
                ],
            }
        }
    }

    event: str = Field(min_length=1, description="Event type; only `rebalance` is accepted.")
    allocations: List[Allocation] = Field(description="Allocation steps to execute.")

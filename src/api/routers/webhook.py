import hmac
import logging
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from src.api.bootstrap import ServiceRuntime
from src.api.dependencies import get_runtime
from src.api.single_flight import BatchInFlightError
from src.core.models import RebalanceWebhookRequest
from src.infrastructure.risk_service import bearer_header

router = APIRouter(tags=["Rebalance Webhook"])
logger = logging.getLogger(__name__)

REBALANCE_EVENT = "rebalance"


def is_authorized(authorization: Optional[str], secret: str) -> bool:
    if not authorization or not secret:
        return False
    return hmac.compare_digest(
        authorization.strip().encode("utf-8"), bearer_header(secret).encode("utf-8")
    )


def _error(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": False, "error": error, **extra})


@router.post(
    "/webhook-target",
    status_code=status.HTTP_200_OK,
    summary="Execute Rebalance Event",
    description=(
        "Authenticated callback invoked by the risk service. Executes the delivered "
        "allocation batch in order; only one batch runs at a time and concurrent "
        "deliveries are rejected with 429."
    ),
)
async def receive_rebalance_webhook(
    request: Request,
    runtime: Annotated[ServiceRuntime, Depends(get_runtime)],
    authorization: Annotated[Optional[str], Header(alias="Authorization")] = None,
) -> JSONResponse:
    if not is_authorized(authorization, runtime.settings.risk_api_key.get_secret_value()):
        logger.warning(
            "webhook.unauthorized",
            extra={"extra_fields": {"header_present": authorization is not None}},
        )
        return _error(status.HTTP_401_UNAUTHORIZED, "UNAUTHORIZED")

    try:
        async with runtime.guard.hold():
            return await _dispatch(request, runtime)
    except BatchInFlightError:
        logger.warning("webhook.rejected.batch_in_flight")
        return _error(status.HTTP_429_TOO_MANY_REQUESTS, "BATCH_IN_FLIGHT")


async def _dispatch(request: Request, runtime: ServiceRuntime) -> JSONResponse:
    try:
        body = await request.json()
    except ValueError:
        return _error(status.HTTP_400_BAD_REQUEST, "INVALID_WEBHOOK_BODY")

    if not isinstance(body, dict) or not body.get("event") or body.get("allocations") is None:
        return _error(
            status.HTTP_400_BAD_REQUEST,
            "INVALID_WEBHOOK_BODY",
            detail="Missing 'event' or 'allocations' in request body",
        )
    if body["event"] != REBALANCE_EVENT:
        return _error(status.HTTP_400_BAD_REQUEST, "UNSUPPORTED_EVENT_TYPE")

    try:
        event = RebalanceWebhookRequest.model_validate(body)
    except ValidationError as exc:
        return _error(
            status.HTTP_400_BAD_REQUEST,
            "INVALID_WEBHOOK_BODY",
            detail=exc.errors(include_url=False, include_context=False, include_input=False),
        )

    logger.info(
        "webhook.rebalance.received",
        extra={"extra_fields": {"allocations": len(event.allocations)}},
    )
    try:
        result = await runtime.engine.execute_batch(event.allocations)
    except Exception:
        logger.exception("webhook.rebalance.engine_error")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR")

    if result.succeeded:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"status": True, "result": result.model_dump(mode="json")},
        )
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "BATCH_EXECUTION_FAILED",
        result=result.model_dump(mode="json"),
    )

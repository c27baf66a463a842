import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from src.api.bootstrap import ServiceRuntime
from src.api.dependencies import get_runtime

router = APIRouter(tags=["Health"])
logger = logging.getLogger(__name__)


@router.get(
    "/is-healthy",
    summary="Portfolio Liveness",
    description="Returns `status: true` only when the configured portfolio exists and is active.",
)
async def is_healthy(runtime: Annotated[ServiceRuntime, Depends(get_runtime)]) -> JSONResponse:
    healthy = await runtime.reconciler.is_healthy(runtime.settings.portfolio)
    logger.info("health.portfolio.checked", extra={"extra_fields": {"healthy": healthy}})
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"status": healthy},
    )


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@router.get("/health/live")
async def health_live() -> dict:
    return {"status": "live"}


@router.get("/health/ready")
async def health_ready(request: Request) -> JSONResponse:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None or not runtime.ready:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"status": "not_ready"}
        )
    return JSONResponse(status_code=status.HTTP_200_OK, content={"status": "ready"})

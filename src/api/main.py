"""
FILE: src/api/main.py
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.api.bootstrap import build_runtime, run_startup_reconciliation
from src.api.config import env_int, load_settings
from src.api.observability import setup_observability
from src.api.routers.health import router as health_router
from src.api.routers.webhook import router as webhook_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _app_lifespan(app: FastAPI):
    settings = load_settings()
    runtime = build_runtime(settings)
    app.state.runtime = runtime
    try:
        await run_startup_reconciliation(runtime)
        yield
    finally:
        await runtime.aclose()
        app.state.runtime = None


app = FastAPI(
    title="Risk API Rebalance Client",
    version="0.1.0",
    description=(
        "Keeps the configured portfolio registered and active on the risk service, "
        "and executes signed rebalance transactions delivered by its webhook."
    ),
    openapi_tags=[
        {
            "name": "Rebalance Webhook",
            "description": "Inbound rebalance events from the risk service.",
        },
        {
            "name": "Health",
            "description": "Portfolio liveness and process readiness probes.",
        },
    ],
    lifespan=_app_lifespan,
)
app.state.runtime = None

setup_observability(app)
app.include_router(webhook_router)
app.include_router(health_router)


@app.exception_handler(Exception)
async def unhandled_exception_to_problem_details(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception while serving request", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        media_type="application/problem+json",
        content={
            "type": "about:blank",
            "title": "Internal Server Error",
            "status": 500,
            "detail": "An unexpected error occurred.",
            "instance": str(request.url.path),
        },
    )


def run() -> None:
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=env_int("PORT", 3000), log_config=None)


if __name__ == "__main__":
    run()

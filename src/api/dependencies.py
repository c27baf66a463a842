from fastapi import HTTPException, Request, status

from src.api.bootstrap import ServiceRuntime


def get_runtime(request: Request) -> ServiceRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="SERVICE_NOT_INITIALIZED"
        )
    return runtime

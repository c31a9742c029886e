"""
Health check endpoints for the ConfigMap state backend.

Provides /health (liveness) and /ready (readiness) endpoints. Neither path can
collide with a state object, which always has two path segments.
"""

from fastapi import APIRouter, Request, Response, status

from configmap_backend.logging_config import get_logger

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@router.get("/health", status_code=status.HTTP_200_OK)
async def health() -> dict[str, str]:
    """Liveness probe endpoint.

    Returns 200 if the server is running.
    """
    return {"status": "healthy"}


@router.get("/ready", status_code=status.HTTP_200_OK)
async def ready(request: Request, response: Response) -> dict[str, str | dict[str, str]]:
    """Readiness probe endpoint.

    Checks that the Kubernetes clients are initialized.
    """
    checks: dict[str, str] = {}

    context = getattr(request.app.state, "backend", None)
    checks["kubernetes"] = "healthy" if context is not None else "unhealthy"

    if not all(v == "healthy" for v in checks.values()):
        logger.warning("Readiness check failed", checks=checks)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not ready", "checks": checks}

    return {"status": "ready", "checks": checks}

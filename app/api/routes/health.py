from __future__ import annotations

from fastapi import APIRouter

from app.core.config import settings

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Never rate limited, so load balancers and monitors can always reach it.

    Returns:
        dict: ``status`` set to "ok" and whether rate limiting is enabled.
    """

    return {"status": "ok", "rate_limit_enabled": settings.app.rate_limit_enabled}

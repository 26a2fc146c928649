"""Routes that need no configuration or credentials."""

from fastapi import APIRouter

from calbot.infra.time import utc_now

router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Liveness probe."""
    return {"status": "ok", "timestamp": utc_now().isoformat()}

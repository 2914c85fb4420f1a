"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from kalimat import __version__
from kalimat.web.deps import Services, get_services
from kalimat.web.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(services: Services = Depends(get_services)) -> HealthResponse:
    """Check API health status."""
    return HealthResponse(
        status="ok",
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
        store=services.config.store.kind,
    )

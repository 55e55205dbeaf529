from fastapi import APIRouter

from headshot_api.schemas.health import HealthCheckResponse
from headshot_common.core.config_service import config_service

from .billing import router as billing_router
from .credits import credits_router
from .headshots import headshots_router


router = APIRouter()


# Health check endpoint
@router.get("/api/v1/health")
async def health_check() -> HealthCheckResponse:
    """Health check endpoint for monitoring and testing"""
    return HealthCheckResponse(
        status="healthy",
        service="backend",
        environment=config_service.get_environment(),
        is_testing=config_service.is_testing(),
        database_type="sqlite" if config_service.is_sqlite() else "postgresql",
    )


# Include route definitions
router.include_router(billing_router, prefix="/api/v1", tags=["billing"])
router.include_router(credits_router, prefix="/api/v1", tags=["credits"])
router.include_router(headshots_router, prefix="/api/v1", tags=["headshots"])

"""
Health check and monitoring endpoints
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leadhub import __version__
from leadhub.config import settings
from leadhub.database import get_db
from leadhub.obs.logging import get_logger
from leadhub.obs.metrics import metrics_response
from leadhub.schemas.responses import HealthCheckResponse
from leadhub.services.redis_service import get_redis_service

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@router.get("/health", response_model=HealthCheckResponse)
def health_check(db: Session = Depends(get_db)):
    """Database and redis status; redis is optional so only the database decides."""
    checks = {}
    status_code = 200

    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e.__class__.__name__}")
        checks["database"] = "unhealthy"
        status_code = 503

    if settings.is_redis_configured():
        checks["redis"] = get_redis_service().health_check()["status"]
    else:
        checks["redis"] = "not_configured"

    body = HealthCheckResponse(
        status="healthy" if status_code == 200 else "unhealthy",
        version=__version__,
        checks=checks,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.get("/metrics")
async def metrics():
    """Prometheus exposition endpoint."""
    return metrics_response()

"""Health check endpoint"""

from fastapi import APIRouter, Response, status
from sqlalchemy import text
from app.database.session import SessionLocal
from app.schemas.response import HealthResponse
from app.config import settings
from redis import Redis
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", response_model=HealthResponse)
def health_check(response: Response):
    """
    Health check endpoint
    Checks connectivity to:
    - Database
    - Redis (only when the embedding cache is enabled)
    """
    health_status = {
        "status": "healthy",
        "dependencies": {}
    }

    # Check database
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
        health_status["dependencies"]["database"] = "connected"
    except Exception as e:
        health_status["dependencies"]["database"] = f"error: {str(e)}"
        health_status["status"] = "unhealthy"
        logger.error(f"Database health check failed: {str(e)}")

    # Check Redis (optional - the cache degrades to uncached)
    if settings.EMBEDDING_CACHE_ENABLED:
        try:
            redis_client = Redis.from_url(settings.REDIS_URL, socket_connect_timeout=2)
            redis_client.ping()
            health_status["dependencies"]["redis"] = "connected"
        except Exception as e:
            health_status["dependencies"]["redis"] = f"not available: {str(e)}"
            logger.warning(f"Redis health check failed: {str(e)}")
    else:
        health_status["dependencies"]["redis"] = "disabled"

    # Set HTTP status code
    if health_status["status"] == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(**health_status)

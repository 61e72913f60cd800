"""
Health check endpoints
"""
from fastapi import APIRouter

from esmc import __version__
from esmc.core.config import get_settings
from esmc.utils.datetime_utils import utc_now_iso

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint
    
    Returns:
        dict: Health status
    """
    settings = get_settings()
    return {
        "status": "healthy",
        "timestamp": utc_now_iso(),
        "service": settings.app_name,
        "version": __version__,
        "environment": settings.app_env,
    }

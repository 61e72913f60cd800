"""
API routes for tier status
"""
from fastapi import APIRouter, Depends

from esmc.api.dependencies import get_tier_manager
from esmc.services.tier_manager import TierManager

router = APIRouter(prefix="/api/tier", tags=["tier"])


@router.get("/")
async def tier_status(manager: TierManager = Depends(get_tier_manager)):
    """Active tier and its feature set"""
    return {
        "tier": manager.get_tier(),
        "user": manager.get_user_info(),
        "features": manager.get_features(),
    }

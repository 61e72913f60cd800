"""
API routes for the proactive halt checkpoint
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from esmc.api.dependencies import get_checkpoint
from esmc.components.contracts import Proposal
from esmc.core.logging_config import LoggingConfig
from esmc.services.halt_checkpoint import HaltCheckpoint

logger = LoggingConfig.get_logger(__name__)

router = APIRouter(prefix="/api/halt", tags=["halt"])


class EvaluateRequest(BaseModel):
    """Proposal to evaluate"""
    description: str = Field(..., min_length=1)
    keywords: List[str] = Field(default_factory=list)
    approach: str = ""
    session_id: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)


@router.post("/evaluate")
async def evaluate_halt(
    request: EvaluateRequest,
    checkpoint: HaltCheckpoint = Depends(get_checkpoint)
):
    """Run the checkpoint and return the decision (shouldHalt, severity, reasons, ...)"""
    proposal = Proposal(**request.model_dump())
    decision = await checkpoint.evaluate_halt(proposal)
    return decision.to_dict()

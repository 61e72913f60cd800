"""
API routes for the technical synthesizer
"""
from typing import Any, Dict, Union

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from esmc.core.exceptions import SynthesisInputError
from esmc.services.technical_synthesizer import synthesize

router = APIRouter(prefix="/api/synthesize", tags=["synthesis"])

FragmentInput = Union[Dict[str, Any], str]


class SynthesisRequest(BaseModel):
    """The four intelligence fragments, as objects or JSON strings"""
    piu: FragmentInput
    dki: FragmentInput
    uip: FragmentInput
    pca: FragmentInput


@router.post("/")
async def synthesize_fragments(request: SynthesisRequest):
    """Merge the fragments into a technical summary"""
    try:
        return synthesize(request.piu, request.dki, request.uip, request.pca)
    except SynthesisInputError as e:
        raise HTTPException(status_code=400, detail=e.message)

"""
API routes for the lessons ledger
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from esmc.api.dependencies import get_ledger
from esmc.core.exceptions import LedgerError
from esmc.core.logging_config import LoggingConfig
from esmc.services.lesson_ledger import LessonLedger

logger = LoggingConfig.get_logger(__name__)

router = APIRouter(prefix="/api/lessons", tags=["lessons"])


@router.get("/")
async def list_lessons(
    category: Optional[str] = Query(None, description="Only lessons of this category"),
    ledger: LessonLedger = Depends(get_ledger)
):
    """List recorded lessons, oldest first"""
    try:
        lessons = ledger.list_lessons(category=category)
    except LedgerError as e:
        logger.error(f"Cannot read lessons ledger: {e}")
        raise HTTPException(status_code=500, detail=e.message)
    return {
        "total": len(lessons),
        "max_entries": ledger.max_entries,
        "lessons": [lesson.model_dump(mode="json") for lesson in lessons],
    }

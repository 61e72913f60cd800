"""
Shared service instances for API routes

The checkpoint is cached so its iteration counter spans requests.
"""
from functools import lru_cache

from esmc.services.halt_checkpoint import HaltCheckpoint
from esmc.services.lesson_ledger import LessonLedger
from esmc.services.tier_manager import TierManager


@lru_cache()
def get_ledger() -> LessonLedger:
    return LessonLedger()


@lru_cache()
def get_checkpoint() -> HaltCheckpoint:
    return HaltCheckpoint(ledger=get_ledger())


def get_tier_manager() -> TierManager:
    manager = TierManager()
    manager.initialize()
    return manager

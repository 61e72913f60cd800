"""
Pytest configuration and fixtures
"""
import os
from pathlib import Path

import pytest

# Keep test runs independent of any local .env
os.environ.setdefault("ESMC_LOG_FILE_ENABLED", "false")
os.environ.setdefault("ESMC_LOG_FORMAT", "text")

from esmc.components.contracts import HaltSeverity, Proposal
from esmc.core.config import get_settings
from esmc.services.lesson_ledger import LessonLedger


@pytest.fixture(autouse=True)
def fresh_settings():
    """Settings are cached; drop the cache around every test"""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def ledger_path(tmp_path: Path) -> Path:
    return tmp_path / ".claude" / "memory" / ".esmc-lessons.json"


@pytest.fixture
def ledger(ledger_path: Path) -> LessonLedger:
    return LessonLedger(ledger_path, max_entries=50)


@pytest.fixture
def proposal() -> Proposal:
    return Proposal(
        description="Rewrite the import graph to break the circular dependency",
        keywords=["circular", "imports"],
        approach="move shared types into a new module",
        session_id="session-1",
    )


class StubDetector:
    """Detector returning a canned result (or raising it when it is an exception)"""

    def __init__(self, name, result):
        self.name = name
        self.result = result
        self.calls = 0

    async def detect(self, proposal):
        self.calls += 1
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture
def stub_detector():
    return StubDetector


QUIET_RESULTS = {
    "error_signature": {"detected": False, "match_score": 0.0, "severity": HaltSeverity.NONE.value,
                        "signature": None, "message": None},
    "iteration": {"count": 1, "severity": HaltSeverity.NONE.value, "approach": "first try"},
    "cross_session": {"found": False, "precedents": [], "best_similarity": 0.0},
    "user_intervention": {"detected": False, "severity": HaltSeverity.NONE.value,
                          "frustration_score": 0.0, "signals": []},
}


@pytest.fixture
def quiet_results():
    return {name: dict(result) for name, result in QUIET_RESULTS.items()}

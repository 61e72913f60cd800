"""
Pluggable detectors consumed by the halt checkpoint.

A detector looks at a Proposal and returns a plain dict in a fixed shape. The
checkpoint never depends on how a detector reaches its answer, only on the shape:

    error_signature:   {detected, match_score, severity, signature, message}
    iteration:         {count, severity, approach}
    cross_session:     {found, precedents, best_similarity}
    user_intervention: {detected, severity, frustration_score, signals}

The defaults below are local and deterministic; any object with a `name` and an
async `detect(proposal)` can replace them.
"""

from __future__ import annotations

import asyncio
import re
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from esmc.components.contracts import HaltSeverity, Precedent, Proposal
from esmc.core.logging_config import LoggingConfig
from esmc.services.lesson_ledger import LessonLedger, extract_keywords

logger = LoggingConfig.get_logger(__name__)

ERROR_SIGNATURE = "error_signature"
ITERATION = "iteration"
CROSS_SESSION = "cross_session"
USER_INTERVENTION = "user_intervention"

DETECTOR_NAMES = (ERROR_SIGNATURE, ITERATION, CROSS_SESSION, USER_INTERVENTION)


class BaseDetector(ABC):
    """Base class for halt checkpoint detectors"""

    name: str = "detector"

    @abstractmethod
    async def detect(self, proposal: Proposal) -> Dict[str, Any]:
        """Inspect a proposal and return this detector's result dict"""


@dataclass
class ErrorSignature:
    """A known failure pattern"""
    signature: str
    pattern: str
    keywords: List[str]
    severity: HaltSeverity = HaltSeverity.WARNING
    message: str = ""

    def score(self, text: str) -> float:
        """1.0 on a pattern hit, otherwise the share of keywords present in text"""
        if re.search(self.pattern, text, re.IGNORECASE):
            return 1.0
        if not self.keywords:
            return 0.0
        hits = sum(1 for kw in self.keywords if kw in text)
        return round(hits / len(self.keywords), 2)


DEFAULT_SIGNATURES: List[ErrorSignature] = [
    ErrorSignature(
        signature="circular_dependency",
        pattern=r"circular.*(dependency|import)",
        keywords=["circular", "dependency", "import"],
        severity=HaltSeverity.CRITICAL,
        message="Circular dependencies have broken this build before",
    ),
    ErrorSignature(
        signature="dependency_not_found",
        pattern=r"(module|dependency|package).*not.*found",
        keywords=["module", "missing", "not found", "install"],
        severity=HaltSeverity.CRITICAL,
        message="Missing dependency errors recur when the environment is not checked first",
    ),
    ErrorSignature(
        signature="plan_without_steps",
        pattern=r"plan.*has.*no.*steps",
        keywords=["plan", "empty", "steps"],
        severity=HaltSeverity.CRITICAL,
        message="An empty plan cannot be executed",
    ),
    ErrorSignature(
        signature="schema_migration_conflict",
        pattern=r"(migration|alembic).*(conflict|multiple heads)",
        keywords=["migration", "schema", "alembic", "heads"],
        severity=HaltSeverity.WARNING,
        message="Schema migrations conflicted on a previous attempt",
    ),
    ErrorSignature(
        signature="timeout_retry_loop",
        pattern=r"retry.*timeout|timeout.*retry",
        keywords=["timeout", "retry", "hang"],
        severity=HaltSeverity.WARNING,
        message="Retrying on timeout has looped without progress before",
    ),
    ErrorSignature(
        signature="expired_credentials",
        pattern=r"(token|credential|session).*expired",
        keywords=["token", "expired", "auth", "login"],
        severity=HaltSeverity.WARNING,
        message="Expired credentials were the root cause of earlier failures",
    ),
]


class ErrorSignatureDetector(BaseDetector):
    """Matches a proposal against a registry of known error signatures"""

    name = ERROR_SIGNATURE

    def __init__(self, signatures: Optional[List[ErrorSignature]] = None, detection_floor: float = 0.3):
        self.signatures = list(signatures) if signatures is not None else list(DEFAULT_SIGNATURES)
        self.detection_floor = detection_floor

    def register_signature(self, signature: ErrorSignature) -> None:
        self.signatures.append(signature)

    async def detect(self, proposal: Proposal) -> Dict[str, Any]:
        text = proposal.text
        best: Optional[ErrorSignature] = None
        best_score = 0.0
        for signature in self.signatures:
            score = signature.score(text)
            if score > best_score:
                best, best_score = signature, score

        if best is None or best_score < self.detection_floor:
            return {
                "detected": False,
                "match_score": best_score,
                "severity": HaltSeverity.NONE.value,
                "signature": None,
                "message": None,
            }

        return {
            "detected": True,
            "match_score": best_score,
            "severity": best.severity.value,
            "signature": best.signature,
            "message": best.message or f"Matches known error signature '{best.signature}'",
        }


@dataclass
class _Attempts:
    count: int = 0
    approaches: List[str] = field(default_factory=list)


class IterationCounter(BaseDetector):
    """
    Counts repeated attempts at the same topic within a session

    The count is per (session, topic), where the topic is the sorted keyword set
    (or the normalised description when there are no keywords). The approach does
    not split the count: past the threshold, severity is critical when the
    normalised approach was already tried for that topic and warning otherwise.
    """

    name = ITERATION

    def __init__(self, threshold: int = 2):
        self.threshold = threshold
        self._attempts: Dict[Tuple[str, str], _Attempts] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _topic(proposal: Proposal) -> str:
        if proposal.keywords:
            return "|".join(sorted(proposal.keywords))
        return " ".join(proposal.description.lower().split())

    def reset(self, session_id: Optional[str] = None) -> None:
        with self._lock:
            if session_id is None:
                self._attempts.clear()
            else:
                for key in [k for k in self._attempts if k[0] == session_id]:
                    del self._attempts[key]

    async def detect(self, proposal: Proposal) -> Dict[str, Any]:
        approach = " ".join(proposal.approach.lower().split())
        key = (proposal.session_id or "default", self._topic(proposal))

        with self._lock:
            attempts = self._attempts.setdefault(key, _Attempts())
            repeated = approach in attempts.approaches
            attempts.count += 1
            attempts.approaches.append(approach)
            count = attempts.count

        if count > self.threshold:
            severity = HaltSeverity.CRITICAL if repeated else HaltSeverity.WARNING
        else:
            severity = HaltSeverity.NONE

        return {"count": count, "severity": severity.value, "approach": approach}


class LessonPrecedentMatcher(BaseDetector):
    """Finds lessons in the ledger that resemble the proposal"""

    name = CROSS_SESSION

    def __init__(self, ledger: Optional[LessonLedger] = None, min_similarity: float = 0.2, limit: int = 5):
        self.ledger = ledger or LessonLedger()
        self.min_similarity = min_similarity
        self.limit = limit

    @staticmethod
    def similarity(keywords: List[str], triggers: List[str]) -> float:
        """Share of keywords that overlap (by substring) with the trigger set, over the larger set"""
        if not keywords or not triggers:
            return 0.0
        matched = sum(
            1 for kw in keywords
            if any(kw in trigger or trigger in kw for trigger in triggers)
        )
        return round(matched / max(len(keywords), len(triggers)), 2)

    async def detect(self, proposal: Proposal) -> Dict[str, Any]:
        keywords = proposal.keywords or extract_keywords(proposal.description)
        lessons = await asyncio.to_thread(self.ledger.list_lessons)

        scored = []
        for lesson in lessons:
            score = self.similarity(keywords, lesson.trigger_keywords)
            if score >= self.min_similarity:
                scored.append((score, lesson))
        scored.sort(key=lambda pair: pair[0], reverse=True)

        precedents = [
            Precedent(
                source="lessons",
                rank=rank,
                session_id=None,
                similarity=score,
                lesson_id=lesson.id,
                lesson=lesson.lesson,
                severity=lesson.severity,
                date=lesson.date,
            ).model_dump(mode="json")
            for rank, (score, lesson) in enumerate(scored[:self.limit], start=1)
        ]

        return {
            "found": bool(precedents),
            "precedents": precedents,
            "best_similarity": precedents[0]["similarity"] if precedents else 0.0,
        }


class UserInterventionDetector(BaseDetector):
    """Scores frustration signals in the latest user message (proposal.context['user_message'])"""

    name = USER_INTERVENTION

    SIGNAL_PATTERNS = [
        ("already_told", r"\b(i )?(already )?told you\b", 0.5),
        ("keeps_repeating", r"\bwhy (do|did|are) you (keep|still)\b", 0.5),
        ("stop", r"\bstop\b", 0.4),
        ("again", r"\bagain\b", 0.2),
        ("wrong", r"\b(wrong|broken|not what i asked)\b", 0.2),
        ("explicit_no", r"\b(no|don'?t|do not)\b", 0.1),
        ("exclamation", r"!{2,}", 0.2),
    ]

    def __init__(self, detection_floor: float = 0.3, critical_floor: float = 0.7):
        self.detection_floor = detection_floor
        self.critical_floor = critical_floor

    def score(self, message: str) -> Tuple[float, List[str]]:
        signals = []
        total = 0.0
        lowered = message.lower()
        for signal, pattern, weight in self.SIGNAL_PATTERNS:
            if re.search(pattern, lowered):
                signals.append(signal)
                total += weight
        if re.search(r"\b[A-Z]{3,}\b", message):
            signals.append("shouting")
            total += 0.2
        return round(min(total, 1.0), 2), signals

    async def detect(self, proposal: Proposal) -> Dict[str, Any]:
        message = str(proposal.context.get("user_message") or "")
        frustration, signals = self.score(message)

        if frustration >= self.critical_floor:
            severity = HaltSeverity.CRITICAL
        elif frustration >= self.detection_floor:
            severity = HaltSeverity.WARNING
        else:
            severity = HaltSeverity.NONE

        return {
            "detected": severity != HaltSeverity.NONE,
            "severity": severity.value,
            "frustration_score": frustration,
            "signals": signals,
        }


def default_detectors(ledger: Optional[LessonLedger] = None, iteration_threshold: int = 2) -> Dict[str, BaseDetector]:
    """The four built-in detectors keyed by name"""
    return {
        ERROR_SIGNATURE: ErrorSignatureDetector(),
        ITERATION: IterationCounter(threshold=iteration_threshold),
        CROSS_SESSION: LessonPrecedentMatcher(ledger=ledger),
        USER_INTERVENTION: UserInterventionDetector(),
    }

"""
Lessons ledger: a bounded JSON file of lessons learned from halted proposals

The ledger is a single JSON document:
    {version, system, created, last_updated, lessons: [...], max_entries}

Lessons are appended, deduplicated by trigger keyword, never mutated, and evicted
oldest-first (non-critical before critical) once the ledger exceeds max_entries.
"""
import json
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import ValidationError

from esmc.components.contracts import (HaltSeverity, LedgerDocument, Lesson,
                                       normalize_keywords)
from esmc.core.config import get_settings
from esmc.core.exceptions import LedgerError
from esmc.core.logging_config import LoggingConfig
from esmc.utils.datetime_utils import utc_now_iso, utc_today

logger = LoggingConfig.get_logger(__name__)

_ID_SUFFIX = re.compile(r"(\d+)$")
_WORD = re.compile(r"[a-z][a-z0-9_\-]{3,}")
_STOPWORDS = {
    "this", "that", "with", "from", "into", "have", "been", "will", "when",
    "then", "than", "them", "they", "what", "which", "while", "again", "should",
    "would", "could", "about", "after", "before", "there", "their", "using",
}

# One lock per ledger file, shared by every LessonLedger pointing at it
_locks: Dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _locks_guard:
        if key not in _locks:
            _locks[key] = threading.Lock()
        return _locks[key]


def extract_keywords(text: str, limit: int = 5) -> List[str]:
    """Pick up to `limit` distinctive words from free text"""
    words = [w for w in _WORD.findall(text.lower()) if w not in _STOPWORDS]
    return normalize_keywords(words)[:limit]


class LessonLedger:
    """Read/append access to the lessons ledger file"""

    def __init__(self, path: Optional[Union[str, Path]] = None, max_entries: Optional[int] = None):
        settings = get_settings()
        self.path = Path(path) if path is not None else settings.lessons_file
        self.max_entries = max_entries if max_entries is not None else settings.lessons_max_entries
        self._lock = _lock_for(self.path)

    def load(self) -> LedgerDocument:
        """
        Load the ledger document

        Returns:
            The parsed ledger, or a fresh empty one if the file does not exist

        Raises:
            LedgerError: if the file exists but is not a valid ledger
        """
        if not self.path.exists():
            return LedgerDocument(max_entries=self.max_entries)
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return LedgerDocument.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise LedgerError(
                f"Lessons ledger at {self.path} is unreadable: {e}",
                details={"path": str(self.path)}
            ) from e

    def list_lessons(self, category: Optional[str] = None) -> List[Lesson]:
        lessons = self.load().lessons
        if category:
            lessons = [lesson for lesson in lessons if lesson.category == category]
        return lessons

    @staticmethod
    def find_similar(lessons: List[Lesson], keywords: List[str]) -> Optional[Lesson]:
        """
        Find the first lesson sharing a trigger keyword

        A keyword matches when it is a substring of an existing trigger keyword or
        of the lesson text, or an existing trigger keyword is a substring of it.
        """
        keywords = normalize_keywords(keywords)
        if not keywords:
            return None
        for lesson in lessons:
            lesson_text = lesson.lesson.lower()
            triggers = [t.lower() for t in lesson.trigger_keywords]
            for kw in keywords:
                if kw in lesson_text:
                    return lesson
                if any(kw in trigger or trigger in kw for trigger in triggers if trigger):
                    return lesson
        return None

    @staticmethod
    def next_id(lessons: List[Lesson]) -> str:
        """lesson-NNN where NNN is the highest existing numeric suffix plus one"""
        highest = 0
        for lesson in lessons:
            match = _ID_SUFFIX.search(lesson.id)
            if match:
                highest = max(highest, int(match.group(1)))
        return f"lesson-{highest + 1:03d}"

    def _evict(self, lessons: List[Lesson]) -> List[Lesson]:
        """
        Drop oldest non-critical lessons (oldest overall as a last resort) until within cap

        The last lesson is the one being added and is never chosen.
        """
        lessons = list(lessons)
        while len(lessons) > self.max_entries:
            victim = next(
                (i for i, lesson in enumerate(lessons[:-1]) if not lesson.is_critical),
                0
            )
            evicted = lessons.pop(victim)
            logger.info(
                f"Evicted lesson {evicted.id} from ledger",
                extra={"lesson_id": evicted.id, "lesson_severity": evicted.severity}
            )
        return lessons

    def _write(self, document: LedgerDocument) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(document.model_dump(mode="json"), indent=2, ensure_ascii=False)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.tmp.", dir=str(self.path.parent))
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def add_lesson(
        self,
        lesson: str,
        keywords: List[str],
        severity: Union[HaltSeverity, str] = HaltSeverity.WARNING,
        category: str = "phc_halt",
        context: str = "",
        components_affected: Optional[List[str]] = None,
        frustration_score: float = 0.0,
        repetition_count: int = 0,
        precedent_count: int = 0,
        halt_reasons: Optional[List[str]] = None,
        auto_generated: bool = True,
        phc_halt: bool = True,
    ) -> Optional[Lesson]:
        """
        Append a lesson unless a similar one already exists

        Args:
            lesson: Lesson text
            keywords: Trigger keywords; extracted from the lesson text when empty
            severity: "warning" or "critical"; critical lessons survive eviction longer

        Returns:
            The stored Lesson, or None when a similar lesson was already present
        """
        trigger_keywords = normalize_keywords(keywords) or extract_keywords(lesson)
        severity_value = severity.value if isinstance(severity, HaltSeverity) else str(severity)

        with self._lock:
            document = self.load()
            existing = self.find_similar(document.lessons, trigger_keywords)
            if existing is not None:
                logger.info(
                    f"Similar lesson {existing.id} already recorded, skipping",
                    extra={"lesson_id": existing.id, "trigger_keywords": trigger_keywords}
                )
                return None

            new_lesson = Lesson(
                id=self.next_id(document.lessons),
                date=utc_today(),
                category=category,
                severity=severity_value,
                lesson=lesson,
                context=context,
                trigger_keywords=trigger_keywords,
                components_affected=components_affected or [],
                frustration_score=frustration_score,
                repetition_count=repetition_count,
                auto_generated=auto_generated,
                phc_halt=phc_halt,
                precedent_count=precedent_count,
                halt_reasons=halt_reasons or [],
            )
            document.lessons = self._evict(document.lessons + [new_lesson])
            document.max_entries = self.max_entries
            document.last_updated = utc_now_iso()
            self._write(document)

        logger.info(
            f"Recorded lesson {new_lesson.id}",
            extra={"lesson_id": new_lesson.id, "lesson_severity": severity_value}
        )
        return new_lesson

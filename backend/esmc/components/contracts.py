"""
Contract models for the halt checkpoint and the lessons ledger.

Everything that crosses a component boundary (detectors -> checkpoint,
checkpoint -> ledger, checkpoint -> API/CLI) is one of these models, so the
shapes stay observable and testable.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from esmc.core.constants import LEDGER_SYSTEM, LEDGER_VERSION
from esmc.utils.datetime_utils import utc_now_iso


class HaltSeverity(str, Enum):
    """Overall or per-reason severity"""
    NONE = "none"
    WARNING = "warning"
    CRITICAL = "critical"


def normalize_keywords(values: Optional[List[str]]) -> List[str]:
    """Strip, lower-case and de-duplicate keywords, preserving order"""
    seen = set()
    result = []
    for value in values or []:
        kw = str(value).strip().lower()
        if kw and kw not in seen:
            seen.add(kw)
            result.append(kw)
    return result


class Proposal(BaseModel):
    description: str = Field(..., description="Free-text description of what is about to be done")
    keywords: List[str] = Field(default_factory=list)
    approach: str = Field(default="", description="Short name of the approach being attempted")
    session_id: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("keywords", mode="before")
    @classmethod
    def _normalize_keywords(cls, v):
        if isinstance(v, str):
            v = v.split(",")
        return normalize_keywords(v)

    @property
    def text(self) -> str:
        """Description, approach and keywords as one lower-cased haystack"""
        return " ".join([self.description, self.approach, " ".join(self.keywords)]).lower()


class Precedent(BaseModel):
    model_config = ConfigDict(extra="allow")

    source: str
    rank: int = 1
    session_id: Optional[str] = None
    similarity: float = Field(default=0.0, ge=0.0, le=1.0)


class HaltReason(BaseModel):
    component: str
    severity: HaltSeverity
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class HaltDecision(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    should_halt: bool = Field(default=False, alias="shouldHalt")
    severity: HaltSeverity = HaltSeverity.NONE
    reasons: List[HaltReason] = Field(default_factory=list)
    precedents: List[Precedent] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    component_results: Dict[str, Any] = Field(default_factory=dict)
    timestamp: str = Field(default_factory=utc_now_iso)
    lesson_id: Optional[str] = None
    dialogue: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready dict using the public camel-case halt flag"""
        return self.model_dump(mode="json", by_alias=True)


class Lesson(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    date: str
    category: str = "phc_halt"
    severity: str = HaltSeverity.WARNING.value
    lesson: str
    context: str = ""
    trigger_keywords: List[str] = Field(default_factory=list)
    components_affected: List[str] = Field(default_factory=list)
    frustration_score: float = 0.0
    repetition_count: int = 0
    auto_generated: bool = True
    phc_halt: bool = True
    precedent_count: int = 0
    halt_reasons: List[str] = Field(default_factory=list)

    @property
    def is_critical(self) -> bool:
        return self.severity == HaltSeverity.CRITICAL.value


class LedgerDocument(BaseModel):
    model_config = ConfigDict(extra="allow")

    version: str = LEDGER_VERSION
    system: str = LEDGER_SYSTEM
    created: str = Field(default_factory=utc_now_iso)
    last_updated: str = Field(default_factory=utc_now_iso)
    lessons: List[Lesson] = Field(default_factory=list)
    max_entries: int = Field(default=50, ge=1)

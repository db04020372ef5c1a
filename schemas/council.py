"""Council schemas — production brainstorm output and audience evaluations.

The production council holds one simulated meeting per generation part and
returns a transcript plus N narratives with a consensus label. The audience
council returns one PersonaEvaluation per persona; every persona shares the
same record shape (score + reasoning + optional engagement answers) and any
persona-specific fields ride along as extras.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Production council brainstorm
# ---------------------------------------------------------------------------

class ConversationMessage(BaseModel):
    speaker: str
    message: str
    phase: str = Field("", description="understanding / ideation / refinement / finalization")


class NarrativeDraft(BaseModel):
    narrative: str = Field(..., min_length=1)
    angle: str = ""
    created_by: str = ""
    key_discussion: str = Field("", description="How this narrative evolved in the meeting")
    consensus: str = Field("", description="high / medium / split")

    @field_validator("narrative")
    @classmethod
    def _strip_quotes(cls, value: str) -> str:
        return value.strip().strip('"“”').strip()


class BrainstormResult(BaseModel):
    conversation: list[ConversationMessage] = Field(default_factory=list)
    narratives_created: list[NarrativeDraft] = Field(default_factory=list)
    meeting_insights: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Audience council
# ---------------------------------------------------------------------------

# Persona prompts ask for their commentary under different keys; the first one
# present becomes `reasoning` when the model doesn't supply it directly.
COMMENTARY_FIELDS = (
    "why",
    "the_real_talk",
    "refined_assessment",
    "parent_perspective",
    "arjun_thoughts",
    "mature_perspective",
    "rohan_reaction",
)

SCORE_MIN = 1.0
SCORE_MAX = 10.0


class PersonaEvaluation(BaseModel):
    """One persona's verdict on one narrative. Only `score` feeds the math."""

    model_config = ConfigDict(extra="allow")

    score: float
    reasoning: str = ""
    recommendation: Optional[str] = None
    would_click: Optional[str] = None
    would_watch: Optional[str] = None
    evaluation_failed: bool = False

    @model_validator(mode="before")
    @classmethod
    def _fill_reasoning(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("reasoning"):
            for key in COMMENTARY_FIELDS:
                value = data.get(key)
                if isinstance(value, str) and value.strip():
                    data = {**data, "reasoning": value.strip()}
                    break
        return data

    @field_validator("score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> float:
        if isinstance(value, bool):
            raise ValueError("score must be a number")
        try:
            score = float(value)
        except TypeError:
            raise ValueError("score must be a number") from None
        if score != score:  # NaN
            raise ValueError("score must be a number")
        clamped = min(SCORE_MAX, max(SCORE_MIN, score))
        if clamped != score:
            logger.warning("Clamping persona score %.2f into [%.0f, %.0f]", score, SCORE_MIN, SCORE_MAX)
        return clamped

    @field_validator("would_click", "would_watch", "recommendation", mode="before")
    @classmethod
    def _normalize_label(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, bool):
            return "yes" if value else "no"
        return str(value).strip().lower() or None

    @classmethod
    def fallback(cls, message: str) -> "PersonaEvaluation":
        """Neutral stand-in used when a persona call or parse fails."""
        return cls(score=5, reasoning=f"Evaluation failed: {message}", evaluation_failed=True)

    @property
    def extras(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class ScoreStats(BaseModel):
    average: float
    min: float
    max: float
    count: int


class DivergenceRecord(BaseModel):
    type: Literal["production_audience_gap", "demographic_polarization", "audience_rejection"]
    severity: Literal["high", "medium"]
    description: str
    production_score: Optional[float] = None
    audience_avg: Optional[float] = None
    high_persona: Optional[str] = None
    low_persona: Optional[str] = None
    score_range: Optional[float] = None
    personas: list[str] = Field(default_factory=list)


class PersonaScoreEntry(BaseModel):
    persona_id: str
    persona: str
    score: float


class DemographicBreakdown(BaseModel):
    by_age: dict[str, float] = Field(default_factory=dict)
    by_gender: dict[str, float] = Field(default_factory=dict)
    by_segment: dict[str, float] = Field(default_factory=dict)
    strong_appeal: list[PersonaScoreEntry] = Field(default_factory=list)
    weak_appeal: list[PersonaScoreEntry] = Field(default_factory=list)


class EngagementMetrics(BaseModel):
    would_click: dict[str, int] = Field(default_factory=lambda: {"yes": 0, "maybe": 0, "no": 0})
    would_watch: dict[str, int] = Field(default_factory=lambda: {"yes": 0, "maybe": 0, "no": 0})


class PerformerSummary(BaseModel):
    top_performers: list[PersonaScoreEntry] = Field(default_factory=list)
    bottom_performers: list[PersonaScoreEntry] = Field(default_factory=list)

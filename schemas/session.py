"""Generation session + narrative candidate records."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from schemas.council import (
    ConversationMessage,
    DemographicBreakdown,
    DivergenceRecord,
    EngagementMetrics,
    NarrativeDraft,
    PersonaEvaluation,
)

SessionStatus = Literal["pending", "processing", "completed", "failed"]
GenerationType = Literal["part1_pure_ai", "part2_ai_human"]
SessionPhase = Literal[
    "queued",
    "analysis",
    "part1_brainstorm",
    "part1_complete",
    "part2_brainstorm",
    "part2_complete",
    "persisting",
    "completed",
    "failed",
]

# Progress checkpoint for each phase marker.
PHASE_PROGRESS: dict[str, int] = {
    "queued": 0,
    "analysis": 10,
    "part1_brainstorm": 30,
    "part1_complete": 50,
    "part2_brainstorm": 60,
    "part2_complete": 70,
    "persisting": 90,
    "completed": 100,
}


class CouncilTranscript(BaseModel):
    conversation: list[ConversationMessage] = Field(default_factory=list)
    meeting_insights: list[str] = Field(default_factory=list)
    narratives_created: list[NarrativeDraft] = Field(default_factory=list)


class CouncilConversation(BaseModel):
    part1_pure_ai: Optional[CouncilTranscript] = None
    part2_ai_human: Optional[CouncilTranscript] = None


class GenerationSession(BaseModel):
    id: str
    content_id: str
    round_number: Literal[1, 2] = 1
    parent_session_id: Optional[str] = None
    status: SessionStatus = "pending"
    progress: int = Field(0, ge=0, le=100)
    phase: SessionPhase = "queued"
    stakeholder_feedback: str = ""
    council_conversation: CouncilConversation = Field(default_factory=CouncilConversation)
    metadata: dict[str, Any] = Field(default_factory=dict)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    created_at: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")


class NarrativeCandidate(BaseModel):
    id: str = ""
    session_id: str
    content_id: str
    narrative_text: str
    angle: str = ""
    reasoning: str = ""
    created_by: str = ""
    generation_type: GenerationType
    consensus: str = ""
    overall_score: float
    production_avg: float
    audience_avg: float
    production_council: dict[str, Any] = Field(default_factory=dict)
    audience_council: dict[str, PersonaEvaluation] = Field(default_factory=dict)
    insights: list[str] = Field(default_factory=list)
    conflicts: list[DivergenceRecord] = Field(default_factory=list)
    demographic_breakdown: DemographicBreakdown = Field(default_factory=DemographicBreakdown)
    engagement: EngagementMetrics = Field(default_factory=EngagementMetrics)
    rank: int = 0
    created_at: str = ""


class RoundContextEntry(BaseModel):
    narrative: str
    angle: str = ""
    overall_score: float


class RoundContext(BaseModel):
    """What round 2 inherits from round 1: its best narratives + human feedback."""
    top_narratives: list[RoundContextEntry] = Field(default_factory=list)
    stakeholder_feedback: str = ""

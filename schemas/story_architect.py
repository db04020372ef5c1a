"""Content analyzer output schema — Story Architect analysis.

Characters, every identified conflict with its five marketing-viability
scores, the thematic core, the selected primary conflict and the marketing
strategy built around it. Everything here comes from an LLM, so optional
sections default to empty rather than failing validation.
"""

from __future__ import annotations

import re
from typing import Literal, Optional

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

RelationshipType = Literal["PARALLEL", "NESTED", "CONVERGING", "CONTRASTING"]

_RELATIONSHIP_RE = re.compile(r"\b(PARALLEL|NESTED|CONVERGING|CONTRASTING)\b", re.IGNORECASE)


class CharacterAnalysis(BaseModel):
    name: str
    role: str = ""
    external_goal: str = ""
    internal_need: str = ""
    stakes: str = ""
    arc_type: str = ""


class ConflictScores(BaseModel):
    """1-10 marketing viability per dimension; total is the sum (max 50)."""
    audience_appeal: float = Field(0, ge=0, le=10)
    uniqueness: float = Field(0, ge=0, le=10)
    genre_alignment: float = Field(0, ge=0, le=10)
    pitch_clarity: float = Field(0, ge=0, le=10)
    dramatic_intensity: float = Field(0, ge=0, le=10)
    total: float = 0

    def computed_total(self) -> float:
        return (
            self.audience_appeal
            + self.uniqueness
            + self.genre_alignment
            + self.pitch_clarity
            + self.dramatic_intensity
        )


class ConflictIdentified(BaseModel):
    conflict_id: str
    type: str = Field("", description="internal / interpersonal / societal / supernatural ...")
    description: str
    who_vs_what: str = ""
    stakes: str = ""
    emotional_weight: str = ""
    scores: ConflictScores = Field(default_factory=ConflictScores)


class ThematicCore(BaseModel):
    central_question: str = ""
    emotional_core: str = ""
    themes: list[str] = Field(default_factory=list)


class PrimaryConflict(BaseModel):
    conflict_id: str
    statement: str
    why_this_is_primary: str = ""
    marketing_angle: str = ""


class SecondaryConflict(BaseModel):
    conflict_id: str = ""
    statement: str
    relationship_to_primary: str = ""


class MarketingStrategy(BaseModel):
    marketing_hook: str = ""
    tagline_options: list[str] = Field(default_factory=list)
    positioning_vs_competitors: str = ""
    target_emotional_response: str = ""


class EdgeCaseHandling(BaseModel):
    story_structure: str = ""
    complexity_notes: str = ""
    marketing_challenges: str = ""


class ContentAnalysis(BaseModel):
    characters: list[CharacterAnalysis] = Field(default_factory=list)
    conflicts_identified: list[ConflictIdentified] = Field(..., min_length=1)
    conflict_relationships: str = Field(
        "", description="Starts with PARALLEL, NESTED, CONVERGING or CONTRASTING, then explains"
    )
    relationship_type: Optional[RelationshipType] = None
    thematic_core: ThematicCore = Field(default_factory=ThematicCore)
    primary_conflict: PrimaryConflict
    secondary_conflicts: list[SecondaryConflict] = Field(default_factory=list)
    marketing_strategy: MarketingStrategy = Field(default_factory=MarketingStrategy)
    edge_case_handling: EdgeCaseHandling = Field(default_factory=EdgeCaseHandling)
    logline: str = ""
    genre_positioning: str = ""
    usps: list[str] = Field(default_factory=list)

    @field_validator("relationship_type", mode="before")
    @classmethod
    def _upper_relationship(cls, value):
        if isinstance(value, str):
            value = value.strip().upper()
            return value or None
        return value

    @model_validator(mode="after")
    def _derive_relationship_type(self):
        if self.relationship_type is None and self.conflict_relationships:
            match = _RELATIONSHIP_RE.search(self.conflict_relationships)
            if match:
                self.relationship_type = match.group(1).upper()
        return self

    @computed_field
    @property
    def main_conflict(self) -> str:
        return self.primary_conflict.statement

    @computed_field
    @property
    def thematic_question(self) -> str:
        return self.thematic_core.central_question

    def conflict_by_id(self, conflict_id: str) -> Optional[ConflictIdentified]:
        for conflict in self.conflicts_identified:
            if conflict.conflict_id == conflict_id:
                return conflict
        return None


class ConflictAlignment(BaseModel):
    """Does a narrative actually centre on the primary conflict?"""
    aligned: bool = False
    score: float = Field(..., ge=0, le=10)
    reasoning: str = ""

    @model_validator(mode="after")
    def _aligned_from_score(self):
        self.aligned = self.score >= 7
        return self

"""Content records — the media item narratives are generated for.

ContentItem is the stored record. ContentInfo is the prompt-facing view of it:
the title travels with it but every prompt builder withholds it so the
councils judge the story rather than a preconceived title.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from schemas.story_architect import ContentAnalysis


class StakeholderResponse(BaseModel):
    """One strategic Q/A pair supplied by a human stakeholder."""
    role: str = Field(default="", description="Who answered (e.g. 'Marketing Lead')")
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)


class ContentInfo(BaseModel):
    title: str = ""
    genre: str = ""
    runtime: Optional[int] = Field(None, ge=0, description="Minutes")
    target_audience: str = ""
    summary: str = ""
    script: str = ""
    themes: str = ""
    tone: str = ""

    def story_text(self) -> str:
        """Summary if present, otherwise the script."""
        return self.summary or self.script


class ContentItem(ContentInfo):
    id: str
    status: Literal["draft", "analyzed", "archived"] = "draft"
    analysis: Optional[ContentAnalysis] = None
    stakeholder_responses: list[StakeholderResponse] = Field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def to_info(self) -> ContentInfo:
        return ContentInfo.model_validate(
            self.model_dump(include=set(ContentInfo.model_fields))
        )


class ContentCreate(BaseModel):
    """Validated input for creating a content item."""
    title: str = Field(..., min_length=1)
    genre: str = ""
    runtime: Optional[int] = Field(None, ge=0)
    target_audience: str = ""
    summary: str = ""
    script: str = ""
    themes: str = ""
    tone: str = ""
    stakeholder_responses: list[StakeholderResponse] = Field(default_factory=list)


class ContentUpdate(BaseModel):
    """Partial update — only fields that were sent are applied."""
    title: Optional[str] = Field(None, min_length=1)
    genre: Optional[str] = None
    runtime: Optional[int] = Field(None, ge=0)
    target_audience: Optional[str] = None
    summary: Optional[str] = None
    script: Optional[str] = None
    themes: Optional[str] = None
    tone: Optional[str] = None
    status: Optional[Literal["draft", "analyzed", "archived"]] = None

"""Content Analyzer — Story Architect deep dive on a content item.

Inputs: ContentInfo (title withheld from the prompt).
Outputs: ContentAnalysis → cached on the content record, then injected into
         every council brainstorm as the non-negotiable primary conflict.

The model proposes the primary conflict; select_primary_conflict() then
re-checks it against the scores so the 5-point rule holds regardless of
what the model wrote.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel

import config
from pipeline.base_agent import BaseAgent
from pipeline.errors import AnalysisFailed
from pipeline.llm import LLMError, call_llm, call_llm_structured
from prompts.content_analyzer_system import (
    CONFLICT_ALIGNMENT_PROMPT,
    CONFLICT_EXTRACTION_PROMPT,
    SYSTEM_PROMPT,
)
from schemas.content import ContentInfo
from schemas.story_architect import (
    ConflictAlignment,
    ConflictIdentified,
    ContentAnalysis,
    PrimaryConflict,
)

logger = logging.getLogger(__name__)

UNIFIED_PREFIX = "UNIFIED:"


def content_context_lines(content: ContentInfo, *, audience_suffix: str = "") -> list[str]:
    """Prompt-facing description of the content. Never includes the title."""
    runtime = f"{content.runtime} minutes" if content.runtime else "Not specified"
    audience = content.target_audience or "Not specified"
    if audience_suffix:
        audience = f"{audience} ({audience_suffix})"
    return [
        f"Genre: {content.genre or 'Not specified'}",
        f"Runtime: {runtime}",
        f"Target Audience: {audience}",
        f"Themes: {content.themes or 'Not specified'}",
        f"Tone: {content.tone or 'Not specified'}",
    ]


class ContentAnalyzer(BaseAgent):
    name = "Content Analyzer (Story Architect)"
    slug = "content_analyzer"
    failure = AnalysisFailed
    description = (
        "Maps characters and conflicts, scores each conflict's marketing "
        "viability and selects the primary conflict every narrative must "
        "centre on."
    )

    @property
    def system_prompt(self) -> str:
        return SYSTEM_PROMPT

    @property
    def output_schema(self) -> type[BaseModel]:
        return ContentAnalysis

    def build_user_prompt(self, inputs: dict[str, Any]) -> str:
        """Expected inputs:
          - content: ContentInfo
        """
        content: ContentInfo = inputs["content"]
        sections = [
            "# CONTENT INFORMATION",
            "(Title intentionally withheld. Analyse the story only.)",
            *content_context_lines(content),
            "\n# STORY CONTENT",
            content.story_text() or "Not provided",
            "\n# YOUR TASK",
            "Run the full analysis protocol and return the JSON analysis.",
        ]
        return "\n".join(sections)

    def analyze(self, content: ContentInfo) -> ContentAnalysis:
        """One structured call + deterministic primary-conflict check.

        Raises AnalysisFailed when the call fails after retries or the
        response can't be parsed into a ContentAnalysis.
        """
        if not content.story_text().strip():
            raise AnalysisFailed("Content has neither a summary nor a script to analyse")
        analysis = self.run({"content": content})

        analysis = select_primary_conflict(analysis)
        self.logger.info(
            "Primary conflict [%s]: %s",
            analysis.primary_conflict.conflict_id,
            analysis.primary_conflict.statement,
        )
        return analysis


def _with_recomputed_totals(conflicts: list[ConflictIdentified]) -> list[ConflictIdentified]:
    fixed = []
    for conflict in conflicts:
        total = conflict.scores.computed_total()
        if total != conflict.scores.total:
            logger.info(
                "Fixing %s total: model said %s, sum is %s",
                conflict.conflict_id, conflict.scores.total, total,
            )
        fixed.append(conflict.model_copy(update={
            "scores": conflict.scores.model_copy(update={"total": total}),
        }))
    return fixed


def _unified_primary(
    tied: list[ConflictIdentified],
    analysis: ContentAnalysis,
    margin: float,
) -> PrimaryConflict:
    ids = [c.conflict_id for c in tied]
    descriptions = "; ".join(c.description.rstrip(".") for c in tied)
    question = analysis.thematic_core.central_question.strip()
    statement = f"{question} ({descriptions})" if question else descriptions
    totals = ", ".join(f"{c.conflict_id}={c.scores.total:g}" for c in tied)
    return PrimaryConflict(
        conflict_id=UNIFIED_PREFIX + "+".join(ids),
        statement=statement,
        why_this_is_primary=(
            f"Conflicts within {margin:g} points of the top score ({totals}) "
            "are unified under the story's thematic question."
        ),
        marketing_angle=analysis.primary_conflict.marketing_angle,
    )


def select_primary_conflict(
    analysis: ContentAnalysis,
    margin: float | None = None,
) -> ContentAnalysis:
    """Enforce the primary-conflict rule on a model-produced analysis.

    Totals are recomputed from the five sub-scores. If the top conflict
    leads the runner-up by at least `margin` (or stands alone) it must be
    the primary conflict. Otherwise every conflict within `margin` of the
    top is near-tied and the primary must be an umbrella statement: the
    model's own umbrella is kept, a single-conflict pick is replaced by a
    synthesised one.
    """
    margin = config.PRIMARY_CONFLICT_MARGIN if margin is None else margin
    conflicts = _with_recomputed_totals(analysis.conflicts_identified)
    ranked = sorted(conflicts, key=lambda c: -c.scores.total)
    top = ranked[0]
    primary = analysis.primary_conflict
    conflict_ids = {c.conflict_id for c in conflicts}

    clear_winner = len(ranked) == 1 or top.scores.total - ranked[1].scores.total >= margin
    if clear_winner:
        if primary.conflict_id != top.conflict_id:
            logger.warning(
                "Model picked %s as primary but %s leads by >= %g points; overriding",
                primary.conflict_id, top.conflict_id, margin,
            )
            lead = (
                f", {top.scores.total - ranked[1].scores.total:g} points clear of the next conflict"
                if len(ranked) > 1 else ""
            )
            primary = PrimaryConflict(
                conflict_id=top.conflict_id,
                statement=top.description,
                why_this_is_primary=f"Highest marketing viability score ({top.scores.total:g}/50){lead}",
                marketing_angle=primary.marketing_angle,
            )
    else:
        tied = [c for c in ranked if top.scores.total - c.scores.total < margin]
        if primary.conflict_id in conflict_ids:
            logger.info(
                "Conflicts %s are within %g points; synthesising a unified primary",
                [c.conflict_id for c in tied], margin,
            )
            primary = _unified_primary(tied, analysis, margin)

    secondary = [s for s in analysis.secondary_conflicts if s.conflict_id != primary.conflict_id]
    return analysis.model_copy(update={
        "conflicts_identified": conflicts,
        "primary_conflict": primary,
        "secondary_conflicts": secondary,
    })


def extract_primary_conflict(content: ContentInfo) -> str:
    """Quick one-sentence conflict extraction when a full analysis isn't needed."""
    conf = config.get_agent_llm_config("conflict_extractor")
    user_prompt = "\n".join([
        f"Genre: {content.genre or 'Not specified'}",
        "Story:",
        content.story_text() or "Not provided",
    ])
    try:
        statement = call_llm(
            system_prompt=CONFLICT_EXTRACTION_PROMPT,
            user_prompt=user_prompt,
            provider=conf["provider"],
            model=conf["model"],
            temperature=conf["temperature"],
            max_tokens=conf["max_tokens"],
        )
    except LLMError as exc:
        raise AnalysisFailed(f"Conflict extraction failed: {exc}", cause=exc) from exc
    return statement.strip().strip('"')


def validate_conflict_alignment(narrative: str, primary_conflict: str) -> ConflictAlignment:
    """Score how squarely a narrative sits on the primary conflict."""
    conf = config.get_agent_llm_config("conflict_alignment")
    user_prompt = (
        f'PRIMARY CONFLICT:\n"{primary_conflict}"\n\n'
        f'MARKETING NARRATIVE:\n"{narrative}"\n'
    )
    try:
        return call_llm_structured(
            system_prompt=CONFLICT_ALIGNMENT_PROMPT,
            user_prompt=user_prompt,
            response_model=ConflictAlignment,
            provider=conf["provider"],
            model=conf["model"],
            temperature=conf["temperature"],
            max_tokens=conf["max_tokens"],
        )
    except LLMError as exc:
        raise AnalysisFailed(f"Conflict alignment check failed: {exc}", cause=exc) from exc

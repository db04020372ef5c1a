"""Council Brainstorm — the production council's simulated meeting.

Inputs: ContentInfo (title withheld) + ContentAnalysis (primary conflict)
        + candidate count N + EITHER round context (round 2: top round-1
        narratives and stakeholder feedback) OR stakeholder Q/A (part 2).
Outputs: BrainstormResult with the meeting transcript and exactly N
         distinct narratives, each tagged with angle and consensus.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional, Sequence

from pydantic import BaseModel

import config
from agents.content_analyzer import content_context_lines
from pipeline.base_agent import BaseAgent
from pipeline.errors import BrainstormFailed
from pipeline.personas import PersonaRegistry, get_persona_registry
from prompts.council_brainstorm_system import SYSTEM_PROMPT
from schemas.content import ContentInfo, StakeholderResponse
from schemas.council import BrainstormResult, NarrativeDraft
from schemas.session import RoundContext
from schemas.story_architect import ContentAnalysis

_WORD_RE = re.compile(r"[\w'\u0900-\u097f]+")

SECONDARY_CONFLICT_LIMIT = 3


def _token_set(text: str) -> set[str]:
    return set(_WORD_RE.findall(str(text or "").lower()))


def _similarity(a: str, b: str) -> float:
    ta = _token_set(a)
    tb = _token_set(b)
    if not ta and not tb:
        return 1.0
    if not ta or not tb:
        return 0.0
    overlap = len(ta.intersection(tb))
    union = len(ta.union(tb))
    return overlap / max(1, union)


def dedupe_narratives(
    drafts: Sequence[NarrativeDraft],
    threshold: float | None = None,
    existing: Sequence[str] = (),
) -> list[NarrativeDraft]:
    """Drop drafts too similar to an earlier draft (or to `existing` texts)."""
    threshold = config.COUNCIL_DUPLICATE_SIMILARITY if threshold is None else threshold
    kept: list[NarrativeDraft] = []
    seen: list[str] = list(existing)
    for draft in drafts:
        if any(_similarity(draft.narrative, other) >= threshold for other in seen):
            continue
        kept.append(draft)
        seen.append(draft.narrative)
    return kept


class CouncilBrainstorm(BaseAgent):
    name = "Production Council Brainstorm"
    slug = "council_brainstorm"
    failure = BrainstormFailed
    description = (
        "Simulates the seven-role production council debating the content "
        "and locking in N varied narratives anchored on the primary conflict."
    )
    inject_schema = False

    def __init__(self, registry: PersonaRegistry | None = None, **kwargs):
        super().__init__(**kwargs)
        self.registry = registry or get_persona_registry()

    @property
    def system_prompt(self) -> str:
        return SYSTEM_PROMPT

    @property
    def output_schema(self) -> type[BaseModel]:
        return BrainstormResult

    # ------------------------------------------------------------------
    # Prompt sections
    # ------------------------------------------------------------------

    @staticmethod
    def _conflict_section(analysis: ContentAnalysis) -> str:
        primary = analysis.primary_conflict
        secondary = analysis.secondary_conflicts[:SECONDARY_CONFLICT_LIMIT]
        lines = [
            "# PRIMARY CONFLICT (Story Architect analysis)",
            f'PRIMARY DRAMATIC CONFLICT:\n"{primary.statement}"',
            f"\nWHY THIS IS PRIMARY:\n{primary.why_this_is_primary or 'Highest marketing viability'}",
            f"\nMARKETING ANGLE:\n{primary.marketing_angle or 'Focus on stakes and tension'}",
            f"\nTHEMATIC CORE:\n{analysis.thematic_core.central_question or 'Not specified'}",
        ]
        if secondary:
            lines.append("\nSECONDARY CONFLICTS (context only):")
            lines.extend(f"  - {s.statement}" for s in secondary)
        lines.append(
            "\nNON-NEGOTIABLE: every narrative MUST centre on the primary conflict. "
            "Not minor themes, not peripheral characters, not style for its own sake. "
            "The Story Architect holds the room to this."
        )
        return "\n".join(lines)

    @staticmethod
    def _round_context_section(round_context: RoundContext, count: int) -> str:
        top = "\n".join(
            f'  {i}. "{n.narrative}" (Angle: {n.angle or "n/a"}, Score: {n.overall_score:.1f}/10)'
            for i, n in enumerate(round_context.top_narratives, start=1)
        )
        feedback = round_context.stakeholder_feedback or "(no written feedback)"
        return (
            "# ROUND 2 — CONTINUING FROM ROUND 1\n"
            f"ROUND 1 RESULTS (top {len(round_context.top_narratives)} narratives):\n{top or '  (none)'}\n\n"
            f'STAKEHOLDER FEEDBACK:\n"{feedback}"\n\n'
            "ROUND 2 MISSION:\n"
            "1. Review what worked in round 1 and what could be better\n"
            "2. Work out what context or angle the feedback says you missed\n"
            f"3. Create {count} NEW narratives that address the feedback, explore missed "
            "angles, refine promising round-1 lines where useful, and offer fresh alternatives\n"
            "Show in the discussion how round-1 learnings shape the new work."
        )

    @staticmethod
    def _stakeholder_section(responses: Sequence[StakeholderResponse]) -> str:
        payload = json.dumps([r.model_dump() for r in responses], indent=2, ensure_ascii=False)
        return (
            "# STAKEHOLDER STRATEGIC INPUT\n"
            "The title's stakeholders answered these strategic questions:\n"
            f"{payload}\n\n"
            "Use these answers to:\n"
            "1. Reflect the stakeholders' strategic priorities\n"
            "2. Respect their brand positioning and differentiation\n"
            "3. Honour their audience insights and cultural context\n"
            "4. Match the emotional core and tone they asked for\n"
            "5. Stay inside their messaging constraints\n"
            "Show in the discussion how the council works these inputs in."
        )

    def build_user_prompt(self, inputs: dict[str, Any]) -> str:
        """Build the meeting brief.

        Expected inputs:
          - content: ContentInfo
          - analysis: ContentAnalysis
          - count: int
          - round_context: RoundContext (optional, round 2 only)
          - stakeholder_responses: list[StakeholderResponse] (optional, part 2 only)
          - existing_narratives: list[str] (optional — top-up call, narratives already locked)
        """
        content: ContentInfo = inputs["content"]
        analysis: ContentAnalysis = inputs["analysis"]
        count: int = inputs["count"]
        round_context: Optional[RoundContext] = inputs.get("round_context")
        stakeholder_responses = inputs.get("stakeholder_responses") or []
        existing = inputs.get("existing_narratives") or []

        sections = [
            "# LANGUAGE",
            f"All final narratives must be written in {config.NARRATIVE_LANGUAGE}. "
            "The council may discuss in English, but the narratives use the audience's "
            "own language, idioms, wordplay and cultural references.",
            "",
            self._conflict_section(analysis),
        ]

        if round_context is not None:
            sections.extend(["", self._round_context_section(round_context, count)])
        elif stakeholder_responses:
            sections.extend(["", self._stakeholder_section(stakeholder_responses)])

        sections.extend([
            "",
            "# CONTENT",
            "(Title intentionally hidden. Work from the story, not a preconceived title.)",
            *content_context_lines(content),
            "\nStory:",
            content.story_text() or "Not provided",
            "",
            "# COUNCIL MEMBERS PRESENT",
            *(f"- {p.role_name}" for p in self.registry.production),
        ])

        if existing:
            sections.extend([
                "",
                "# ALREADY LOCKED (do NOT repeat or paraphrase these)",
                *(f'- "{text}"' for text in existing),
            ])

        objective = "Continue the round-2 discussion and create" if round_context is not None else "Create"
        sections.extend([
            "",
            "# MEETING OBJECTIVE",
            f"{objective} exactly {count} distinct marketing narrative candidates through collaborative discussion.",
        ])
        return "\n".join(sections)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def brainstorm(
        self,
        content: ContentInfo,
        count: int,
        *,
        analysis: ContentAnalysis,
        round_context: Optional[RoundContext] = None,
        stakeholder_responses: Optional[Sequence[StakeholderResponse]] = None,
    ) -> BrainstormResult:
        """Run the meeting and return exactly `count` distinct narratives.

        Near-duplicates are dropped; if that leaves the council short, one
        top-up meeting is asked for the missing number. Still short, or any
        failed/unparsable call, raises BrainstormFailed.
        """
        if count < 1:
            raise ValueError("count must be at least 1")
        if round_context is not None and stakeholder_responses:
            raise ValueError("Pass either round_context or stakeholder_responses, not both")

        inputs = {
            "content": content,
            "analysis": analysis,
            "count": count,
            "round_context": round_context,
            "stakeholder_responses": list(stakeholder_responses or []),
        }
        result = self.run(inputs)
        self.logger.info(
            "Meeting complete: %d messages, %d narratives",
            len(result.conversation), len(result.narratives_created),
        )

        conversation = list(result.conversation)
        insights = list(result.meeting_insights)
        drafts = dedupe_narratives(result.narratives_created)
        dropped = len(result.narratives_created) - len(drafts)
        if dropped:
            self.logger.warning("Dropped %d near-duplicate narrative(s)", dropped)

        if len(drafts) < count:
            missing = count - len(drafts)
            self.logger.warning("Council short by %d narrative(s); requesting top-up", missing)
            topup = self.run({
                **inputs,
                "count": missing,
                "existing_narratives": [d.narrative for d in drafts],
            })
            conversation.extend(topup.conversation)
            insights.extend(topup.meeting_insights)
            drafts.extend(dedupe_narratives(
                topup.narratives_created,
                existing=[d.narrative for d in drafts],
            ))

        if len(drafts) < count:
            raise BrainstormFailed(
                f"Council produced {len(drafts)} distinct narrative(s), {count} required"
            )
        if len(drafts) > count:
            self.logger.info("Trimming %d extra narrative(s)", len(drafts) - count)

        return BrainstormResult(
            conversation=conversation,
            narratives_created=drafts[:count],
            meeting_insights=insights,
        )

"""Generation session runner — drives one session from pending to done.

    pending → processing → completed | failed

Part 1 (pure AI) and Part 2 (AI + stakeholder input) each hold one council
meeting, then every narrative goes to the audience council and is scored.
All candidates are ranked together and written in a single transaction, so
a session either ends with N ranked candidates or with none.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from pydantic import ValidationError

import config
from agents.content_analyzer import ContentAnalyzer
from agents.council_brainstorm import CouncilBrainstorm
from pipeline import storage
from pipeline.audience_council import AudienceCouncil
from pipeline.demographics import analyze_demographics, engagement_metrics
from pipeline.divergence import detect_divergence
from pipeline.errors import (
    GenerationCancelled,
    NotFound,
    PersistenceFailed,
    SessionBusy,
    ValidationFailed,
)
from pipeline.insights import generate_insights
from pipeline.llm import get_usage_since, usage_checkpoint
from pipeline.personas import PersonaRegistry, get_persona_registry
from pipeline.scoring import audience_average, overall_score, production_score_for, rank_candidates
from schemas.content import ContentInfo, ContentItem, StakeholderResponse
from schemas.council import BrainstormResult, NarrativeDraft
from schemas.session import (
    PHASE_PROGRESS,
    CouncilConversation,
    CouncilTranscript,
    GenerationSession,
    GenerationType,
    NarrativeCandidate,
    RoundContext,
    RoundContextEntry,
)
from schemas.story_architect import ContentAnalysis

logger = logging.getLogger(__name__)

CancelCheck = Optional[Callable[[], bool]]

# Sessions being driven in this process; one runner per session.
_active_sessions: set[str] = set()
_active_lock = threading.Lock()


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _check_cancelled(is_cancelled: CancelCheck):
    if is_cancelled is not None and is_cancelled():
        raise GenerationCancelled("Generation cancelled")


def _feedback_from_responses(responses: Sequence[StakeholderResponse]) -> str:
    """Round-2 Q/A with no written feedback becomes the feedback itself."""
    return json.dumps([r.model_dump() for r in responses], ensure_ascii=False)


def _transcript(result: BrainstormResult) -> CouncilTranscript:
    return CouncilTranscript(
        conversation=result.conversation,
        meeting_insights=result.meeting_insights,
        narratives_created=result.narratives_created,
    )


class NarrativeSessionRunner:
    """Runs generation sessions against storage.

    Collaborators are injectable so tests (and the CLI) can swap providers.
    """

    def __init__(
        self,
        analyzer: ContentAnalyzer | None = None,
        council: CouncilBrainstorm | None = None,
        audience: AudienceCouncil | None = None,
        registry: PersonaRegistry | None = None,
        candidate_count: int | None = None,
    ):
        self.registry = registry or get_persona_registry()
        self.analyzer = analyzer or ContentAnalyzer()
        self.council = council or CouncilBrainstorm(registry=self.registry)
        self.audience = audience or AudienceCouncil(registry=self.registry)
        self.candidate_count = candidate_count or config.CANDIDATE_COUNT
        if self.candidate_count < 2:
            raise ValueError("candidate_count must be at least 2 (one per part)")

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def start_generation(
        self,
        content_id: str,
        round_number: int = 1,
        stakeholder_responses: Optional[Sequence[StakeholderResponse | dict]] = None,
        stakeholder_feedback: Optional[str] = None,
    ) -> GenerationSession:
        """Validate the request and create a pending session. Does not run it."""
        if round_number not in (1, 2):
            raise ValidationFailed(f"round_number must be 1 or 2, got {round_number}")

        content = storage.get_content(content_id)
        if content is None:
            raise NotFound(f"Content {content_id} not found")

        parent_id = None
        if round_number == 2:
            parent = storage.latest_completed_session(content_id, round_number=1)
            if parent is None:
                raise ValidationFailed("Round 2 requires a completed round 1 session for this content")
            parent_id = parent.id

        feedback = stakeholder_feedback or ""
        if stakeholder_responses:
            try:
                responses = [StakeholderResponse.model_validate(r) for r in stakeholder_responses]
            except ValidationError as exc:
                raise ValidationFailed(f"Invalid stakeholder responses: {exc}", cause=exc) from exc
            storage.save_stakeholder_responses(content_id, responses)
            if round_number == 2 and not feedback.strip():
                feedback = _feedback_from_responses(responses)

        return storage.create_session(
            content_id,
            round_number=round_number,
            parent_session_id=parent_id,
            stakeholder_feedback=feedback,
        )

    def run_session(self, session_id: str, is_cancelled: CancelCheck = None) -> GenerationSession:
        """Drive a pending session to completed or failed and return its final state.

        Pipeline failures are recorded on the session, not raised.
        PersistenceFailed is raised: the session keeps its last written state.
        """
        with _active_lock:
            if session_id in _active_sessions:
                raise SessionBusy(f"Session {session_id} is already running")
            # Read under the lock so a run that just finished is seen as such.
            session = storage.get_session(session_id)
            if session is None:
                raise NotFound(f"Session {session_id} not found")
            if session.status != "pending":
                raise ValidationFailed(f"Session {session_id} is {session.status}, not pending")
            _active_sessions.add(session_id)
        try:
            return self._drive(session, is_cancelled)
        finally:
            with _active_lock:
                _active_sessions.discard(session_id)

    def generate(
        self,
        content_id: str,
        round_number: int = 1,
        stakeholder_responses: Optional[Sequence[StakeholderResponse | dict]] = None,
        stakeholder_feedback: Optional[str] = None,
        is_cancelled: CancelCheck = None,
    ) -> GenerationSession:
        """Start and run a session in the calling thread."""
        session = self.start_generation(
            content_id,
            round_number=round_number,
            stakeholder_responses=stakeholder_responses,
            stakeholder_feedback=stakeholder_feedback,
        )
        return self.run_session(session.id, is_cancelled=is_cancelled)

    # ------------------------------------------------------------------
    # Driving
    # ------------------------------------------------------------------

    def _checkpoint(self, session_id: str, phase: str) -> str:
        storage.update_session(session_id, phase=phase, progress=PHASE_PROGRESS[phase])
        logger.info("Session %s: %s (%d%%)", session_id, phase, PHASE_PROGRESS[phase])
        return phase

    def _drive(self, session: GenerationSession, is_cancelled: CancelCheck) -> GenerationSession:
        usage_start = usage_checkpoint()
        start = time.time()
        session = storage.update_session(
            session.id, status="processing", progress=0, phase="queued", started_at=_now(),
        )
        logger.info("=" * 60)
        logger.info("Session %s starting (content=%s, round=%d)", session.id, session.content_id, session.round_number)
        logger.info("=" * 60)

        phase = "queued"
        part1_count = self.candidate_count // 2
        part2_count = self.candidate_count - part1_count
        try:
            content = storage.get_content(session.content_id)
            if content is None:
                raise NotFound(f"Content {session.content_id} not found")
            info = content.to_info()

            phase = self._checkpoint(session.id, "analysis")
            analysis = self._ensure_analysis(content)
            _check_cancelled(is_cancelled)

            round_context = self._round_context(session) if session.round_number == 2 else None

            phase = self._checkpoint(session.id, "part1_brainstorm")
            part1 = self.council.brainstorm(
                info, part1_count, analysis=analysis, round_context=round_context,
            )
            _check_cancelled(is_cancelled)
            part1_candidates = self._score_drafts(
                part1.narratives_created, "part1_pure_ai", session, info, is_cancelled,
            )
            phase = self._checkpoint(session.id, "part1_complete")

            phase = self._checkpoint(session.id, "part2_brainstorm")
            responses = content.stakeholder_responses
            if not responses:
                logger.warning(
                    "Session %s: no stakeholder responses on file; part 2 runs without them",
                    session.id,
                )
            part2 = self.council.brainstorm(
                info, part2_count, analysis=analysis, stakeholder_responses=responses or None,
            )
            _check_cancelled(is_cancelled)
            part2_candidates = self._score_drafts(
                part2.narratives_created, "part2_ai_human", session, info, is_cancelled,
            )
            phase = self._checkpoint(session.id, "part2_complete")

            ranked = rank_candidates(part1_candidates + part2_candidates)
            _check_cancelled(is_cancelled)
            phase = self._checkpoint(session.id, "persisting")
        except PersistenceFailed:
            raise
        except Exception as exc:
            return self._fail(session, phase, exc, usage_start)

        metadata: dict[str, Any] = {
            **session.metadata,
            "candidate_count": len(ranked),
            "part1_count": len(part1_candidates),
            "part2_count": len(part2_candidates),
            "primary_conflict": analysis.primary_conflict.statement,
            "elapsed_seconds": round(time.time() - start, 1),
            "usage": get_usage_since(usage_start),
        }
        conversation = CouncilConversation(
            part1_pure_ai=_transcript(part1),
            part2_ai_human=_transcript(part2),
        )
        final = storage.complete_session(session.id, ranked, conversation, metadata)
        logger.info(
            "Session %s completed: %d candidates in %.1fs (best %.2f)",
            session.id, len(ranked), time.time() - start, ranked[0].overall_score if ranked else 0.0,
        )
        return final

    def _fail(
        self,
        session: GenerationSession,
        phase: str,
        exc: Exception,
        usage_start: int,
    ) -> GenerationSession:
        error_type = getattr(exc, "kind", type(exc).__name__)
        if isinstance(exc, GenerationCancelled):
            logger.warning("Session %s cancelled during %s", session.id, phase)
        else:
            logger.error("Session %s failed during %s: %s", session.id, phase, exc, exc_info=exc)
        metadata = {
            **session.metadata,
            "error": str(exc) or type(exc).__name__,
            "error_type": error_type,
            "failed_phase": phase,
            "usage": get_usage_since(usage_start),
        }
        return storage.update_session(
            session.id,
            status="failed",
            progress=0,
            phase="failed",
            metadata=metadata,
            completed_at=_now(),
        )

    def _ensure_analysis(self, content: ContentItem) -> ContentAnalysis:
        """Use the cached analysis, or run the analyzer once and cache it."""
        if content.analysis is not None:
            logger.info("Using cached analysis for content %s", content.id)
            return content.analysis
        analysis = self.analyzer.analyze(content.to_info())
        return storage.set_content_analysis_if_missing(content.id, analysis)

    def _round_context(self, session: GenerationSession) -> RoundContext:
        if not session.parent_session_id:
            raise ValidationFailed(f"Round 2 session {session.id} has no parent session")
        top = storage.top_candidates(session.parent_session_id, config.ROUND2_CONTEXT_LIMIT)
        logger.info(
            "Round 2 context: %d narratives from session %s",
            len(top), session.parent_session_id,
        )
        return RoundContext(
            top_narratives=[
                RoundContextEntry(narrative=c.narrative_text, angle=c.angle, overall_score=c.overall_score)
                for c in top
            ],
            stakeholder_feedback=session.stakeholder_feedback,
        )

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def _score_drafts(
        self,
        drafts: Sequence[NarrativeDraft],
        generation_type: GenerationType,
        session: GenerationSession,
        info: ContentInfo,
        is_cancelled: CancelCheck,
    ) -> list[NarrativeCandidate]:
        candidates = []
        for idx, draft in enumerate(drafts, start=1):
            _check_cancelled(is_cancelled)
            logger.info("[%s] evaluating narrative %d/%d", generation_type, idx, len(drafts))
            candidates.append(self.score_narrative(draft, generation_type, session, info))
        return candidates

    def score_narrative(
        self,
        draft: NarrativeDraft,
        generation_type: GenerationType,
        session: GenerationSession,
        info: ContentInfo,
    ) -> NarrativeCandidate:
        evaluations = self.audience.evaluate(draft.narrative, info)
        production = production_score_for(draft.consensus)
        audience = audience_average(evaluations)
        overall = overall_score(production, audience)
        breakdown = analyze_demographics(evaluations, self.registry)

        return NarrativeCandidate(
            session_id=session.id,
            content_id=session.content_id,
            narrative_text=draft.narrative,
            angle=draft.angle,
            reasoning=draft.key_discussion,
            created_by=draft.created_by,
            generation_type=generation_type,
            consensus=draft.consensus,
            overall_score=overall,
            production_avg=production,
            audience_avg=audience,
            production_council={
                "council_consensus": {
                    "score": production,
                    "consensus": draft.consensus,
                    "created_by": draft.created_by,
                    "reasoning": draft.key_discussion,
                },
            },
            audience_council=evaluations,
            insights=generate_insights(overall, production, audience, breakdown),
            conflicts=detect_divergence(production, evaluations, self.registry),
            demographic_breakdown=breakdown,
            engagement=engagement_metrics(evaluations),
        )

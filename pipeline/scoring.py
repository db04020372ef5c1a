"""Score aggregation and ranking.

Pure functions only: the same candidates in always produce the same scores
and ranks out.

    production_score = lookup(consensus)         high 9 / medium 8 / split 7 / else 8
    audience_avg     = mean(persona scores)
    overall_score    = production_score * 0.4 + audience_avg * 0.6
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

from schemas.council import PersonaEvaluation, ScoreStats
from schemas.session import NarrativeCandidate

PRODUCTION_WEIGHT = 0.4
AUDIENCE_WEIGHT = 0.6

CONSENSUS_PRODUCTION_SCORES: dict[str, float] = {
    "high": 9.0,
    "medium": 8.0,
    "split": 7.0,
}
DEFAULT_PRODUCTION_SCORE = 8.0


def production_score_for(consensus: Optional[str]) -> float:
    """Deterministic production score from the council's consensus label."""
    key = (consensus or "").strip().lower()
    return CONSENSUS_PRODUCTION_SCORES.get(key, DEFAULT_PRODUCTION_SCORE)


def audience_average(evaluations: Mapping[str, PersonaEvaluation]) -> float:
    if not evaluations:
        raise ValueError("Cannot average an empty audience council")
    scores = [e.score for e in evaluations.values()]
    return sum(scores) / len(scores)


def overall_score(production_score: float, audience_avg: float) -> float:
    return production_score * PRODUCTION_WEIGHT + audience_avg * AUDIENCE_WEIGHT


def score_stats(evaluations: Mapping[str, PersonaEvaluation]) -> ScoreStats:
    scores = [e.score for e in evaluations.values()]
    if not scores:
        return ScoreStats(average=0.0, min=0.0, max=0.0, count=0)
    return ScoreStats(
        average=sum(scores) / len(scores),
        min=min(scores),
        max=max(scores),
        count=len(scores),
    )


def rank_candidates(candidates: Sequence[NarrativeCandidate]) -> list[NarrativeCandidate]:
    """Return copies sorted by overall_score (desc) with rank 1..N.

    sorted() is stable, so equal scores keep their generation order.
    """
    ordered = sorted(candidates, key=lambda c: -c.overall_score)
    return [c.model_copy(update={"rank": i}) for i, c in enumerate(ordered, start=1)]

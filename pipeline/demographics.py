"""Demographic breakdown of audience council scores.

Each persona's score lands in one age bracket, one gender bucket and one
segment bucket, all read from its registry profile. Buckets are averaged
independently. Strong appeal is >= 8, weak appeal is <= 5; 6-7 is in neither.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Mapping

from pipeline.personas import PersonaRegistry
from schemas.council import (
    DemographicBreakdown,
    EngagementMetrics,
    PerformerSummary,
    PersonaEvaluation,
    PersonaScoreEntry,
)

AGE_BRACKETS = ("18-24", "25-34", "35-44", "45-54", "55+")
STRONG_APPEAL_MIN = 8.0
WEAK_APPEAL_MAX = 5.0


def age_bracket(age: int) -> str:
    if age < 25:
        return "18-24"
    if age < 35:
        return "25-34"
    if age < 45:
        return "35-44"
    if age < 55:
        return "45-54"
    return "55+"


def _mean_by_bucket(buckets: dict[str, list[float]]) -> dict[str, float]:
    return {key: sum(scores) / len(scores) for key, scores in buckets.items()}


def analyze_demographics(
    evaluations: Mapping[str, PersonaEvaluation],
    registry: PersonaRegistry,
) -> DemographicBreakdown:
    by_age: dict[str, list[float]] = defaultdict(list)
    by_gender: dict[str, list[float]] = defaultdict(list)
    by_segment: dict[str, list[float]] = defaultdict(list)
    strong: list[PersonaScoreEntry] = []
    weak: list[PersonaScoreEntry] = []

    for persona in registry.audience:
        evaluation = evaluations.get(persona.role_id)
        if evaluation is None or persona.profile is None:
            continue
        score = evaluation.score
        profile = persona.profile

        by_age[age_bracket(profile.age)].append(score)
        by_gender[profile.gender].append(score)
        by_segment[profile.segment].append(score)

        entry = PersonaScoreEntry(persona_id=persona.role_id, persona=persona.role_name, score=score)
        if score >= STRONG_APPEAL_MIN:
            strong.append(entry)
        elif score <= WEAK_APPEAL_MAX:
            weak.append(entry)

    age_means = _mean_by_bucket(by_age)
    return DemographicBreakdown(
        by_age={bracket: age_means[bracket] for bracket in AGE_BRACKETS if bracket in age_means},
        by_gender=_mean_by_bucket(by_gender),
        by_segment=_mean_by_bucket(by_segment),
        strong_appeal=strong,
        weak_appeal=weak,
    )


def engagement_metrics(evaluations: Mapping[str, PersonaEvaluation]) -> EngagementMetrics:
    """Count click/watch answers. "definitely" counts as yes."""
    metrics = EngagementMetrics()
    for evaluation in evaluations.values():
        click = evaluation.would_click
        if click in metrics.would_click:
            metrics.would_click[click] += 1

        watch = "yes" if evaluation.would_watch == "definitely" else evaluation.would_watch
        if watch in metrics.would_watch:
            metrics.would_watch[watch] += 1
    return metrics


def top_and_bottom_performers(
    evaluations: Mapping[str, PersonaEvaluation],
    registry: PersonaRegistry,
    limit: int = 3,
) -> PerformerSummary:
    entries = [
        PersonaScoreEntry(persona_id=pid, persona=registry.display_name(pid), score=ev.score)
        for pid, ev in evaluations.items()
    ]
    ranked = sorted(entries, key=lambda e: -e.score)
    return PerformerSummary(
        top_performers=ranked[:limit],
        bottom_performers=sorted(entries, key=lambda e: e.score)[:limit],
    )

"""Divergence detection — where the councils disagree.

Three independent checks per candidate; any combination may fire:
  - production_audience_gap: |production - audience_avg| > 2
  - demographic_polarization: audience max - min > 4
  - audience_rejection: 3+ personas answered "no" to click/watch
"""

from __future__ import annotations

import logging
from typing import Mapping

from pipeline.personas import PersonaRegistry
from schemas.council import DivergenceRecord, PersonaEvaluation

logger = logging.getLogger(__name__)

GAP_THRESHOLD = 2.0
POLARIZATION_THRESHOLD = 4.0
REJECTION_MIN_PERSONAS = 3
REJECTION_REPORT_LIMIT = 3


def _registry_order(
    evaluations: Mapping[str, PersonaEvaluation],
    registry: PersonaRegistry,
) -> list[tuple[str, PersonaEvaluation]]:
    """Evaluations in registry order (unknown ids last) so tie-breaks are stable."""
    known = [(pid, evaluations[pid]) for pid in registry.audience_ids if pid in evaluations]
    known_ids = {pid for pid, _ in known}
    extra = [(pid, ev) for pid, ev in evaluations.items() if pid not in known_ids]
    return known + extra


def _fmt(score: float) -> str:
    return f"{score:g}"


def detect_divergence(
    production_score: float,
    evaluations: Mapping[str, PersonaEvaluation],
    registry: PersonaRegistry,
) -> list[DivergenceRecord]:
    records: list[DivergenceRecord] = []
    ordered = _registry_order(evaluations, registry)
    if not ordered:
        return records

    scores = [ev.score for _, ev in ordered]
    audience_avg = sum(scores) / len(scores)

    if abs(production_score - audience_avg) > GAP_THRESHOLD:
        if production_score > audience_avg:
            records.append(DivergenceRecord(
                type="production_audience_gap",
                severity="high",
                description=(
                    f"Production council confident ({production_score:.1f}) "
                    f"but audience lukewarm ({audience_avg:.1f})"
                ),
                production_score=production_score,
                audience_avg=audience_avg,
            ))
        else:
            records.append(DivergenceRecord(
                type="production_audience_gap",
                severity="medium",
                description=(
                    f"Audience loves it ({audience_avg:.1f}) "
                    f"but production council hesitant ({production_score:.1f})"
                ),
                production_score=production_score,
                audience_avg=audience_avg,
            ))

    # max()/min() return the first extreme they meet, i.e. registry order on ties.
    high_id, high_eval = max(ordered, key=lambda item: item[1].score)
    low_id, low_eval = min(ordered, key=lambda item: item[1].score)
    score_range = high_eval.score - low_eval.score
    if score_range > POLARIZATION_THRESHOLD:
        high_name = registry.display_name(high_id)
        low_name = registry.display_name(low_id)
        records.append(DivergenceRecord(
            type="demographic_polarization",
            severity="medium",
            description=(
                f"Polarizing: {high_name} scores {_fmt(high_eval.score)}, "
                f"{low_name} scores {_fmt(low_eval.score)} "
                f"(range: {score_range:.1f} points)"
            ),
            high_persona=high_name,
            low_persona=low_name,
            score_range=score_range,
        ))

    rejecting = [
        registry.display_name(pid)
        for pid, ev in ordered
        if ev.would_click == "no" or ev.would_watch == "no"
    ]
    if len(rejecting) >= REJECTION_MIN_PERSONAS:
        named = rejecting[:REJECTION_REPORT_LIMIT]
        records.append(DivergenceRecord(
            type="audience_rejection",
            severity="high",
            description=f"Multiple personas unlikely to engage: {', '.join(named)}",
            personas=named,
        ))

    if records:
        logger.info(
            "Divergence: %s",
            ", ".join(f"{r.type}[{r.severity}]" for r in records),
        )
    return records

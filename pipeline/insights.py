"""Human-readable insight lines for a scored candidate."""

from __future__ import annotations

from schemas.council import DemographicBreakdown, PersonaScoreEntry

ALIGNMENT_TOLERANCE = 1.0


def _appeal_line(label: str, entries: list[PersonaScoreEntry]) -> str:
    top = entries[:3]
    avg = sum(e.score for e in top) / len(top)
    return f"{label} appeal with: {', '.join(e.persona for e in top)} (avg {avg:.1f})"


def generate_insights(
    overall: float,
    production_score: float,
    audience_avg: float,
    breakdown: DemographicBreakdown | None = None,
) -> list[str]:
    """Summarise a candidate. Pass the breakdown so appeal lines can be included."""
    insights: list[str] = []

    if overall >= 8:
        insights.append(f"Strong candidate (overall {overall:.1f}/10) - high confidence")
    elif overall >= 7:
        insights.append(f"Good candidate (overall {overall:.1f}/10) - moderate confidence")
    else:
        insights.append(f"Weak candidate (overall {overall:.1f}/10) - consider alternatives")

    gap = abs(production_score - audience_avg)
    if production_score > audience_avg + ALIGNMENT_TOLERANCE:
        insights.append(
            f"Production confident ({production_score:.1f}) but audience response "
            f"lukewarm ({audience_avg:.1f}) - {gap:.1f}pt gap"
        )
    elif audience_avg > production_score + ALIGNMENT_TOLERANCE:
        insights.append(
            f"Audience loves it ({audience_avg:.1f}) despite production "
            f"hesitation ({production_score:.1f}) - {gap:.1f}pt gap"
        )
    else:
        insights.append(
            f"Good alignment between production ({production_score:.1f}) "
            f"and audience ({audience_avg:.1f})"
        )

    if breakdown is None:
        return insights

    if breakdown.strong_appeal:
        insights.append(_appeal_line("Strong", breakdown.strong_appeal))
    if breakdown.weak_appeal:
        insights.append(_appeal_line("Weak", breakdown.weak_appeal))

    if breakdown.by_segment:
        segment, score = max(breakdown.by_segment.items(), key=lambda item: item[1])
        insights.append(f"Best for: {segment.replace('_', ' ')} audience ({score:.1f}/10)")

    return insights

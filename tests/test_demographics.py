from __future__ import annotations

import unittest

from pipeline.demographics import (
    age_bracket,
    analyze_demographics,
    engagement_metrics,
    top_and_bottom_performers,
)
from pipeline.insights import generate_insights
from pipeline.personas import get_persona_registry
from schemas.council import PersonaEvaluation

# Registry order: Priya, Rajesh, Ananya, Vikram, Neha, Arjun, Maya, Rohan
SCORES = [9, 8, 7, 5, 6, 10, 4, 8]


def _council(scores=SCORES) -> dict[str, PersonaEvaluation]:
    registry = get_persona_registry()
    return {pid: PersonaEvaluation(score=s) for pid, s in zip(registry.audience_ids, scores)}


class AgeBracketTests(unittest.TestCase):
    def test_bracket_edges(self):
        self.assertEqual(age_bracket(19), "18-24")
        self.assertEqual(age_bracket(24), "18-24")
        self.assertEqual(age_bracket(25), "25-34")
        self.assertEqual(age_bracket(44), "35-44")
        self.assertEqual(age_bracket(45), "45-54")
        self.assertEqual(age_bracket(55), "55+")
        self.assertEqual(age_bracket(80), "55+")


class DemographicBreakdownTests(unittest.TestCase):
    def setUp(self):
        self.registry = get_persona_registry()
        self.breakdown = analyze_demographics(_council(), self.registry)

    def test_age_buckets_in_bracket_order_and_averaged(self):
        self.assertEqual(list(self.breakdown.by_age), ["18-24", "25-34", "35-44", "55+"])
        self.assertAlmostEqual(self.breakdown.by_age["18-24"], 7.0)
        self.assertAlmostEqual(self.breakdown.by_age["25-34"], 8.25)
        self.assertAlmostEqual(self.breakdown.by_age["35-44"], 6.5)
        self.assertAlmostEqual(self.breakdown.by_age["55+"], 4.0)

    def test_gender_and_segment_buckets(self):
        self.assertAlmostEqual(self.breakdown.by_gender["female"], 6.5)
        self.assertAlmostEqual(self.breakdown.by_gender["male"], 7.75)
        self.assertEqual(len(self.breakdown.by_segment), 8)
        self.assertAlmostEqual(self.breakdown.by_segment["scifi_fantasy"], 10.0)

    def test_appeal_lists_exclude_middle_band(self):
        strong = [e.persona for e in self.breakdown.strong_appeal]
        weak = [e.persona for e in self.breakdown.weak_appeal]
        self.assertEqual(strong, ["Priya", "Rajesh", "Arjun", "Rohan"])
        self.assertEqual(weak, ["Vikram", "Maya"])
        self.assertNotIn("Ananya", strong + weak)
        self.assertNotIn("Neha", strong + weak)

    def test_unknown_personas_are_skipped(self):
        evals = _council()
        evals["content_head"] = PersonaEvaluation(score=1)
        evals["nobody"] = PersonaEvaluation(score=1)
        breakdown = analyze_demographics(evals, self.registry)
        self.assertEqual(breakdown, self.breakdown)


class EngagementTests(unittest.TestCase):
    def test_counts_answers_and_definitely_is_yes(self):
        evals = {
            "a": PersonaEvaluation(score=8, would_click="yes", would_watch="definitely"),
            "b": PersonaEvaluation(score=6, would_click="Maybe", would_watch="maybe"),
            "c": PersonaEvaluation(score=3, would_click=False, would_watch="no"),
            "d": PersonaEvaluation(score=5),
        }
        metrics = engagement_metrics(evals)
        self.assertEqual(metrics.would_click, {"yes": 1, "maybe": 1, "no": 1})
        self.assertEqual(metrics.would_watch, {"yes": 1, "maybe": 1, "no": 1})


class PerformerTests(unittest.TestCase):
    def test_top_and_bottom_three(self):
        summary = top_and_bottom_performers(_council(), get_persona_registry())
        self.assertEqual([e.persona for e in summary.top_performers], ["Arjun", "Priya", "Rajesh"])
        self.assertEqual([e.persona for e in summary.bottom_performers], ["Maya", "Vikram", "Neha"])


class InsightTests(unittest.TestCase):
    def test_strong_candidate_with_appeal_lines(self):
        breakdown = analyze_demographics(_council(), get_persona_registry())
        insights = generate_insights(8.2, 9.0, 7.6, breakdown)
        self.assertEqual(insights[0], "Strong candidate (overall 8.2/10) - high confidence")
        self.assertTrue(insights[1].startswith("Production confident (9.0)"))
        self.assertIn("Strong appeal with: Priya, Rajesh, Arjun (avg 9.0)", insights)
        self.assertIn("Weak appeal with: Vikram, Maya (avg 4.5)", insights)
        self.assertEqual(insights[-1], "Best for: scifi fantasy audience (10.0/10)")

    def test_weak_candidate_and_alignment(self):
        insights = generate_insights(6.4, 7.0, 6.0)
        self.assertEqual(insights[0], "Weak candidate (overall 6.4/10) - consider alternatives")
        self.assertEqual(insights[1], "Good alignment between production (7.0) and audience (6.0)")
        self.assertEqual(len(insights), 2)

    def test_audience_ahead_of_production(self):
        insights = generate_insights(7.9, 7.0, 8.5)
        self.assertEqual(insights[0], "Good candidate (overall 7.9/10) - moderate confidence")
        self.assertTrue(insights[1].startswith("Audience loves it (8.5)"))


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import unittest

from pipeline.scoring import (
    audience_average,
    overall_score,
    production_score_for,
    rank_candidates,
    score_stats,
)
from schemas.council import PersonaEvaluation
from schemas.session import NarrativeCandidate


def _evals(*scores: float) -> dict[str, PersonaEvaluation]:
    return {f"p{i}": PersonaEvaluation(score=s) for i, s in enumerate(scores)}


def _candidate(text: str, overall: float, part: str = "part1_pure_ai") -> NarrativeCandidate:
    return NarrativeCandidate(
        session_id="s1",
        content_id="c1",
        narrative_text=text,
        generation_type=part,
        overall_score=overall,
        production_avg=8.0,
        audience_avg=overall,
    )


class ProductionScoreTests(unittest.TestCase):
    def test_consensus_labels_map_to_fixed_scores(self):
        self.assertEqual(production_score_for("high"), 9.0)
        self.assertEqual(production_score_for("medium"), 8.0)
        self.assertEqual(production_score_for("split"), 7.0)

    def test_labels_are_case_and_whitespace_insensitive(self):
        self.assertEqual(production_score_for("  HIGH "), 9.0)

    def test_unknown_or_missing_consensus_uses_default(self):
        self.assertEqual(production_score_for("unanimous"), 8.0)
        self.assertEqual(production_score_for(""), 8.0)
        self.assertEqual(production_score_for(None), 8.0)


class AggregationTests(unittest.TestCase):
    def test_overall_weights_production_forty_audience_sixty(self):
        self.assertAlmostEqual(overall_score(9.0, 7.0), 7.8)
        self.assertAlmostEqual(overall_score(8.0, 8.0), 8.0)

    def test_audience_average_is_arithmetic_mean(self):
        self.assertAlmostEqual(audience_average(_evals(6, 7, 8, 9, 10, 5, 6, 7)), 7.25)

    def test_audience_average_rejects_empty_council(self):
        with self.assertRaises(ValueError):
            audience_average({})

    def test_overall_stays_between_components(self):
        for production in (7.0, 8.0, 9.0):
            for audience in (1.0, 5.5, 10.0):
                overall = overall_score(production, audience)
                self.assertGreaterEqual(overall, min(production, audience))
                self.assertLessEqual(overall, max(production, audience))

    def test_score_stats(self):
        stats = score_stats(_evals(4, 6, 8))
        self.assertEqual(stats.count, 3)
        self.assertEqual(stats.min, 4)
        self.assertEqual(stats.max, 8)
        self.assertAlmostEqual(stats.average, 6.0)


class RankingTests(unittest.TestCase):
    def test_ranks_by_overall_descending(self):
        ranked = rank_candidates([
            _candidate("a", 7.1),
            _candidate("b", 8.4),
            _candidate("c", 6.0),
        ])
        self.assertEqual([c.narrative_text for c in ranked], ["b", "a", "c"])
        self.assertEqual([c.rank for c in ranked], [1, 2, 3])

    def test_ties_keep_generation_order(self):
        ranked = rank_candidates([
            _candidate("part1", 7.5, "part1_pure_ai"),
            _candidate("part2", 7.5, "part2_ai_human"),
        ])
        self.assertEqual([c.narrative_text for c in ranked], ["part1", "part2"])
        self.assertEqual([c.rank for c in ranked], [1, 2])

    def test_does_not_mutate_inputs(self):
        original = _candidate("a", 7.0)
        rank_candidates([original])
        self.assertEqual(original.rank, 0)


if __name__ == "__main__":
    unittest.main()

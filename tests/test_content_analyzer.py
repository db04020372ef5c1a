from __future__ import annotations

import unittest
from unittest.mock import patch

from agents.content_analyzer import (
    ContentAnalyzer,
    content_context_lines,
    extract_primary_conflict,
    select_primary_conflict,
    validate_conflict_alignment,
)
from pipeline.errors import AnalysisFailed
from pipeline.llm import LLMError
from schemas.content import ContentInfo
from schemas.story_architect import ConflictAlignment, ContentAnalysis


def _conflict(cid: str, subs: tuple[float, float, float, float, float], total: float | None = None) -> dict:
    scores = dict(zip(
        ("audience_appeal", "uniqueness", "genre_alignment", "pitch_clarity", "dramatic_intensity"),
        subs,
    ))
    scores["total"] = sum(subs) if total is None else total
    return {"conflict_id": cid, "description": f"Conflict {cid}.", "scores": scores}


def _analysis(conflicts: list[dict], primary_id: str, secondary_ids=()) -> ContentAnalysis:
    return ContentAnalysis.model_validate({
        "conflicts_identified": conflicts,
        "conflict_relationships": "NESTED: the family feud drives the heist",
        "thematic_core": {"central_question": "What do we owe family?"},
        "primary_conflict": {
            "conflict_id": primary_id,
            "statement": f"Model statement for {primary_id}",
            "marketing_angle": "Lead with the mother",
        },
        "secondary_conflicts": [{"conflict_id": s, "statement": f"Secondary {s}"} for s in secondary_ids],
    })


def _content(**overrides) -> ContentInfo:
    data = {
        "title": "Secret Title",
        "genre": "Drama",
        "runtime": 120,
        "target_audience": "Urban families",
        "summary": "A mother fights the city to save her son.",
    }
    data.update(overrides)
    return ContentInfo(**data)


class SelectPrimaryConflictTests(unittest.TestCase):
    def test_clear_winner_overrides_model_pick(self):
        analysis = _analysis(
            [_conflict("C1", (9, 9, 9, 9, 9)), _conflict("C2", (8, 7, 8, 7, 8))],
            primary_id="C2",
            secondary_ids=("C1",),
        )
        result = select_primary_conflict(analysis)
        self.assertEqual(result.primary_conflict.conflict_id, "C1")
        self.assertEqual(result.primary_conflict.statement, "Conflict C1.")
        self.assertEqual(result.primary_conflict.marketing_angle, "Lead with the mother")
        self.assertEqual(result.secondary_conflicts, [])

    def test_clear_winner_kept_when_model_agrees(self):
        analysis = _analysis(
            [_conflict("C1", (9, 9, 9, 9, 9)), _conflict("C2", (5, 5, 5, 5, 5))],
            primary_id="C1",
        )
        result = select_primary_conflict(analysis)
        self.assertEqual(result.primary_conflict.statement, "Model statement for C1")

    def test_near_tie_synthesises_unified_primary(self):
        analysis = _analysis(
            [
                _conflict("C1", (9, 8, 8, 8, 9)),  # 42
                _conflict("C2", (8, 8, 8, 8, 8)),  # 40
                _conflict("C3", (5, 5, 5, 5, 5)),  # 25
            ],
            primary_id="C1",
        )
        result = select_primary_conflict(analysis)
        self.assertEqual(result.primary_conflict.conflict_id, "UNIFIED:C1+C2")
        self.assertEqual(
            result.primary_conflict.statement,
            "What do we owe family? (Conflict C1; Conflict C2)",
        )

    def test_model_umbrella_is_kept_on_near_tie(self):
        analysis = _analysis(
            [_conflict("C1", (8, 8, 8, 8, 8)), _conflict("C2", (8, 8, 8, 8, 7))],
            primary_id="UNIFIED:C1+C2",
        )
        result = select_primary_conflict(analysis)
        self.assertEqual(result.primary_conflict.conflict_id, "UNIFIED:C1+C2")
        self.assertEqual(result.primary_conflict.statement, "Model statement for UNIFIED:C1+C2")

    def test_exactly_five_point_lead_is_clear(self):
        analysis = _analysis(
            [_conflict("C1", (9, 9, 9, 9, 9)), _conflict("C2", (8, 8, 8, 8, 8))],  # 45 vs 40
            primary_id="C2",
        )
        self.assertEqual(select_primary_conflict(analysis).primary_conflict.conflict_id, "C1")

    def test_totals_are_recomputed_from_sub_scores(self):
        analysis = _analysis(
            [
                _conflict("C1", (9, 9, 9, 9, 9), total=20),
                _conflict("C2", (6, 6, 6, 6, 6), total=49),
            ],
            primary_id="C2",
        )
        result = select_primary_conflict(analysis)
        self.assertEqual(result.conflict_by_id("C1").scores.total, 45)
        self.assertEqual(result.primary_conflict.conflict_id, "C1")

    def test_single_conflict_is_primary(self):
        analysis = _analysis([_conflict("C1", (5, 5, 5, 5, 5))], primary_id="C9")
        self.assertEqual(select_primary_conflict(analysis).primary_conflict.conflict_id, "C1")

    def test_relationship_type_derived(self):
        analysis = _analysis([_conflict("C1", (5, 5, 5, 5, 5))], primary_id="C1")
        self.assertEqual(analysis.relationship_type, "NESTED")
        self.assertEqual(analysis.main_conflict, "Model statement for C1")


class ContentAnalyzerTests(unittest.TestCase):
    def test_prompt_withholds_title(self):
        prompt = ContentAnalyzer().build_user_prompt({"content": _content()})
        self.assertNotIn("Secret Title", prompt)
        self.assertIn("A mother fights the city", prompt)
        self.assertIn("Runtime: 120 minutes", prompt)

    def test_context_lines_fill_missing_fields(self):
        lines = content_context_lines(ContentInfo(title="x"))
        self.assertIn("Genre: Not specified", lines)
        self.assertIn("Runtime: Not specified", lines)

    def test_empty_story_fails_without_calling_model(self):
        with patch("pipeline.base_agent.call_llm_structured") as mock_call:
            with self.assertRaises(AnalysisFailed):
                ContentAnalyzer().analyze(_content(summary="", script=""))
        mock_call.assert_not_called()

    def test_llm_failure_becomes_analysis_failed(self):
        with patch("pipeline.base_agent.call_llm_structured", side_effect=LLMError("boom")):
            with self.assertRaises(AnalysisFailed) as ctx:
                ContentAnalyzer().analyze(_content())
        self.assertIsInstance(ctx.exception.cause, LLMError)

    def test_analyze_applies_primary_rule(self):
        raw = _analysis(
            [_conflict("C1", (9, 9, 9, 9, 9)), _conflict("C2", (5, 5, 5, 5, 5))],
            primary_id="C2",
        )
        with patch("pipeline.base_agent.call_llm_structured", return_value=raw):
            result = ContentAnalyzer().analyze(_content())
        self.assertEqual(result.primary_conflict.conflict_id, "C1")


class ConflictHelperTests(unittest.TestCase):
    def test_extract_primary_conflict_strips_quotes(self):
        with patch("agents.content_analyzer.call_llm", return_value='"A mother wants her son back, but the city stands in her way"\n'):
            statement = extract_primary_conflict(_content())
        self.assertEqual(statement, "A mother wants her son back, but the city stands in her way")

    def test_alignment_threshold(self):
        with patch("agents.content_analyzer.call_llm_structured", return_value=ConflictAlignment(score=6.5, aligned=True)):
            result = validate_conflict_alignment("narrative", "conflict")
        self.assertFalse(result.aligned)

    def test_alignment_failure_becomes_analysis_failed(self):
        with patch("agents.content_analyzer.call_llm_structured", side_effect=LLMError("down")):
            with self.assertRaises(AnalysisFailed):
                validate_conflict_alignment("narrative", "conflict")


if __name__ == "__main__":
    unittest.main()

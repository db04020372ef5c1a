from __future__ import annotations

import threading
import unittest
from unittest.mock import patch

from pydantic import ValidationError

from pipeline.audience_council import HIDDEN_TITLE, AudienceCouncil
from pipeline.errors import NotFound, PersonaEvaluationFailed
from pipeline.llm import LLMError
from pipeline.personas import get_persona_registry
from schemas.content import ContentInfo
from schemas.council import PersonaEvaluation


def _content(**overrides) -> ContentInfo:
    data = {"title": "Do Not Leak", "genre": "Thriller", "summary": "A heist goes wrong in Mumbai."}
    data.update(overrides)
    return ContentInfo(**data)


class AudienceCouncilTests(unittest.TestCase):
    def setUp(self):
        self.registry = get_persona_registry()
        self.council = AudienceCouncil(registry=self.registry)

    def test_one_entry_per_persona_in_registry_order(self):
        def _fake(persona, narrative, content):
            return PersonaEvaluation(score=len(persona.role_name))

        with patch.object(AudienceCouncil, "_evaluate_persona", side_effect=_fake):
            result = self.council.evaluate("A narrative", _content())
        self.assertEqual(list(result), self.registry.audience_ids)
        self.assertEqual(result["priya_25f_drama"].score, 5)

    def test_one_failure_does_not_affect_others(self):
        def _fake(persona, narrative, content):
            if persona.role_id == "vikram_42m_premium":
                raise PersonaEvaluationFailed("rate limited for good", persona_id=persona.role_id)
            return PersonaEvaluation(score=8, would_click="yes")

        with patch.object(AudienceCouncil, "_evaluate_persona", side_effect=_fake):
            result = self.council.evaluate("A narrative", _content())

        self.assertEqual(len(result), 8)
        failed = result["vikram_42m_premium"]
        self.assertTrue(failed.evaluation_failed)
        self.assertEqual(failed.score, 5)
        self.assertEqual(failed.reasoning, "Evaluation failed: rate limited for good")
        others = [e for pid, e in result.items() if pid != "vikram_42m_premium"]
        self.assertTrue(all(e.score == 8 and not e.evaluation_failed for e in others))

    def test_unexpected_errors_also_fall_back(self):
        with patch.object(AudienceCouncil, "_evaluate_persona", side_effect=RuntimeError("kaboom")):
            result = self.council.evaluate("A narrative", _content())
        self.assertTrue(all(e.evaluation_failed for e in result.values()))
        self.assertTrue(all(e.score == 5 for e in result.values()))

    def test_calls_fan_out_to_worker_threads(self):
        thread_names = set()

        def _fake(persona, narrative, content):
            thread_names.add(threading.current_thread().name)
            return PersonaEvaluation(score=7)

        with patch.object(AudienceCouncil, "_evaluate_persona", side_effect=_fake):
            AudienceCouncil(registry=self.registry, max_workers=4).evaluate("n", _content())
        self.assertTrue(all(name.startswith("audience") for name in thread_names))

    def test_persona_call_hides_title_and_truncates_summary(self):
        captured = {}

        def _fake_structured(**kwargs):
            captured.update(kwargs)
            return PersonaEvaluation(score=7)

        long_summary = "x" * 12_000
        with patch("pipeline.audience_council.call_llm_structured", side_effect=_fake_structured):
            self.council.evaluate_single_persona("Narrative text", _content(summary=long_summary), "maya_55f_mature")

        prompt = captured["user_prompt"]
        self.assertNotIn("Do Not Leak", prompt)
        self.assertIn("Narrative text", prompt)
        self.assertNotIn("x" * 10_001, prompt)
        self.assertIn("x" * 10_000, prompt)
        self.assertEqual(captured["temperature"], 0.9)
        self.assertEqual(captured["max_tokens"], 1200)
        self.assertFalse(captured["inject_schema"])
        self.assertEqual(
            captured["system_prompt"],
            self.registry.audience_persona("maya_55f_mature").system_instruction,
        )

    def test_hidden_title_placeholder_text(self):
        self.assertEqual(HIDDEN_TITLE, "[Title Hidden - Evaluate Based on Story]")

    def test_llm_failure_is_wrapped_with_persona_id(self):
        persona = self.registry.audience_persona("vikram_42m_premium")
        with patch("pipeline.audience_council.call_llm_structured", side_effect=LLMError("quota")):
            with self.assertRaises(PersonaEvaluationFailed) as ctx:
                self.council._evaluate_persona(persona, "n", _content())
        self.assertEqual(ctx.exception.persona_id, "vikram_42m_premium")
        self.assertEqual(str(ctx.exception), "quota")

    def test_single_persona_unknown_id(self):
        with self.assertRaises(NotFound):
            self.council.evaluate_single_persona("n", _content(), "content_head")

    def test_single_persona_does_not_fall_back(self):
        with patch("pipeline.audience_council.call_llm_structured", side_effect=LLMError("down")):
            with self.assertRaises(PersonaEvaluationFailed) as ctx:
                self.council.evaluate_single_persona("n", _content(), "rohan_32m_comedy")
        self.assertEqual(ctx.exception.persona_id, "rohan_32m_comedy")
        self.assertIsInstance(ctx.exception.cause, LLMError)

    def test_non_numeric_scores_fail_validation(self):
        for bad in (None, [1], "high", True):
            with self.assertRaises(ValidationError):
                PersonaEvaluation.model_validate({"score": bad})

    def test_unparseable_score_is_a_persona_failure(self):
        def _bad_payload(**kwargs):
            return PersonaEvaluation.model_validate({"score": None})

        with patch("pipeline.audience_council.call_llm_structured", side_effect=_bad_payload), \
                patch("pipeline.audience_council.logger") as log:
            result = self.council.evaluate("A narrative", _content())

        self.assertTrue(all(e.evaluation_failed and e.score == 5 for e in result.values()))
        self.assertEqual(log.error.call_count, 8)
        log.exception.assert_not_called()

    def test_batch_evaluate(self):
        with patch.object(AudienceCouncil, "_evaluate_persona", return_value=PersonaEvaluation(score=6)):
            results = self.council.batch_evaluate(["one", "two"], _content())
        self.assertEqual(len(results), 2)
        self.assertTrue(all(len(r) == 8 for r in results))


if __name__ == "__main__":
    unittest.main()

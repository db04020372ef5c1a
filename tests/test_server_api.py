from __future__ import annotations

import asyncio
import json
import tempfile
import threading
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import server
from pipeline import storage
from pipeline.audience_council import AudienceCouncil
from pipeline.errors import AnalysisFailed
from pipeline.session_runner import NarrativeSessionRunner
from schemas.content import ContentCreate, ContentUpdate, StakeholderResponse
from schemas.council import PersonaEvaluation
from schemas.session import CouncilConversation, NarrativeCandidate
from schemas.story_architect import ConflictAlignment


def _body(resp) -> dict:
    return json.loads(resp.body)


class ServerApiTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self._db_patch = patch.object(storage, "DB_PATH", Path(self._tmp.name) / "server.db")
        self._db_patch.start()
        storage.reset_storage_connection_for_tests()
        storage.init_db()
        self._runner_patch = patch.object(server, "_runner", NarrativeSessionRunner(
            analyzer=MagicMock(), council=MagicMock(), audience=MagicMock(),
        ))
        self._runner_patch.start()

    def tearDown(self):
        server.generation_state["tasks"].clear()
        server.generation_state["cancel_events"].clear()
        self._runner_patch.stop()
        storage.reset_storage_connection_for_tests()
        self._db_patch.stop()
        self._tmp.cleanup()

    def _create(self, **fields) -> dict:
        data = {"title": "Maa", "genre": "Drama", "summary": "A mother's fight."}
        data.update(fields)
        return asyncio.run(server.api_create_content(ContentCreate(**data)))


class ContentApiTests(ServerApiTestCase):
    def test_create_list_get_update_delete(self):
        created = self._create()
        content_id = created["id"]
        self.assertEqual(created["status"], "draft")

        listed = asyncio.run(server.api_list_content())
        self.assertEqual([c["id"] for c in listed], [content_id])

        detail = asyncio.run(server.api_get_content(content_id))
        self.assertEqual(detail["title"], "Maa")
        self.assertEqual(detail["sessions"], [])

        updated = asyncio.run(server.api_update_content(content_id, ContentUpdate(tone="Hopeful")))
        self.assertEqual(updated["tone"], "Hopeful")
        self.assertEqual(updated["title"], "Maa")

        self.assertEqual(asyncio.run(server.api_delete_content(content_id)), {"ok": True, "deleted": content_id})
        self.assertEqual(asyncio.run(server.api_get_content(content_id)).status_code, 404)

    def test_missing_content_is_404(self):
        self.assertEqual(asyncio.run(server.api_get_content("nope")).status_code, 404)
        self.assertEqual(asyncio.run(server.api_update_content("nope", ContentUpdate(tone="x"))).status_code, 404)
        self.assertEqual(asyncio.run(server.api_delete_content("nope")).status_code, 404)
        self.assertEqual(asyncio.run(server.api_list_sessions("nope")).status_code, 404)

    def test_stakeholder_responses_round_trip(self):
        content_id = self._create()["id"]
        body = server.StakeholderResponsesBody(responses=[
            StakeholderResponse(role="Marketing Lead", question="Core emotion?", answer="Defiant hope"),
        ])
        saved = asyncio.run(server.api_save_stakeholder_responses(content_id, body))
        self.assertTrue(saved["ok"])
        fetched = asyncio.run(server.api_get_stakeholder_responses(content_id))
        self.assertEqual(fetched["responses"][0]["answer"], "Defiant hope")


class GenerationApiTests(ServerApiTestCase):
    def test_generate_starts_pending_session(self):
        content_id = self._create()["id"]
        with patch.object(server, "_run_session_in_background", new=AsyncMock()) as bg:
            resp = asyncio.run(server.api_generate(content_id, server.GenerateRequest()))

        self.assertEqual(resp["status"], "started")
        bg.assert_called_once_with(resp["session_id"])
        status = asyncio.run(server.api_session_status(resp["session_id"]))
        self.assertEqual(status["status"], "pending")
        self.assertEqual(status["progress"], 0)
        self.assertFalse(status["done"])
        self.assertIsNone(status["error"])

    def test_generate_validation_errors(self):
        content_id = self._create()["id"]
        with patch.object(server, "_run_session_in_background", new=AsyncMock()) as bg:
            bad_round = asyncio.run(server.api_generate(content_id, server.GenerateRequest(round_number=3)))
            no_parent = asyncio.run(server.api_generate(content_id, server.GenerateRequest(round_number=2)))
            missing = asyncio.run(server.api_generate("nope", server.GenerateRequest()))

        self.assertEqual(bad_round.status_code, 400)
        self.assertEqual(_body(bad_round)["error_type"], "validation_failed")
        self.assertEqual(no_parent.status_code, 400)
        self.assertEqual(missing.status_code, 404)
        bg.assert_not_called()

    def test_session_routes_and_candidates(self):
        content_id = self._create()["id"]
        session = storage.create_session(content_id)
        storage.complete_session(session.id, [], CouncilConversation(), {"candidate_count": 0})

        detail = asyncio.run(server.api_get_session(session.id))
        self.assertEqual(detail["status"], "completed")
        self.assertEqual(asyncio.run(server.api_session_candidates(session.id)), [])
        sessions = asyncio.run(server.api_list_sessions(content_id))
        self.assertEqual([s["id"] for s in sessions], [session.id])

        self.assertEqual(asyncio.run(server.api_get_session("nope")).status_code, 404)
        self.assertEqual(asyncio.run(server.api_session_status("nope")).status_code, 404)

    def test_get_candidate(self):
        content_id = self._create()["id"]
        session = storage.create_session(content_id)
        candidate = NarrativeCandidate(
            session_id=session.id,
            content_id=content_id,
            narrative_text="One mother against a thousand closed doors.",
            generation_type="part2_ai_human",
            overall_score=8.2,
            production_avg=8.0,
            audience_avg=8.33,
            rank=1,
        )
        storage.complete_session(session.id, [candidate], CouncilConversation(), {})
        stored_id = storage.list_candidates(session.id)[0].id

        resp = asyncio.run(server.api_get_candidate(stored_id))
        self.assertEqual(resp["narrative_text"], "One mother against a thousand closed doors.")
        self.assertEqual(resp["rank"], 1)
        self.assertEqual(asyncio.run(server.api_get_candidate("nope")).status_code, 404)

    def test_cancel_only_running_sessions(self):
        resp = asyncio.run(server.api_cancel_session("idle"))
        self.assertEqual(resp.status_code, 409)

        event = threading.Event()
        server.generation_state["cancel_events"]["live"] = event
        resp = asyncio.run(server.api_cancel_session("live"))
        self.assertEqual(resp["status"], "cancelling")
        self.assertTrue(event.is_set())


class AlignmentApiTests(ServerApiTestCase):
    def test_requires_conflict_source(self):
        resp = asyncio.run(server.api_conflict_alignment(server.AlignmentRequest(narrative="n")))
        self.assertEqual(resp.status_code, 400)

    def test_unanalysed_content_is_rejected(self):
        content_id = self._create()["id"]
        resp = asyncio.run(server.api_conflict_alignment(
            server.AlignmentRequest(narrative="n", content_id=content_id)
        ))
        self.assertEqual(resp.status_code, 400)

    def test_direct_conflict(self):
        fake = ConflictAlignment(score=8, reasoning="On the conflict")
        with patch.object(server, "validate_conflict_alignment", return_value=fake) as check:
            resp = asyncio.run(server.api_conflict_alignment(
                server.AlignmentRequest(narrative="One mother.", primary_conflict="Mother vs city")
            ))
        check.assert_called_once_with("One mother.", "Mother vs city")
        self.assertEqual(resp["score"], 8)
        self.assertTrue(resp["aligned"])


class AudienceApiTests(ServerApiTestCase):
    def test_extract_conflict(self):
        content_id = self._create()["id"]
        with patch.object(server, "extract_primary_conflict", return_value="A mother takes on the city") as extract:
            resp = asyncio.run(server.api_extract_conflict(content_id))
        self.assertEqual(resp["primary_conflict"], "A mother takes on the city")
        self.assertEqual(extract.call_args.args[0].title, "Maa")
        self.assertEqual(asyncio.run(server.api_extract_conflict("nope")).status_code, 404)

    def test_extract_conflict_failure_maps_to_error(self):
        content_id = self._create()["id"]
        with patch.object(server, "extract_primary_conflict", side_effect=AnalysisFailed("llm down")):
            resp = asyncio.run(server.api_extract_conflict(content_id))
        self.assertEqual(resp.status_code, 502)
        self.assertEqual(_body(resp)["error_type"], "analysis_failed")

    def test_evaluate_narratives_returns_stats_per_narrative(self):
        content_id = self._create()["id"]

        def _fake(persona, narrative, content):
            return PersonaEvaluation(score=9 if narrative == "strong" else 4)

        with patch.object(AudienceCouncil, "_evaluate_persona", side_effect=_fake):
            resp = asyncio.run(server.api_evaluate_narratives(
                content_id, server.EvaluateRequest(narratives=["strong", "weak"])
            ))

        self.assertEqual([r["narrative"] for r in resp], ["strong", "weak"])
        self.assertEqual(resp[0]["stats"], {"average": 9.0, "min": 9.0, "max": 9.0, "count": 8})
        self.assertEqual(resp[1]["stats"]["average"], 4.0)
        self.assertEqual(len(resp[0]["evaluations"]), 8)

    def test_evaluate_unknown_content(self):
        resp = asyncio.run(server.api_evaluate_narratives("nope", server.EvaluateRequest(narratives=["n"])))
        self.assertEqual(resp.status_code, 404)


class ReferenceApiTests(ServerApiTestCase):
    def test_personas(self):
        resp = asyncio.run(server.api_personas())
        self.assertEqual(len(resp["production"]), 7)
        self.assertEqual(len(resp["audience"]), 8)
        self.assertEqual(resp["audience"][0]["role_id"], "priya_25f_drama")
        self.assertEqual(resp["audience"][0]["profile"]["age"], 25)

    def test_health_reports_provider_state(self):
        with patch("config.DEFAULT_PROVIDER", "openai"), patch("config.OPENAI_API_KEY", ""):
            resp = asyncio.run(server.api_health())
        self.assertFalse(resp["ok"])
        self.assertEqual(resp["default_provider"], "openai")
        self.assertTrue(any("OPENAI_API_KEY" in w for w in resp["warnings"]))

    def test_usage_reset(self):
        self.assertEqual(asyncio.run(server.api_reset_usage()), {"ok": True})
        self.assertIn("total_cost", asyncio.run(server.api_usage()))


if __name__ == "__main__":
    unittest.main()

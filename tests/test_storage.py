from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from pipeline import storage
from schemas.content import ContentCreate, ContentUpdate, StakeholderResponse
from schemas.session import CouncilConversation, CouncilTranscript, NarrativeCandidate
from schemas.story_architect import ContentAnalysis


def _analysis(statement: str = "A mother takes on the city") -> ContentAnalysis:
    return ContentAnalysis.model_validate({
        "conflicts_identified": [{"conflict_id": "C1", "description": "Mother vs city"}],
        "primary_conflict": {"conflict_id": "C1", "statement": statement},
    })


def _candidate(session_id: str, content_id: str, text: str, overall: float, rank: int) -> NarrativeCandidate:
    return NarrativeCandidate(
        session_id=session_id,
        content_id=content_id,
        narrative_text=text,
        generation_type="part1_pure_ai",
        overall_score=overall,
        production_avg=8.0,
        audience_avg=overall,
        audience_council={"priya_25f_drama": {"score": 8, "why": "Loved it"}},
        rank=rank,
    )


class StorageTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self._db_patch = patch.object(storage, "DB_PATH", Path(self._tmp.name) / "test.db")
        self._db_patch.start()
        storage.reset_storage_connection_for_tests()
        storage.init_db()

    def tearDown(self):
        storage.reset_storage_connection_for_tests()
        self._db_patch.stop()
        self._tmp.cleanup()


class ContentStorageTests(StorageTestCase):
    def test_create_get_list_delete(self):
        item = storage.create_content(ContentCreate(title="Maa", genre="Drama", summary="Story"))
        self.assertEqual(len(item.id), 32)
        self.assertEqual(item.status, "draft")
        self.assertEqual(storage.get_content(item.id).title, "Maa")
        self.assertEqual([c.id for c in storage.list_contents()], [item.id])

        self.assertTrue(storage.delete_content(item.id))
        self.assertIsNone(storage.get_content(item.id))
        self.assertFalse(storage.delete_content(item.id))

    def test_partial_update_and_story_change_clears_analysis(self):
        item = storage.create_content(ContentCreate(title="Maa", summary="Story"))
        storage.set_content_analysis(item.id, _analysis())
        self.assertEqual(storage.get_content(item.id).status, "analyzed")

        updated = storage.update_content(item.id, ContentUpdate(tone="Gritty"))
        self.assertEqual(updated.tone, "Gritty")
        self.assertIsNotNone(updated.analysis)

        updated = storage.update_content(item.id, ContentUpdate(summary="New story"))
        self.assertIsNone(updated.analysis)
        self.assertEqual(updated.status, "draft")
        self.assertIsNone(storage.update_content("missing", ContentUpdate(tone="x")))

    def test_analysis_cache_first_writer_wins(self):
        item = storage.create_content(ContentCreate(title="Maa", summary="Story"))
        first = storage.set_content_analysis_if_missing(item.id, _analysis("first"))
        second = storage.set_content_analysis_if_missing(item.id, _analysis("second"))
        self.assertEqual(first.primary_conflict.statement, "first")
        self.assertEqual(second.primary_conflict.statement, "first")

    def test_stakeholder_responses_round_trip(self):
        item = storage.create_content(ContentCreate(title="Maa"))
        storage.save_stakeholder_responses(item.id, [
            StakeholderResponse(role="Marketing Lead", question="Core emotion?", answer="माँ की ज़िद"),
        ])
        stored = storage.get_content(item.id).stakeholder_responses
        self.assertEqual(stored[0].answer, "माँ की ज़िद")
        self.assertIsNone(storage.save_stakeholder_responses("missing", []))


class SessionStorageTests(StorageTestCase):
    def setUp(self):
        super().setUp()
        self.content = storage.create_content(ContentCreate(title="Maa", summary="Story"))

    def test_session_defaults_and_updates(self):
        session = storage.create_session(self.content.id)
        self.assertEqual(session.status, "pending")
        self.assertEqual(session.progress, 0)
        self.assertEqual(session.phase, "queued")

        session = storage.update_session(session.id, status="processing", progress=30, phase="part1_brainstorm",
                                         metadata={"note": "hi"})
        self.assertEqual(session.progress, 30)
        self.assertEqual(session.metadata, {"note": "hi"})

        with self.assertRaises(ValueError):
            storage.update_session(session.id, content_id="other")

    def test_complete_session_writes_candidates_atomically(self):
        session = storage.create_session(self.content.id)
        candidates = [
            _candidate(session.id, self.content.id, "second", 7.0, 2),
            _candidate(session.id, self.content.id, "first", 8.0, 1),
        ]
        conversation = CouncilConversation(part1_pure_ai=CouncilTranscript(meeting_insights=["x"]))
        done = storage.complete_session(session.id, candidates, conversation, {"candidate_count": 2})

        self.assertEqual(done.status, "completed")
        self.assertEqual(done.progress, 100)
        self.assertEqual(done.council_conversation.part1_pure_ai.meeting_insights, ["x"])
        listed = storage.list_candidates(session.id)
        self.assertEqual([c.narrative_text for c in listed], ["first", "second"])
        self.assertTrue(all(c.id for c in listed))
        self.assertEqual(listed[0].audience_council["priya_25f_drama"].reasoning, "Loved it")

    def test_failed_candidate_write_leaves_nothing(self):
        session = storage.create_session(self.content.id)
        duplicate_id = "same-id"
        candidates = [
            _candidate(session.id, self.content.id, "a", 8.0, 1).model_copy(update={"id": duplicate_id}),
            _candidate(session.id, self.content.id, "b", 7.0, 2).model_copy(update={"id": duplicate_id}),
        ]
        with self.assertRaises(storage.PersistenceFailed):
            storage.complete_session(session.id, candidates, CouncilConversation(), {})
        self.assertEqual(storage.count_candidates(session.id), 0)
        self.assertEqual(storage.get_session(session.id).status, "pending")

    def test_top_candidates_and_latest_completed(self):
        first = storage.create_session(self.content.id)
        storage.complete_session(first.id, [
            _candidate(first.id, self.content.id, f"n{i}", float(i), 8 - i) for i in range(1, 8)
        ], CouncilConversation(), {})

        top = storage.top_candidates(first.id, 5)
        self.assertEqual([c.overall_score for c in top], [7.0, 6.0, 5.0, 4.0, 3.0])
        self.assertEqual(storage.latest_completed_session(self.content.id, 1).id, first.id)
        self.assertIsNone(storage.latest_completed_session(self.content.id, 2))

    def test_deleting_content_cascades(self):
        session = storage.create_session(self.content.id)
        storage.complete_session(session.id, [_candidate(session.id, self.content.id, "a", 8.0, 1)],
                                 CouncilConversation(), {})
        storage.delete_content(self.content.id)
        self.assertIsNone(storage.get_session(session.id))
        self.assertEqual(storage.count_candidates(session.id), 0)


if __name__ == "__main__":
    unittest.main()

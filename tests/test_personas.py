from __future__ import annotations

import unittest

from pipeline.personas import build_registry, get_persona_registry
from prompts.audience_council import AUDIENCE_PERSONAS
from prompts.production_council import PRODUCTION_PERSONAS


def _audience(role_id: str, **overrides) -> dict:
    persona = {
        "role_id": role_id,
        "role_name": role_id.title(),
        "system_instruction": "You are a viewer.",
        "evaluation_prompt": "Story: {content_summary}\nNarrative: {narrative}",
        "profile": {"age": 30, "gender": "female", "segment": "drama_romance"},
    }
    persona.update(overrides)
    return persona


class PersonaRegistryTests(unittest.TestCase):
    def test_default_registry_has_both_councils(self):
        registry = get_persona_registry()
        self.assertEqual(len(registry.production), 7)
        self.assertEqual(len(registry.audience), 8)
        self.assertEqual(registry.audience_ids[0], "priya_25f_drama")
        self.assertEqual(registry.audience_ids[-1], "rohan_32m_comedy")
        self.assertIn("story_architect", registry.production_ids)

    def test_registry_is_cached_and_frozen(self):
        registry = get_persona_registry()
        self.assertIs(registry, get_persona_registry())
        with self.assertRaises(Exception):
            registry.audience[0].role_name = "Someone else"

    def test_every_audience_persona_has_profile_and_narrative_slot(self):
        for persona in get_persona_registry().audience:
            self.assertIsNotNone(persona.profile)
            self.assertIn("{narrative}", persona.evaluation_prompt)

    def test_lookup_and_display_name(self):
        registry = get_persona_registry()
        self.assertEqual(registry.display_name("maya_55f_mature"), "Maya")
        self.assertEqual(registry.display_name("unknown"), "unknown")
        self.assertIsNone(registry.audience_persona("content_head"))
        self.assertIsNotNone(registry.get("content_head"))

    def test_duplicate_ids_rejected(self):
        with self.assertRaises(ValueError):
            build_registry(PRODUCTION_PERSONAS, [_audience("a"), _audience("a")])

    def test_audience_persona_requires_profile(self):
        with self.assertRaises(ValueError):
            build_registry([], [_audience("a", profile=None)])

    def test_audience_persona_requires_narrative_placeholder(self):
        with self.assertRaises(ValueError):
            build_registry([], [_audience("a", evaluation_prompt="Story: {content_summary}")])

    def test_render_prompt_keeps_json_braces(self):
        registry = build_registry([], [_audience(
            "a",
            evaluation_prompt='Title: {content_title}\n{narrative}\nReturn {"score": 7}',
        )])
        rendered = registry.audience[0].render_prompt(
            content_title="[hidden]",
            content_genre="Drama",
            content_summary="A story",
            narrative="Ek maa ki kahaani",
        )
        self.assertEqual(rendered, 'Title: [hidden]\nEk maa ki kahaani\nReturn {"score": 7}')

    def test_render_prompt_does_not_rescan_inserted_text(self):
        persona = build_registry([], [_audience("a")]).audience[0]
        rendered = persona.render_prompt(
            content_title="[hidden]",
            content_genre="Drama",
            content_summary="see {narrative} here",
            narrative="NARR",
        )
        self.assertEqual(rendered, "Story: see {narrative} here\nNarrative: NARR")
        self.assertEqual(rendered.count("NARR"), 1)

    def test_shipped_prompt_lists_build(self):
        registry = build_registry(PRODUCTION_PERSONAS, AUDIENCE_PERSONAS)
        self.assertEqual(len(registry.audience), len(AUDIENCE_PERSONAS))


if __name__ == "__main__":
    unittest.main()

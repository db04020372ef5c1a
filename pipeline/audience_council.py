"""Audience council — eight personas score each narrative independently.

Each persona is a separate LLM call with its own system instruction and
evaluation template. One persona failing never sinks the others: the
failure is logged and replaced with a neutral fallback evaluation.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Sequence

from pydantic import ValidationError

import config
from pipeline.errors import NotFound, PersonaEvaluationFailed
from pipeline.llm import LLMError, call_llm_structured
from pipeline.personas import PersonaConfig, PersonaRegistry, get_persona_registry
from schemas.content import ContentInfo
from schemas.council import PersonaEvaluation

logger = logging.getLogger(__name__)

HIDDEN_TITLE = "[Title Hidden - Evaluate Based on Story]"


def _persona_summary(content: ContentInfo) -> str:
    summary = content.story_text()
    limit = config.PERSONA_SUMMARY_CHAR_LIMIT
    if len(summary) > limit:
        summary = summary[:limit]
    return summary or "Not provided"


class AudienceCouncil:
    """Fans a narrative out to every audience persona and collects the verdicts."""

    def __init__(
        self,
        registry: PersonaRegistry | None = None,
        provider: str | None = None,
        model: str | None = None,
        max_workers: int | None = None,
    ):
        llm_conf = config.get_agent_llm_config("audience_persona")
        self.registry = registry or get_persona_registry()
        self.provider = provider or llm_conf["provider"]
        self.model = model or llm_conf["model"]
        self.temperature = llm_conf["temperature"]
        self.max_tokens = llm_conf["max_tokens"]
        self.max_workers = max_workers or config.AUDIENCE_COUNCIL_MAX_WORKERS

    def _evaluate_persona(
        self,
        persona: PersonaConfig,
        narrative: str,
        content: ContentInfo,
    ) -> PersonaEvaluation:
        user_prompt = persona.render_prompt(
            content_title=HIDDEN_TITLE,
            content_genre=content.genre or "Not specified",
            content_summary=_persona_summary(content),
            narrative=narrative,
        )
        try:
            return call_llm_structured(
                system_prompt=persona.system_instruction,
                user_prompt=user_prompt,
                response_model=PersonaEvaluation,
                provider=self.provider,
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                inject_schema=False,
                repair=False,
            )
        except (LLMError, ValidationError, ValueError) as exc:
            raise PersonaEvaluationFailed(str(exc), persona_id=persona.role_id, cause=exc) from exc

    def evaluate(self, narrative: str, content: ContentInfo) -> dict[str, PersonaEvaluation]:
        """Score one narrative with every audience persona.

        Always returns exactly one entry per registered persona, in registry
        order. Failed personas carry PersonaEvaluation.fallback().
        """
        personas = list(self.registry.audience)
        if not personas:
            return {}

        start = time.time()
        results: dict[str, PersonaEvaluation] = {}
        workers = max(1, min(self.max_workers, len(personas)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="audience") as pool:
            future_to_persona = {
                pool.submit(self._evaluate_persona, persona, narrative, content): persona
                for persona in personas
            }
            for future in as_completed(future_to_persona):
                persona = future_to_persona[future]
                try:
                    evaluation = future.result()
                    logger.info("  %s → %.1f/10", persona.role_name, evaluation.score)
                except PersonaEvaluationFailed as exc:
                    logger.error("Persona %s evaluation failed: %s", persona.role_id, exc)
                    evaluation = PersonaEvaluation.fallback(str(exc))
                except Exception as exc:
                    logger.exception("Persona %s evaluation crashed", persona.role_id)
                    evaluation = PersonaEvaluation.fallback(str(exc) or type(exc).__name__)
                results[persona.role_id] = evaluation

        failed = sum(1 for e in results.values() if e.evaluation_failed)
        logger.info(
            "Audience council done in %.1fs (%d personas, %d fallback)",
            time.time() - start, len(results), failed,
        )
        return {p.role_id: results[p.role_id] for p in personas}

    def evaluate_single_persona(
        self,
        narrative: str,
        content: ContentInfo,
        persona_id: str,
    ) -> PersonaEvaluation:
        """One persona, no fallback: failures surface as PersonaEvaluationFailed."""
        persona = self.registry.audience_persona(persona_id)
        if persona is None:
            raise NotFound(f"Unknown audience persona: {persona_id}")
        return self._evaluate_persona(persona, narrative, content)

    def batch_evaluate(
        self,
        narratives: Sequence[str],
        content: ContentInfo,
    ) -> list[dict[str, PersonaEvaluation]]:
        out = []
        for idx, narrative in enumerate(narratives, start=1):
            logger.info("Audience council: narrative %d/%d", idx, len(narratives))
            out.append(self.evaluate(narrative, content))
        return out

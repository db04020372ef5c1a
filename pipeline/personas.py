"""Persona registry — the fixed production and audience councils.

Built once per process from prompts.production_council and
prompts.audience_council, frozen, and handed to the audience council,
the demographic analyzer and the divergence detector by reference.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from prompts.audience_council import AUDIENCE_PERSONAS
from prompts.production_council import PRODUCTION_PERSONAS

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{(content_title|content_genre|content_summary|narrative)\}")


class DemographicProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    age: int = Field(..., ge=0)
    gender: str
    segment: str


class PersonaConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    role_id: str = Field(..., min_length=1)
    role_name: str
    system_instruction: str
    evaluation_prompt: str
    profile: Optional[DemographicProfile] = None

    def render_prompt(
        self,
        *,
        content_title: str,
        content_genre: str,
        content_summary: str,
        narrative: str,
    ) -> str:
        """Fill the template in one pass; inserted text is never re-scanned.

        Only the four known placeholders are touched, the template also holds
        literal JSON braces.
        """
        values = {
            "content_title": content_title,
            "content_genre": content_genre,
            "content_summary": content_summary,
            "narrative": narrative,
        }
        return _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], self.evaluation_prompt)


class PersonaRegistry(BaseModel):
    """Immutable lookup over both councils, in their configured order."""

    model_config = ConfigDict(frozen=True)

    production: tuple[PersonaConfig, ...]
    audience: tuple[PersonaConfig, ...]

    def get(self, role_id: str) -> Optional[PersonaConfig]:
        for persona in self.production + self.audience:
            if persona.role_id == role_id:
                return persona
        return None

    def audience_persona(self, role_id: str) -> Optional[PersonaConfig]:
        for persona in self.audience:
            if persona.role_id == role_id:
                return persona
        return None

    def display_name(self, role_id: str) -> str:
        persona = self.get(role_id)
        return persona.role_name if persona else role_id

    @property
    def audience_ids(self) -> list[str]:
        return [p.role_id for p in self.audience]

    @property
    def production_ids(self) -> list[str]:
        return [p.role_id for p in self.production]


def build_registry(production: list[dict], audience: list[dict]) -> PersonaRegistry:
    """Validate raw persona dicts into a registry. Ids must be unique across both councils."""
    production_personas = tuple(PersonaConfig.model_validate(p) for p in production)
    audience_personas = tuple(PersonaConfig.model_validate(p) for p in audience)

    seen: set[str] = set()
    for persona in production_personas + audience_personas:
        if persona.role_id in seen:
            raise ValueError(f"Duplicate persona role_id: {persona.role_id}")
        seen.add(persona.role_id)

    for persona in audience_personas:
        if persona.profile is None:
            raise ValueError(f"Audience persona {persona.role_id} has no demographic profile")
        if "{narrative}" not in persona.evaluation_prompt:
            raise ValueError(f"Audience persona {persona.role_id} template lacks {{narrative}}")

    return PersonaRegistry(production=production_personas, audience=audience_personas)


@lru_cache(maxsize=1)
def get_persona_registry() -> PersonaRegistry:
    registry = build_registry(PRODUCTION_PERSONAS, AUDIENCE_PERSONAS)
    logger.info(
        "Persona registry loaded: %d production roles, %d audience personas",
        len(registry.production), len(registry.audience),
    )
    return registry

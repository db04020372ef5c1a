"""Shared shape of the two prompt-driven agents (Story Architect, council brainstorm).

An agent is a system prompt, a user-prompt builder and a pydantic response
model. Provider, model, temperature and max_tokens come from
config.AGENT_LLM_CONFIG under the agent's slug, so each agent can sit on a
different LLM. Constructor arguments override the config.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

import config
from pipeline.errors import NarrativeEngineError
from pipeline.llm import LLMError, call_llm_structured, get_usage_since, usage_checkpoint


class BaseAgent(ABC):
    """Base class for structured-output agents.

    Subclasses set `name`, `slug` (a key of AGENT_LLM_CONFIG) and `failure`
    (the pipeline error an LLM failure turns into), and implement
    system_prompt, output_schema and build_user_prompt().
    """

    name: str = "BaseAgent"
    slug: str = "base"
    description: str = ""
    failure: type[NarrativeEngineError] = NarrativeEngineError
    # Prompts that already spell out their JSON shape skip schema injection.
    inject_schema: bool = True

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ):
        llm_conf = config.get_agent_llm_config(self.slug)
        self.provider = provider or llm_conf["provider"]
        self.model = model or llm_conf["model"]
        self.temperature = temperature if temperature is not None else llm_conf["temperature"]
        self.max_tokens = max_tokens if max_tokens is not None else llm_conf["max_tokens"]
        self.logger = logging.getLogger(f"agent.{self.slug}")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.provider}/{self.model} t={self.temperature}>"

    @property
    @abstractmethod
    def system_prompt(self) -> str:
        ...

    @property
    @abstractmethod
    def output_schema(self) -> type[BaseModel]:
        ...

    @abstractmethod
    def build_user_prompt(self, inputs: dict[str, Any]) -> str:
        ...

    def run(self, inputs: dict[str, Any]) -> BaseModel:
        """One structured call. LLM failures surface as `self.failure`."""
        user_prompt = self.build_user_prompt(inputs)
        self.logger.info(
            "%s starting [%s/%s], prompt %d chars",
            self.name, self.provider, self.model, len(user_prompt),
        )
        usage_start = usage_checkpoint()
        start = time.time()
        try:
            result = call_llm_structured(
                system_prompt=self.system_prompt,
                user_prompt=user_prompt,
                response_model=self.output_schema,
                provider=self.provider,
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                inject_schema=self.inject_schema,
            )
        except LLMError as exc:
            raise self.failure(f"{self.name} failed: {exc}", cause=exc) from exc

        usage = get_usage_since(usage_start)
        self.logger.info(
            "%s finished in %.1fs (%d tokens, ~$%.4f)",
            self.name, time.time() - start, usage["total_tokens"], usage["total_cost"],
        )
        return result

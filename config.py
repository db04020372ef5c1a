"""Narrative Council configuration — LLM providers, per-agent model assignments, pipeline knobs."""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
ROOT_DIR = Path(__file__).parent
DB_PATH = Path(os.getenv("NARRATIVE_DB_PATH", str(ROOT_DIR / "narrative_council.db")))

# ---------------------------------------------------------------------------
# LLM Provider API Keys
# ---------------------------------------------------------------------------
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY", "")

# ---------------------------------------------------------------------------
# Model names (centralized so they're easy to update)
# ---------------------------------------------------------------------------
OPENAI_FRONTIER = "gpt-5.2"
GOOGLE_FRONTIER = "gemini-2.5-pro"
ANTHROPIC_FRONTIER = "claude-sonnet-4-5"

# ---------------------------------------------------------------------------
# Per-Agent Model Assignments
#
# Each agent can specify: provider, model, temperature, max_tokens.
# Providers: "openai", "anthropic", "google"
# Override any agent via env: COUNCIL_BRAINSTORM_PROVIDER=openai
#                             COUNCIL_BRAINSTORM_MODEL=gpt-5.2
# ---------------------------------------------------------------------------

DEFAULT_PROVIDER = os.getenv("DEFAULT_PROVIDER", "anthropic")
DEFAULT_MODEL = os.getenv("DEFAULT_MODEL", ANTHROPIC_FRONTIER)

PROVIDER_DEFAULT_MODELS = {
    "openai": OPENAI_FRONTIER,
    "anthropic": ANTHROPIC_FRONTIER,
    "google": GOOGLE_FRONTIER,
}


def _model_for(provider: str) -> str:
    """DEFAULT_MODEL for the default provider, else that provider's frontier model."""
    if provider == DEFAULT_PROVIDER:
        return DEFAULT_MODEL
    return PROVIDER_DEFAULT_MODELS.get(provider, DEFAULT_MODEL)


AGENT_LLM_CONFIG: dict[str, dict] = {
    # Story Architect: deep conflict/theme analysis, one call per content item
    "content_analyzer": {
        "provider": os.getenv("CONTENT_ANALYZER_PROVIDER", DEFAULT_PROVIDER),
        "model": os.getenv("CONTENT_ANALYZER_MODEL", _model_for(os.getenv("CONTENT_ANALYZER_PROVIDER", DEFAULT_PROVIDER))),
        "temperature": 0.7,
        "max_tokens": 6_000,
    },
    # Quick one-sentence conflict extraction
    "conflict_extractor": {
        "provider": os.getenv("CONFLICT_EXTRACTOR_PROVIDER", DEFAULT_PROVIDER),
        "model": os.getenv("CONFLICT_EXTRACTOR_MODEL", _model_for(os.getenv("CONFLICT_EXTRACTOR_PROVIDER", DEFAULT_PROVIDER))),
        "temperature": 0.5,
        "max_tokens": 200,
    },
    # Conflict alignment check for a single narrative
    "conflict_alignment": {
        "provider": os.getenv("CONFLICT_ALIGNMENT_PROVIDER", DEFAULT_PROVIDER),
        "model": os.getenv("CONFLICT_ALIGNMENT_MODEL", _model_for(os.getenv("CONFLICT_ALIGNMENT_PROVIDER", DEFAULT_PROVIDER))),
        "temperature": 0.3,
        "max_tokens": 300,
    },
    # Production council meeting: long transcript + N narratives
    "council_brainstorm": {
        "provider": os.getenv("COUNCIL_BRAINSTORM_PROVIDER", DEFAULT_PROVIDER),
        "model": os.getenv("COUNCIL_BRAINSTORM_MODEL", _model_for(os.getenv("COUNCIL_BRAINSTORM_PROVIDER", DEFAULT_PROVIDER))),
        "temperature": 0.9,
        "max_tokens": 16_000,
    },
    # Audience personas: short reactions, higher temperature for diversity
    "audience_persona": {
        "provider": os.getenv("AUDIENCE_PERSONA_PROVIDER", DEFAULT_PROVIDER),
        "model": os.getenv("AUDIENCE_PERSONA_MODEL", _model_for(os.getenv("AUDIENCE_PERSONA_PROVIDER", DEFAULT_PROVIDER))),
        "temperature": 0.9,
        "max_tokens": 1_200,
    },
}


def get_agent_llm_config(agent_slug: str) -> dict:
    """Return the LLM config for a specific agent, with defaults."""
    defaults = {
        "provider": DEFAULT_PROVIDER,
        "model": DEFAULT_MODEL,
        "temperature": 0.7,
        "max_tokens": 16_000,
    }
    agent_conf = AGENT_LLM_CONFIG.get(agent_slug, {})
    return {**defaults, **agent_conf}


# ---------------------------------------------------------------------------
# Retry policy (every completion call)
# ---------------------------------------------------------------------------
LLM_MAX_ATTEMPTS = int(os.getenv("LLM_MAX_ATTEMPTS", "3"))
LLM_RETRY_BASE_DELAY = float(os.getenv("LLM_RETRY_BASE_DELAY", "2.0"))
LLM_RETRY_MAX_DELAY = float(os.getenv("LLM_RETRY_MAX_DELAY", "30.0"))

# ---------------------------------------------------------------------------
# Generation pipeline
# ---------------------------------------------------------------------------

# Total candidates per session; Part 1 gets half, Part 2 the remainder.
CANDIDATE_COUNT = int(os.getenv("CANDIDATE_COUNT", "10"))

# Round 2 seeds the council with this many top round-1 candidates.
ROUND2_CONTEXT_LIMIT = int(os.getenv("ROUND2_CONTEXT_LIMIT", "5"))

# Persona prompts see at most this many characters of the summary.
PERSONA_SUMMARY_CHAR_LIMIT = int(os.getenv("PERSONA_SUMMARY_CHAR_LIMIT", "10000"))

AUDIENCE_COUNCIL_MAX_WORKERS = int(os.getenv("AUDIENCE_COUNCIL_MAX_WORKERS", "4"))

# Token-set Jaccard similarity at or above which two narratives count as duplicates.
COUNCIL_DUPLICATE_SIMILARITY = float(os.getenv("COUNCIL_DUPLICATE_SIMILARITY", "0.8"))

# Primary conflict wins outright only when it leads the runner-up by this margin.
PRIMARY_CONFLICT_MARGIN = float(os.getenv("PRIMARY_CONFLICT_MARGIN", "5"))

NARRATIVE_LANGUAGE = os.getenv(
    "NARRATIVE_LANGUAGE",
    "Hindi/Hinglish for Hindi-first audiences",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

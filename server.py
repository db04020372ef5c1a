"""Narrative Council — Web Server.

FastAPI backend for managing content, kicking off generation sessions and
polling their progress. Sessions run on a worker thread; clients poll
/api/sessions/{id}/status until the session completes or fails.

Usage:
    python server.py
    # Then open http://localhost:8000/docs
"""

from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

import config
from agents.content_analyzer import ContentAnalyzer, extract_primary_conflict, validate_conflict_alignment
from pipeline.audience_council import AudienceCouncil
from pipeline.errors import (
    AnalysisFailed,
    NarrativeEngineError,
    NotFound,
    PersistenceFailed,
    SessionBusy,
    ValidationFailed,
)
from pipeline.llm import get_usage_summary, reset_usage
from pipeline.personas import get_persona_registry
from pipeline.scoring import score_stats
from pipeline.session_runner import NarrativeSessionRunner
from pipeline.storage import (
    create_content,
    delete_content,
    get_candidate,
    get_content,
    get_session,
    init_db,
    list_candidates,
    list_contents,
    list_sessions,
    save_stakeholder_responses,
    set_content_analysis,
    update_content,
)
from schemas.content import ContentCreate, ContentUpdate, StakeholderResponse

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)


def _check_api_keys() -> list[str]:
    """Check which LLM provider API keys are configured. Returns list of warnings."""
    warnings = []
    if not config.OPENAI_API_KEY:
        warnings.append("OPENAI_API_KEY is not set")
    if not config.ANTHROPIC_API_KEY:
        warnings.append("ANTHROPIC_API_KEY is not set")
    if not config.GOOGLE_API_KEY:
        warnings.append("GOOGLE_API_KEY is not set")

    provider = config.DEFAULT_PROVIDER
    key_map = {
        "openai": config.OPENAI_API_KEY,
        "anthropic": config.ANTHROPIC_API_KEY,
        "google": config.GOOGLE_API_KEY,
    }
    if not key_map.get(provider):
        warnings.insert(0, f"DEFAULT_PROVIDER is '{provider}' but {provider.upper()}_API_KEY is not set, generation will fail")

    return warnings


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    key_warnings = _check_api_keys()
    if key_warnings:
        logger.warning("=" * 60)
        logger.warning("API KEY WARNINGS:")
        for w in key_warnings:
            logger.warning("  • %s", w)
        logger.warning("Add the missing keys to .env")
        logger.warning("=" * 60)
    else:
        logger.info("API keys: all providers configured")

    yield

    # Flag running sessions so their worker threads stop at the next checkpoint.
    for cancel_event in generation_state["cancel_events"].values():
        cancel_event.set()


app = FastAPI(title="Narrative Council", version="1.0.0", lifespan=lifespan)

# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

generation_state: dict[str, Any] = {
    "tasks": {},          # session_id -> asyncio.Task
    "cancel_events": {},  # session_id -> threading.Event
}

_runner: NarrativeSessionRunner | None = None


def _get_runner() -> NarrativeSessionRunner:
    global _runner
    if _runner is None:
        _runner = NarrativeSessionRunner()
    return _runner


def _error_response(exc: NarrativeEngineError) -> JSONResponse:
    if isinstance(exc, NotFound):
        status = 404
    elif isinstance(exc, SessionBusy):
        status = 409
    elif isinstance(exc, ValidationFailed):
        status = 400
    elif isinstance(exc, AnalysisFailed):
        status = 502
    else:
        status = 500
    return JSONResponse({"error": str(exc), "error_type": exc.kind}, status_code=status)


def _not_found(what: str) -> JSONResponse:
    return JSONResponse({"error": f"{what} not found"}, status_code=404)


async def _run_session_in_background(session_id: str):
    """Drive the session on a worker thread; the session record carries the outcome."""
    cancel_event = threading.Event()
    generation_state["cancel_events"][session_id] = cancel_event
    try:
        await asyncio.to_thread(_get_runner().run_session, session_id, cancel_event.is_set)
    except PersistenceFailed as exc:
        logger.error("Session %s could not be persisted: %s", session_id, exc)
    except NarrativeEngineError as exc:
        logger.error("Session %s did not run: %s", session_id, exc)
    finally:
        generation_state["cancel_events"].pop(session_id, None)
        generation_state["tasks"].pop(session_id, None)


# ---------------------------------------------------------------------------
# Content API
# ---------------------------------------------------------------------------

@app.post("/api/content")
async def api_create_content(body: ContentCreate):
    """Create a content item."""
    try:
        item = create_content(body)
    except NarrativeEngineError as exc:
        return _error_response(exc)
    return item.model_dump()


@app.get("/api/content")
async def api_list_content(limit: int = 50, status: Optional[str] = None):
    """List content items, newest first."""
    return [item.model_dump() for item in list_contents(limit=limit, status=status)]


@app.get("/api/content/{content_id}")
async def api_get_content(content_id: str):
    """Get a content item with its generation sessions."""
    item = get_content(content_id)
    if not item:
        return _not_found(f"Content {content_id}")
    data = item.model_dump()
    data["sessions"] = [s.model_dump() for s in list_sessions(content_id)]
    return data


@app.patch("/api/content/{content_id}")
async def api_update_content(content_id: str, body: ContentUpdate):
    """Update content fields. Story changes clear the cached analysis."""
    item = update_content(content_id, body)
    if not item:
        return _not_found(f"Content {content_id}")
    return item.model_dump()


@app.delete("/api/content/{content_id}")
async def api_delete_content(content_id: str):
    """Delete a content item with all its sessions and candidates."""
    if not delete_content(content_id):
        return _not_found(f"Content {content_id}")
    return {"ok": True, "deleted": content_id}


class StakeholderResponsesBody(BaseModel):
    responses: list[StakeholderResponse] = Field(default_factory=list)


@app.post("/api/content/{content_id}/stakeholder-responses")
async def api_save_stakeholder_responses(content_id: str, body: StakeholderResponsesBody):
    """Replace the stakeholder Q/A used by part 2 of generation."""
    item = save_stakeholder_responses(content_id, body.responses)
    if not item:
        return _not_found(f"Content {content_id}")
    return {"ok": True, "responses": [r.model_dump() for r in item.stakeholder_responses]}


@app.get("/api/content/{content_id}/stakeholder-responses")
async def api_get_stakeholder_responses(content_id: str):
    item = get_content(content_id)
    if not item:
        return _not_found(f"Content {content_id}")
    return {"responses": [r.model_dump() for r in item.stakeholder_responses]}


@app.post("/api/content/{content_id}/analyze")
async def api_analyze_content(content_id: str):
    """(Re)run the story analysis and cache it on the content item."""
    item = get_content(content_id)
    if not item:
        return _not_found(f"Content {content_id}")
    try:
        analysis = await asyncio.to_thread(ContentAnalyzer().analyze, item.to_info())
        set_content_analysis(content_id, analysis)
    except NarrativeEngineError as exc:
        return _error_response(exc)
    return analysis.model_dump()


@app.post("/api/content/{content_id}/conflict")
async def api_extract_conflict(content_id: str):
    """One-sentence primary conflict, without running the full analysis."""
    item = get_content(content_id)
    if not item:
        return _not_found(f"Content {content_id}")
    try:
        statement = await asyncio.to_thread(extract_primary_conflict, item.to_info())
    except NarrativeEngineError as exc:
        return _error_response(exc)
    return {"content_id": content_id, "primary_conflict": statement}


class EvaluateRequest(BaseModel):
    narratives: list[str] = Field(..., min_length=1)


@app.post("/api/content/{content_id}/evaluate")
async def api_evaluate_narratives(content_id: str, body: EvaluateRequest):
    """Run hand-written narratives past the audience council. Nothing is stored."""
    item = get_content(content_id)
    if not item:
        return _not_found(f"Content {content_id}")
    results = await asyncio.to_thread(AudienceCouncil().batch_evaluate, body.narratives, item.to_info())
    return [
        {
            "narrative": narrative,
            "stats": score_stats(evaluations).model_dump(),
            "evaluations": {pid: e.model_dump() for pid, e in evaluations.items()},
        }
        for narrative, evaluations in zip(body.narratives, results)
    ]


# ---------------------------------------------------------------------------
# Generation API
# ---------------------------------------------------------------------------

class GenerateRequest(BaseModel):
    round_number: int = 1
    stakeholder_responses: list[StakeholderResponse] = Field(default_factory=list)
    stakeholder_feedback: Optional[str] = None


@app.post("/api/content/{content_id}/generate")
async def api_generate(content_id: str, body: GenerateRequest):
    """Start a generation session. Returns immediately; poll the status route."""
    try:
        session = _get_runner().start_generation(
            content_id,
            round_number=body.round_number,
            stakeholder_responses=body.stakeholder_responses or None,
            stakeholder_feedback=body.stakeholder_feedback,
        )
    except NarrativeEngineError as exc:
        return _error_response(exc)

    task = asyncio.create_task(_run_session_in_background(session.id))
    generation_state["tasks"][session.id] = task
    return {
        "status": "started",
        "session_id": session.id,
        "round_number": session.round_number,
        "candidate_count": config.CANDIDATE_COUNT,
    }


@app.get("/api/content/{content_id}/sessions")
async def api_list_sessions(content_id: str, limit: int = 50):
    if not get_content(content_id):
        return _not_found(f"Content {content_id}")
    return [s.model_dump() for s in list_sessions(content_id, limit=limit)]


@app.get("/api/sessions/{session_id}")
async def api_get_session(session_id: str):
    """Session detail including the council transcripts."""
    session = get_session(session_id)
    if not session:
        return _not_found(f"Session {session_id}")
    return session.model_dump()


@app.get("/api/sessions/{session_id}/status")
async def api_session_status(session_id: str):
    """Lightweight poll target."""
    session = get_session(session_id)
    if not session:
        return _not_found(f"Session {session_id}")
    return {
        "session_id": session.id,
        "status": session.status,
        "progress": session.progress,
        "phase": session.phase,
        "done": session.is_terminal,
        "running": session.id in generation_state["tasks"],
        "error": session.metadata.get("error"),
    }


@app.get("/api/sessions/{session_id}/candidates")
async def api_session_candidates(session_id: str):
    """Candidates of a session, best rank first."""
    session = get_session(session_id)
    if not session:
        return _not_found(f"Session {session_id}")
    return [c.model_dump() for c in list_candidates(session_id)]


@app.get("/api/candidates/{candidate_id}")
async def api_get_candidate(candidate_id: str):
    """Full candidate record, every persona evaluation included."""
    candidate = get_candidate(candidate_id)
    if not candidate:
        return _not_found(f"Candidate {candidate_id}")
    return candidate.model_dump()


@app.post("/api/sessions/{session_id}/cancel")
async def api_cancel_session(session_id: str):
    """Ask a running session to stop at its next checkpoint."""
    cancel_event = generation_state["cancel_events"].get(session_id)
    if cancel_event is None:
        return JSONResponse({"error": f"Session {session_id} is not running"}, status_code=409)
    cancel_event.set()
    logger.warning("Cancel requested for session %s", session_id)
    return {"status": "cancelling", "session_id": session_id}


class AlignmentRequest(BaseModel):
    narrative: str = Field(..., min_length=1)
    primary_conflict: Optional[str] = None
    content_id: Optional[str] = None


@app.post("/api/alignment")
async def api_conflict_alignment(body: AlignmentRequest):
    """Score how well a narrative sits on the primary conflict.

    Pass the conflict directly, or a content_id whose cached analysis holds it.
    """
    conflict = body.primary_conflict
    if not conflict and body.content_id:
        item = get_content(body.content_id)
        if not item:
            return _not_found(f"Content {body.content_id}")
        if item.analysis is None:
            return JSONResponse({"error": "Content has not been analysed yet"}, status_code=400)
        conflict = item.analysis.primary_conflict.statement
    if not conflict:
        return JSONResponse({"error": "primary_conflict or content_id is required"}, status_code=400)
    try:
        result = await asyncio.to_thread(validate_conflict_alignment, body.narrative, conflict)
    except NarrativeEngineError as exc:
        return _error_response(exc)
    return result.model_dump()


# ---------------------------------------------------------------------------
# Reference + health
# ---------------------------------------------------------------------------

@app.get("/api/personas")
async def api_personas():
    """Both councils, in evaluation order."""
    registry = get_persona_registry()
    return {
        "production": [
            {"role_id": p.role_id, "role_name": p.role_name}
            for p in registry.production
        ],
        "audience": [
            {
                "role_id": p.role_id,
                "role_name": p.role_name,
                "profile": p.profile.model_dump() if p.profile else None,
            }
            for p in registry.audience
        ],
    }


@app.get("/api/health")
async def api_health():
    """Check system health — API keys, config, etc."""
    providers = {
        "openai": bool(config.OPENAI_API_KEY),
        "anthropic": bool(config.ANTHROPIC_API_KEY),
        "google": bool(config.GOOGLE_API_KEY),
    }
    default_ok = providers.get(config.DEFAULT_PROVIDER, False)
    warnings = _check_api_keys()

    return {
        "ok": default_ok,
        "default_provider": config.DEFAULT_PROVIDER,
        "default_model": config.DEFAULT_MODEL,
        "providers": providers,
        "any_provider_configured": any(providers.values()),
        "running_sessions": len(generation_state["tasks"]),
        "warnings": warnings,
    }


@app.get("/api/usage")
async def api_usage():
    """Token usage and estimated cost since the server started (or last reset)."""
    return get_usage_summary()


@app.delete("/api/usage")
async def api_reset_usage():
    reset_usage()
    return {"ok": True}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn
    print("\n  Narrative Council API")
    print("  http://localhost:8000/docs\n")
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")

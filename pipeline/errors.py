"""Error taxonomy for the narrative pipeline.

Only PersonaEvaluationFailed is recovered inside the pipeline (the audience
council substitutes a fallback evaluation). Everything else is fatal to the
session that raised it and ends up in the session's error metadata.
"""

from __future__ import annotations


class NarrativeEngineError(Exception):
    """Base class for pipeline errors. `kind` is what lands in session metadata."""

    kind = "narrative_engine_error"

    def __init__(self, message: str, cause: Exception | None = None):
        self.cause = cause
        super().__init__(message)


class AnalysisFailed(NarrativeEngineError):
    kind = "analysis_failed"


class BrainstormFailed(NarrativeEngineError):
    kind = "brainstorm_failed"


class PersonaEvaluationFailed(NarrativeEngineError):
    kind = "persona_evaluation_failed"

    def __init__(self, message: str, persona_id: str = "", cause: Exception | None = None):
        self.persona_id = persona_id
        super().__init__(message, cause=cause)


class PersistenceFailed(NarrativeEngineError):
    kind = "persistence_failed"


class NotFound(NarrativeEngineError):
    kind = "not_found"


class ValidationFailed(NarrativeEngineError):
    kind = "validation_failed"


class SessionBusy(ValidationFailed):
    """Raised when a second runner tries to drive a session that is already running."""

    kind = "session_busy"


class GenerationCancelled(NarrativeEngineError):
    kind = "generation_cancelled"

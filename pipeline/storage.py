"""SQLite storage for content items, generation sessions and candidates.

Content, sessions and ranked candidates live in one local database so past
sessions can be browsed, round 2 can read round 1's winners, and a crashed
server never loses finished work.

Uses Python's built-in sqlite3 — zero dependencies.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional, Sequence

import config
from pipeline.errors import PersistenceFailed
from schemas.content import ContentCreate, ContentItem, ContentUpdate, StakeholderResponse
from schemas.session import CouncilConversation, GenerationSession, NarrativeCandidate
from schemas.story_architect import ContentAnalysis

logger = logging.getLogger(__name__)

DB_PATH = config.DB_PATH

# Thread-local connections (sqlite3 objects can't be shared across threads)
_local = threading.local()

_SESSION_FIELDS = {
    "status",
    "progress",
    "phase",
    "stakeholder_feedback",
    "council_conversation",
    "metadata",
    "started_at",
    "completed_at",
}


def _get_conn() -> sqlite3.Connection:
    """Get a thread-local SQLite connection."""
    if not hasattr(_local, "conn") or _local.conn is None:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        _local.conn = sqlite3.connect(str(DB_PATH), check_same_thread=False)
        _local.conn.row_factory = sqlite3.Row
        _local.conn.execute("PRAGMA journal_mode=WAL")
        _local.conn.execute("PRAGMA foreign_keys=ON")
    return _local.conn


def reset_storage_connection_for_tests():
    """Drop this thread's connection so the next call reopens DB_PATH."""
    conn = getattr(_local, "conn", None)
    if conn is not None:
        conn.close()
    _local.conn = None


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _new_id() -> str:
    return uuid.uuid4().hex


@contextmanager
def _transaction() -> Iterator[sqlite3.Connection]:
    """Commit on success; roll back and raise PersistenceFailed on any sqlite error."""
    try:
        conn = _get_conn()
    except sqlite3.Error as exc:
        raise PersistenceFailed(f"Could not open database {DB_PATH}: {exc}", cause=exc) from exc
    try:
        yield conn
        conn.commit()
    except sqlite3.Error as exc:
        conn.rollback()
        logger.error("Database write failed: %s", exc)
        raise PersistenceFailed(f"Database write failed: {exc}", cause=exc) from exc
    except Exception:
        conn.rollback()
        raise


def _query(sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
    try:
        return _get_conn().execute(sql, params).fetchall()
    except sqlite3.Error as exc:
        raise PersistenceFailed(f"Database read failed: {exc}", cause=exc) from exc


def init_db():
    """Create tables if they don't exist. Call once at startup."""
    with _transaction() as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS contents (
                id                  TEXT    PRIMARY KEY,
                title               TEXT    NOT NULL,
                genre               TEXT    NOT NULL DEFAULT '',
                runtime             INTEGER,
                target_audience     TEXT    NOT NULL DEFAULT '',
                summary             TEXT    NOT NULL DEFAULT '',
                script              TEXT    NOT NULL DEFAULT '',
                themes              TEXT    NOT NULL DEFAULT '',
                tone                TEXT    NOT NULL DEFAULT '',
                status              TEXT    NOT NULL DEFAULT 'draft',
                analysis_json       TEXT,
                stakeholder_json    TEXT    NOT NULL DEFAULT '[]',
                created_at          TEXT    NOT NULL,
                updated_at          TEXT    NOT NULL
            );

            CREATE TABLE IF NOT EXISTS sessions (
                id                      TEXT    PRIMARY KEY,
                content_id              TEXT    NOT NULL REFERENCES contents(id) ON DELETE CASCADE,
                round_number            INTEGER NOT NULL DEFAULT 1,
                parent_session_id       TEXT,
                status                  TEXT    NOT NULL DEFAULT 'pending',
                progress                INTEGER NOT NULL DEFAULT 0,
                phase                   TEXT    NOT NULL DEFAULT 'queued',
                stakeholder_feedback    TEXT    NOT NULL DEFAULT '',
                conversation_json       TEXT    NOT NULL DEFAULT '{}',
                metadata_json           TEXT    NOT NULL DEFAULT '{}',
                started_at              TEXT,
                completed_at            TEXT,
                created_at              TEXT    NOT NULL
            );

            CREATE TABLE IF NOT EXISTS candidates (
                id              TEXT    PRIMARY KEY,
                session_id      TEXT    NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
                content_id      TEXT    NOT NULL,
                rank            INTEGER NOT NULL,
                overall_score   REAL    NOT NULL,
                payload_json    TEXT    NOT NULL,
                created_at      TEXT    NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_sessions_content
                ON sessions(content_id);
            CREATE INDEX IF NOT EXISTS idx_candidates_session
                ON candidates(session_id);
        """)
    logger.info("SQLite database initialized: %s", DB_PATH)


# ---------------------------------------------------------------------------
# Contents
# ---------------------------------------------------------------------------

def _row_to_content(row: sqlite3.Row) -> ContentItem:
    analysis = None
    if row["analysis_json"]:
        analysis = ContentAnalysis.model_validate_json(row["analysis_json"])
    return ContentItem(
        id=row["id"],
        title=row["title"],
        genre=row["genre"],
        runtime=row["runtime"],
        target_audience=row["target_audience"],
        summary=row["summary"],
        script=row["script"],
        themes=row["themes"],
        tone=row["tone"],
        status=row["status"],
        analysis=analysis,
        stakeholder_responses=json.loads(row["stakeholder_json"] or "[]"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def create_content(data: ContentCreate) -> ContentItem:
    content_id = _new_id()
    now = _now()
    with _transaction() as conn:
        conn.execute(
            """
            INSERT INTO contents (id, title, genre, runtime, target_audience, summary, script,
                                  themes, tone, stakeholder_json, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                content_id,
                data.title.strip(),
                data.genre,
                data.runtime,
                data.target_audience,
                data.summary,
                data.script,
                data.themes,
                data.tone,
                json.dumps([r.model_dump() for r in data.stakeholder_responses], ensure_ascii=False),
                now,
                now,
            ),
        )
    logger.info("Created content %s (%s)", content_id, data.title)
    return get_content(content_id)


def get_content(content_id: str) -> ContentItem | None:
    rows = _query("SELECT * FROM contents WHERE id=?", (content_id,))
    return _row_to_content(rows[0]) if rows else None


def list_contents(limit: int = 50, status: str | None = None) -> list[ContentItem]:
    """Newest first; archived items only when asked for explicitly."""
    if status:
        rows = _query(
            "SELECT * FROM contents WHERE status=? ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (status, limit),
        )
    else:
        rows = _query(
            "SELECT * FROM contents WHERE status != 'archived' ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (limit,),
        )
    return [_row_to_content(r) for r in rows]


def update_content(content_id: str, changes: ContentUpdate) -> ContentItem | None:
    fields = changes.model_dump(exclude_unset=True)
    if not fields:
        return get_content(content_id)
    # Story edits invalidate the cached analysis.
    story_changed = bool({"summary", "script", "genre"} & fields.keys())
    assignments = ", ".join(f"{name}=?" for name in fields)
    params: list[Any] = list(fields.values())
    if story_changed:
        assignments += ", analysis_json=NULL"
        if "status" not in fields:
            assignments += ", status='draft'"
    with _transaction() as conn:
        cur = conn.execute(
            f"UPDATE contents SET {assignments}, updated_at=? WHERE id=?",
            (*params, _now(), content_id),
        )
    if cur.rowcount == 0:
        return None
    return get_content(content_id)


def delete_content(content_id: str) -> bool:
    """Delete a content item and, by cascade, its sessions and candidates."""
    with _transaction() as conn:
        cur = conn.execute("DELETE FROM contents WHERE id=?", (content_id,))
    if cur.rowcount:
        logger.info("Deleted content %s", content_id)
    return cur.rowcount > 0


def save_stakeholder_responses(
    content_id: str,
    responses: Sequence[StakeholderResponse],
) -> ContentItem | None:
    payload = json.dumps([r.model_dump() for r in responses], ensure_ascii=False)
    with _transaction() as conn:
        cur = conn.execute(
            "UPDATE contents SET stakeholder_json=?, updated_at=? WHERE id=?",
            (payload, _now(), content_id),
        )
    if cur.rowcount == 0:
        return None
    return get_content(content_id)


def set_content_analysis(content_id: str, analysis: ContentAnalysis):
    with _transaction() as conn:
        conn.execute(
            "UPDATE contents SET analysis_json=?, status='analyzed', updated_at=? WHERE id=?",
            (analysis.model_dump_json(), _now(), content_id),
        )


def set_content_analysis_if_missing(content_id: str, analysis: ContentAnalysis) -> ContentAnalysis:
    """Cache `analysis` unless another run got there first; return whichever is stored."""
    with _transaction() as conn:
        cur = conn.execute(
            """
            UPDATE contents SET analysis_json=?, status='analyzed', updated_at=?
            WHERE id=? AND analysis_json IS NULL
            """,
            (analysis.model_dump_json(), _now(), content_id),
        )
    if cur.rowcount:
        return analysis
    stored = get_content(content_id)
    if stored is not None and stored.analysis is not None:
        logger.info("Content %s already has a cached analysis; keeping it", content_id)
        return stored.analysis
    return analysis


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

def _row_to_session(row: sqlite3.Row) -> GenerationSession:
    return GenerationSession(
        id=row["id"],
        content_id=row["content_id"],
        round_number=row["round_number"],
        parent_session_id=row["parent_session_id"],
        status=row["status"],
        progress=row["progress"],
        phase=row["phase"],
        stakeholder_feedback=row["stakeholder_feedback"],
        council_conversation=CouncilConversation.model_validate_json(row["conversation_json"] or "{}"),
        metadata=json.loads(row["metadata_json"] or "{}"),
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        created_at=row["created_at"],
    )


def create_session(
    content_id: str,
    round_number: int = 1,
    parent_session_id: str | None = None,
    stakeholder_feedback: str = "",
) -> GenerationSession:
    session_id = _new_id()
    with _transaction() as conn:
        conn.execute(
            """
            INSERT INTO sessions (id, content_id, round_number, parent_session_id,
                                  stakeholder_feedback, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (session_id, content_id, round_number, parent_session_id, stakeholder_feedback or "", _now()),
        )
    logger.info("Created session %s (content=%s, round=%d)", session_id, content_id, round_number)
    return get_session(session_id)


def _session_columns(fields: dict[str, Any]) -> tuple[list[str], list[Any]]:
    unknown = set(fields) - _SESSION_FIELDS
    if unknown:
        raise ValueError(f"Unknown session fields: {sorted(unknown)}")
    columns, params = [], []
    for name, value in fields.items():
        if name == "council_conversation":
            columns.append("conversation_json=?")
            params.append(CouncilConversation.model_validate(value).model_dump_json())
        elif name == "metadata":
            columns.append("metadata_json=?")
            params.append(json.dumps(value, default=str, ensure_ascii=False))
        else:
            columns.append(f"{name}=?")
            params.append(value)
    return columns, params


def update_session(session_id: str, **fields: Any) -> GenerationSession:
    columns, params = _session_columns(fields)
    if columns:
        with _transaction() as conn:
            conn.execute(
                f"UPDATE sessions SET {', '.join(columns)} WHERE id=?",
                (*params, session_id),
            )
    session = get_session(session_id)
    if session is None:
        raise PersistenceFailed(f"Session {session_id} disappeared during update")
    return session


def get_session(session_id: str) -> GenerationSession | None:
    rows = _query("SELECT * FROM sessions WHERE id=?", (session_id,))
    return _row_to_session(rows[0]) if rows else None


def list_sessions(content_id: str, limit: int = 50) -> list[GenerationSession]:
    rows = _query(
        "SELECT * FROM sessions WHERE content_id=? ORDER BY created_at DESC, rowid DESC LIMIT ?",
        (content_id, limit),
    )
    return [_row_to_session(r) for r in rows]


def latest_completed_session(content_id: str, round_number: int = 1) -> GenerationSession | None:
    rows = _query(
        """
        SELECT * FROM sessions
        WHERE content_id=? AND round_number=? AND status='completed'
        ORDER BY completed_at DESC, rowid DESC
        LIMIT 1
        """,
        (content_id, round_number),
    )
    return _row_to_session(rows[0]) if rows else None


def complete_session(
    session_id: str,
    candidates: Sequence[NarrativeCandidate],
    council_conversation: CouncilConversation,
    metadata: dict[str, Any],
) -> GenerationSession:
    """Write every candidate and mark the session completed, all or nothing."""
    now = _now()
    conv_columns, conv_params = _session_columns({
        "council_conversation": council_conversation,
        "metadata": metadata,
    })
    with _transaction() as conn:
        for candidate in candidates:
            stored = candidate.model_copy(update={
                "id": candidate.id or _new_id(),
                "session_id": session_id,
                "created_at": candidate.created_at or now,
            })
            conn.execute(
                """
                INSERT INTO candidates (id, session_id, content_id, rank, overall_score, payload_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    stored.id,
                    session_id,
                    stored.content_id,
                    stored.rank,
                    stored.overall_score,
                    stored.model_dump_json(),
                    stored.created_at,
                ),
            )
        conn.execute(
            f"""
            UPDATE sessions
            SET {', '.join(conv_columns)}, status='completed', progress=100,
                phase='completed', completed_at=?
            WHERE id=?
            """,
            (*conv_params, now, session_id),
        )
    logger.info("Session %s completed with %d candidates", session_id, len(candidates))
    return get_session(session_id)


# ---------------------------------------------------------------------------
# Candidates
# ---------------------------------------------------------------------------

def list_candidates(session_id: str) -> list[NarrativeCandidate]:
    """All candidates of a session, best rank first."""
    rows = _query(
        "SELECT payload_json FROM candidates WHERE session_id=? ORDER BY rank ASC",
        (session_id,),
    )
    return [NarrativeCandidate.model_validate_json(r["payload_json"]) for r in rows]


def top_candidates(session_id: str, limit: int) -> list[NarrativeCandidate]:
    rows = _query(
        """
        SELECT payload_json FROM candidates
        WHERE session_id=?
        ORDER BY overall_score DESC, rank ASC
        LIMIT ?
        """,
        (session_id, limit),
    )
    return [NarrativeCandidate.model_validate_json(r["payload_json"]) for r in rows]


def count_candidates(session_id: str) -> int:
    rows = _query("SELECT COUNT(*) AS n FROM candidates WHERE session_id=?", (session_id,))
    return int(rows[0]["n"]) if rows else 0


def get_candidate(candidate_id: str) -> Optional[NarrativeCandidate]:
    rows = _query("SELECT payload_json FROM candidates WHERE id=?", (candidate_id,))
    return NarrativeCandidate.model_validate_json(rows[0]["payload_json"]) if rows else None

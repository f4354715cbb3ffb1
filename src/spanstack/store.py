# Copyright 2026 Spanstack Contributors
# SPDX-License-Identifier: Apache-2.0

"""SQLite storage for trace headers and spans.

Two tables: ``traces`` (one header row per trace id) and ``spans`` (keyed by
``(trace_id, span_id)``). Every write is an upsert, so re-submitting a
header or a span overwrites the existing row instead of failing or
duplicating it.

Thread safety: each method opens its own connection; writes are serialized
by a lock. A failed schema setup is only logged; SQLite errors from reads
and writes propagate as ``sqlite3.Error``.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any

from spanstack.config import get_settings

logger = logging.getLogger("spanstack")

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS traces (
        trace_id TEXT PRIMARY KEY,
        view TEXT,
        exported_at TEXT NOT NULL,
        total_ms INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS spans (
        trace_id TEXT NOT NULL,
        span_id TEXT NOT NULL,
        parent_span_id TEXT,
        sequence INTEGER NOT NULL,
        name TEXT NOT NULL,
        started_at_ms INTEGER NOT NULL,
        ended_at_ms INTEGER NOT NULL,
        duration_ms INTEGER NOT NULL,
        meta_json TEXT,
        PRIMARY KEY (trace_id, span_id)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_spans_trace_seq
    ON spans (trace_id, sequence)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_spans_parent
    ON spans (trace_id, parent_span_id)
    """,
)

_SPAN_COLUMNS = (
    "trace_id",
    "span_id",
    "parent_span_id",
    "sequence",
    "name",
    "started_at_ms",
    "ended_at_ms",
    "duration_ms",
    "meta_json",
)


class SpanStore:
    """SQLite-backed keyed storage for trace headers and spans.

    Args:
        db_path: Path to the SQLite database file. Parent directories are
                 created on demand.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._lock = threading.Lock()
        self._init_db()

    @property
    def db_path(self) -> str:
        return self._db_path

    def _get_conn(self) -> sqlite3.Connection:
        """Create a new SQLite connection (one per call for thread safety)."""
        conn = sqlite3.connect(self._db_path, timeout=5.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def _init_db(self) -> None:
        """Create the tables. An unusable path is logged; later writes then fail."""
        try:
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            conn = self._get_conn()
            try:
                for statement in _SCHEMA:
                    conn.execute(statement)
                conn.commit()
            finally:
                conn.close()
        except Exception:
            logger.warning("Failed to initialize span store at %s", self._db_path, exc_info=True)
            return
        logger.debug("Span store initialized at %s", self._db_path)

    def _write(self, sql: str, params: tuple[Any, ...]) -> int:
        with self._lock:
            conn = self._get_conn()
            try:
                cursor = conn.execute(sql, params)
                conn.commit()
                return cursor.rowcount
            finally:
                conn.close()

    # ── Headers ───────────────────────────────────────────────────────

    def upsert_header(self, trace_id: str, view: str | None, exported_at: str) -> None:
        """Insert a header row, or overwrite ``view``/``exported_at`` if it exists.

        ``total_ms`` of an existing row is left untouched.
        """
        self._write(
            """
            INSERT INTO traces (trace_id, view, exported_at)
            VALUES (?, ?, ?)
            ON CONFLICT (trace_id) DO UPDATE SET
                view = excluded.view,
                exported_at = excluded.exported_at
            """,
            (trace_id, view, exported_at),
        )

    def set_total_ms(self, trace_id: str, total_ms: int) -> bool:
        """Stamp ``total_ms`` on a header. Returns False if the trace is unknown."""
        count = self._write(
            "UPDATE traces SET total_ms = ? WHERE trace_id = ?",
            (total_ms, trace_id),
        )
        return count > 0

    def get_header(self, trace_id: str) -> dict[str, Any] | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT trace_id, view, exported_at, total_ms FROM traces WHERE trace_id = ?",
                (trace_id,),
            ).fetchone()
        finally:
            conn.close()
        return dict(row) if row is not None else None

    # ── Spans ─────────────────────────────────────────────────────────

    def upsert_span(self, row: dict[str, Any]) -> None:
        """Insert a span row, overwriting every field if ``(trace_id, span_id)`` exists."""
        params = tuple(row.get(col) for col in _SPAN_COLUMNS)
        self._write(
            f"""
            INSERT INTO spans ({", ".join(_SPAN_COLUMNS)})
            VALUES ({", ".join("?" for _ in _SPAN_COLUMNS)})
            ON CONFLICT (trace_id, span_id) DO UPDATE SET
                parent_span_id = excluded.parent_span_id,
                sequence = excluded.sequence,
                name = excluded.name,
                started_at_ms = excluded.started_at_ms,
                ended_at_ms = excluded.ended_at_ms,
                duration_ms = excluded.duration_ms,
                meta_json = excluded.meta_json
            """,  # nosec B608
            params,
        )

    def list_spans(self, trace_id: str) -> list[dict[str, Any]]:
        """Return every span of a trace ordered by ``sequence`` ascending."""
        conn = self._get_conn()
        try:
            rows = conn.execute(
                f"SELECT {', '.join(_SPAN_COLUMNS)} FROM spans "  # nosec B608
                "WHERE trace_id = ? ORDER BY sequence ASC",
                (trace_id,),
            ).fetchall()
        finally:
            conn.close()
        return [dict(row) for row in rows]

    def count_spans(self, trace_id: str) -> int:
        conn = self._get_conn()
        try:
            return conn.execute(
                "SELECT COUNT(*) FROM spans WHERE trace_id = ?", (trace_id,)
            ).fetchone()[0]
        finally:
            conn.close()

    def count_headers(self) -> int:
        conn = self._get_conn()
        try:
            return conn.execute("SELECT COUNT(*) FROM traces").fetchone()[0]
        finally:
            conn.close()

    def __repr__(self) -> str:
        return f"SpanStore(db={self._db_path})"


# ── Module-level singleton ────────────────────────────────────────────

_store: SpanStore | None = None


def get_store() -> SpanStore:
    """Return the global SpanStore singleton, opened at ``settings.db_path``."""
    global _store
    if _store is None:
        _store = SpanStore(get_settings().db_path)
    return _store


def reset_store() -> None:
    """Reset the global store singleton. Primarily for testing."""
    global _store
    _store = None

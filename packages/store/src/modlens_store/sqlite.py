"""SQLite stores: one local database file for comments, decisions and logs.

Why SQLite:
- Batteries included: ships with Python, no extra dependencies.
- A UNIQUE constraint on decisions.comment_id turns the pipeline's
  "decision already exists" check into a hard guarantee: two racing
  writers can both call save(), only one row lands.
- The scheduler thread and the CLI share connections, so every store
  opens with check_same_thread=False and serializes access with a lock.

Schema:
  comments:  the held/approved/spam/trash lifecycle, ordered by created_at
  documents: title and type of the page each comment belongs to
  decisions: one row per comment, overridden-* columns mutable
  logs:      audit trail with level and optional comment id
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading

from modlens_store.base import BaseAuditLog, BaseCommentStore, BaseDecisionStore
from modlens_store.models import Comment, Decision, Document, LogEntry, utcnow

logger = logging.getLogger(__name__)

_DECISIONS_SCHEMA = """
CREATE TABLE IF NOT EXISTS decisions (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    comment_id      INTEGER NOT NULL UNIQUE,
    decision        TEXT NOT NULL,
    suggested       TEXT,
    confidence      REAL NOT NULL,
    reasoning       TEXT NOT NULL DEFAULT '',
    model_used      TEXT NOT NULL DEFAULT '',
    processing_time REAL NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL,
    overridden      INTEGER NOT NULL DEFAULT 0,
    overridden_by   TEXT,
    overridden_at   TEXT
);
CREATE INDEX IF NOT EXISTS idx_decisions_decision ON decisions (decision);
CREATE INDEX IF NOT EXISTS idx_decisions_created  ON decisions (created_at);
"""

_COMMENTS_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    id        INTEGER PRIMARY KEY,
    title     TEXT NOT NULL DEFAULT '',
    doc_type  TEXT NOT NULL DEFAULT 'post'
);
CREATE TABLE IF NOT EXISTS comments (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id   INTEGER NOT NULL,
    author        TEXT NOT NULL DEFAULT '',
    author_email  TEXT NOT NULL DEFAULT '',
    author_url    TEXT NOT NULL DEFAULT '',
    content       TEXT NOT NULL DEFAULT '',
    status        TEXT NOT NULL,
    created_at    TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_comments_status ON comments (status, created_at);
"""

_LOGS_SCHEMA = """
CREATE TABLE IF NOT EXISTS logs (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp   TEXT NOT NULL,
    level       TEXT NOT NULL,
    message     TEXT NOT NULL,
    context     TEXT,
    comment_id  INTEGER
);
CREATE INDEX IF NOT EXISTS idx_logs_level   ON logs (level, timestamp);
CREATE INDEX IF NOT EXISTS idx_logs_comment ON logs (comment_id);
"""


def _connect(db_path: str, schema: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.executescript(schema)
    conn.commit()
    return conn


def _date_filters(decision: str, date_from: str, date_to: str) -> tuple[str, list]:
    conditions: list[str] = []
    values: list = []
    if decision != "all":
        conditions.append("decision = ?")
        values.append(decision)
    if date_from:
        conditions.append("substr(created_at, 1, 10) >= ?")
        values.append(date_from)
    if date_to:
        conditions.append("substr(created_at, 1, 10) <= ?")
        values.append(date_to)
    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    return where, values


class SQLiteDecisionStore(BaseDecisionStore):
    """Decision rows in a local SQLite file (default `.modlens.db`)."""

    def __init__(self, db_path: str = ".modlens.db"):
        self._conn = _connect(db_path, _DECISIONS_SCHEMA)
        self._lock = threading.Lock()

    def save(self, decision: Decision) -> int | None:
        with self._lock:
            cursor = self._conn.execute(
                """
                INSERT OR IGNORE INTO decisions
                  (comment_id, decision, suggested, confidence, reasoning,
                   model_used, processing_time, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    decision.comment_id,
                    decision.decision,
                    decision.suggested,
                    decision.confidence,
                    decision.reasoning,
                    decision.model_used,
                    decision.processing_time,
                    decision.created_at,
                ),
            )
            self._conn.commit()
            if cursor.rowcount == 0:
                logger.debug("Decision for comment %d already exists; insert ignored", decision.comment_id)
                return None
            return cursor.lastrowid

    def get(self, decision_id: int) -> Decision | None:
        with self._lock:
            row = self._conn.execute("SELECT * FROM decisions WHERE id=?", (decision_id,)).fetchone()
        return self._row_to_decision(row) if row else None

    def get_for_comment(self, comment_id: int) -> Decision | None:
        with self._lock:
            row = self._conn.execute("SELECT * FROM decisions WHERE comment_id=? LIMIT 1", (comment_id,)).fetchone()
        return self._row_to_decision(row) if row else None

    def list_decisions(
        self,
        decision: str = "all",
        date_from: str = "",
        date_to: str = "",
        limit: int = 50,
        offset: int = 0,
    ) -> list[Decision]:
        where, values = _date_filters(decision, date_from, date_to)
        with self._lock:
            rows = self._conn.execute(
                f"SELECT * FROM decisions {where} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                (*values, limit, offset),
            ).fetchall()
        return [self._row_to_decision(r) for r in rows]

    def count_decisions(self, decision: str = "all", date_from: str = "", date_to: str = "") -> int:
        where, values = _date_filters(decision, date_from, date_to)
        with self._lock:
            row = self._conn.execute(f"SELECT COUNT(*) FROM decisions {where}", values).fetchone()
        return int(row[0])

    def stats(self) -> dict[str, dict]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT decision,
                       COUNT(*)             AS count,
                       AVG(confidence)      AS avg_confidence,
                       AVG(processing_time) AS avg_processing_time
                FROM decisions
                GROUP BY decision
                """
            ).fetchall()
        return {
            r["decision"]: {
                "count": r["count"],
                "avg_confidence": r["avg_confidence"] or 0.0,
                "avg_processing_time": r["avg_processing_time"] or 0.0,
            }
            for r in rows
        }

    def mark_overridden(self, decision_id: int, actor: str | None, at: str | None = None) -> bool:
        with self._lock:
            cursor = self._conn.execute(
                "UPDATE decisions SET overridden=1, overridden_by=?, overridden_at=? WHERE id=?",
                (actor, at or utcnow(), decision_id),
            )
            self._conn.commit()
        return cursor.rowcount > 0

    def clear(self) -> int:
        with self._lock:
            cursor = self._conn.execute("DELETE FROM decisions")
            self._conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_decision(row: sqlite3.Row) -> Decision:
        return Decision(
            id=row["id"],
            comment_id=row["comment_id"],
            decision=row["decision"],
            suggested=row["suggested"],
            confidence=row["confidence"],
            reasoning=row["reasoning"] or "",
            model_used=row["model_used"] or "",
            processing_time=row["processing_time"] or 0.0,
            created_at=row["created_at"],
            overridden=bool(row["overridden"]),
            overridden_by=row["overridden_by"],
            overridden_at=row["overridden_at"],
        )


class SQLiteCommentStore(BaseCommentStore):
    """Comments and their documents in the same SQLite file."""

    def __init__(self, db_path: str = ".modlens.db"):
        super().__init__()
        self._conn = _connect(db_path, _COMMENTS_SCHEMA)
        self._lock = threading.Lock()

    def _insert(self, comment: Comment) -> Comment:
        with self._lock:
            cursor = self._conn.execute(
                """
                INSERT INTO comments
                  (document_id, author, author_email, author_url, content, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    comment.document_id,
                    comment.author,
                    comment.author_email,
                    comment.author_url,
                    comment.content,
                    comment.status,
                    comment.created_at,
                ),
            )
            self._conn.commit()
        comment.id = cursor.lastrowid
        return comment

    def _update_status(self, comment_id: int, status: str) -> None:
        with self._lock:
            self._conn.execute("UPDATE comments SET status=? WHERE id=?", (status, comment_id))
            self._conn.commit()

    def get(self, comment_id: int) -> Comment | None:
        with self._lock:
            row = self._conn.execute("SELECT * FROM comments WHERE id=?", (comment_id,)).fetchone()
        return self._row_to_comment(row) if row else None

    def list_by_status(self, status: str, limit: int = 50, offset: int = 0, order: str = "asc") -> list[Comment]:
        direction = "DESC" if order.lower() == "desc" else "ASC"
        with self._lock:
            rows = self._conn.execute(
                f"SELECT * FROM comments WHERE status=? ORDER BY created_at {direction}, id {direction} "
                "LIMIT ? OFFSET ?",
                (status, limit, offset),
            ).fetchall()
        return [self._row_to_comment(r) for r in rows]

    def count_by_status(self, status: str) -> int:
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) FROM comments WHERE status=?", (status,)).fetchone()
        return int(row[0])

    def add_document(self, document: Document) -> Document:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO documents (id, title, doc_type) VALUES (?, ?, ?)",
                (document.id, document.title, document.doc_type),
            )
            self._conn.commit()
        return document

    def get_document(self, document_id: int) -> Document | None:
        with self._lock:
            row = self._conn.execute("SELECT * FROM documents WHERE id=?", (document_id,)).fetchone()
        if row is None:
            return None
        return Document(id=row["id"], title=row["title"], doc_type=row["doc_type"])

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_comment(row: sqlite3.Row) -> Comment:
        return Comment(
            id=row["id"],
            document_id=row["document_id"],
            author=row["author"],
            author_email=row["author_email"],
            author_url=row["author_url"],
            content=row["content"],
            status=row["status"],
            created_at=row["created_at"],
        )


class SQLiteAuditLog(BaseAuditLog):
    """Audit entries in the logs table, mirrored to the logging module."""

    def __init__(self, db_path: str = ".modlens.db"):
        self._conn = _connect(db_path, _LOGS_SCHEMA)
        self._lock = threading.Lock()

    def _write(self, entry: LogEntry) -> None:
        context_json = json.dumps(entry.context, default=str) if entry.context is not None else None
        logger.log(
            logging.getLevelName(entry.level.upper()),
            "%s%s",
            entry.message,
            f" - {context_json}" if context_json else "",
        )
        with self._lock:
            cursor = self._conn.execute(
                "INSERT INTO logs (timestamp, level, message, context, comment_id) VALUES (?, ?, ?, ?, ?)",
                (entry.timestamp, entry.level, entry.message, context_json, entry.comment_id),
            )
            self._conn.commit()
        entry.id = cursor.lastrowid

    def list_entries(self, level: str | None = None, comment_id: int | None = None, limit: int = 100) -> list[LogEntry]:
        conditions: list[str] = []
        values: list = []
        if level is not None:
            conditions.append("level = ?")
            values.append(level)
        if comment_id is not None:
            conditions.append("comment_id = ?")
            values.append(comment_id)
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        with self._lock:
            rows = self._conn.execute(
                f"SELECT * FROM logs {where} ORDER BY id DESC LIMIT ?",
                (*values, limit),
            ).fetchall()
        return [
            LogEntry(
                id=r["id"],
                timestamp=r["timestamp"],
                level=r["level"],
                message=r["message"],
                context=json.loads(r["context"]) if r["context"] else None,
                comment_id=r["comment_id"],
            )
            for r in rows
        ]

    def close(self) -> None:
        self._conn.close()

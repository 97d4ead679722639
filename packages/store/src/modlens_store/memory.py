"""In-process stores for tests, demos and single-run CLI sessions.

Everything lives in dicts guarded by a lock, so the scheduler thread and
the caller can share one instance. Nothing survives the process.
"""

from __future__ import annotations

import copy
import itertools
import threading
from dataclasses import replace
from typing import TYPE_CHECKING

from modlens_store.base import BaseAuditLog, BaseCommentStore, BaseDecisionStore
from modlens_store.models import utcnow

if TYPE_CHECKING:
    from modlens_store.models import Comment, Decision, Document, LogEntry


def _in_date_range(created_at: str, date_from: str, date_to: str) -> bool:
    day = created_at[:10]
    if date_from and day < date_from:
        return False
    if date_to and day > date_to:
        return False
    return True


class MemoryDecisionStore(BaseDecisionStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._rows: dict[int, Decision] = {}
        self._by_comment: dict[int, int] = {}

    def save(self, decision: Decision) -> int | None:
        with self._lock:
            if decision.comment_id in self._by_comment:
                return None
            decision_id = next(self._ids)
            self._rows[decision_id] = replace(decision, id=decision_id)
            self._by_comment[decision.comment_id] = decision_id
            return decision_id

    def get(self, decision_id: int) -> Decision | None:
        with self._lock:
            row = self._rows.get(decision_id)
            return copy.copy(row) if row else None

    def get_for_comment(self, comment_id: int) -> Decision | None:
        with self._lock:
            decision_id = self._by_comment.get(comment_id)
            return copy.copy(self._rows[decision_id]) if decision_id is not None else None

    def _filtered(self, decision: str, date_from: str, date_to: str) -> list[Decision]:
        rows = [
            r
            for r in self._rows.values()
            if (decision == "all" or r.decision == decision) and _in_date_range(r.created_at, date_from, date_to)
        ]
        # Newest first; id breaks ties between rows written in the same instant.
        rows.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return rows

    def list_decisions(
        self,
        decision: str = "all",
        date_from: str = "",
        date_to: str = "",
        limit: int = 50,
        offset: int = 0,
    ) -> list[Decision]:
        with self._lock:
            rows = self._filtered(decision, date_from, date_to)
            return [copy.copy(r) for r in rows[offset : offset + limit]]

    def count_decisions(self, decision: str = "all", date_from: str = "", date_to: str = "") -> int:
        with self._lock:
            return len(self._filtered(decision, date_from, date_to))

    def stats(self) -> dict[str, dict]:
        with self._lock:
            grouped: dict[str, list[Decision]] = {}
            for row in self._rows.values():
                grouped.setdefault(row.decision, []).append(row)
        return {
            outcome: {
                "count": len(rows),
                "avg_confidence": sum(r.confidence for r in rows) / len(rows),
                "avg_processing_time": sum(r.processing_time for r in rows) / len(rows),
            }
            for outcome, rows in grouped.items()
        }

    def mark_overridden(self, decision_id: int, actor: str | None, at: str | None = None) -> bool:
        with self._lock:
            row = self._rows.get(decision_id)
            if row is None:
                return False
            row.overridden = True
            row.overridden_by = actor
            row.overridden_at = at or utcnow()
            return True

    def clear(self) -> int:
        with self._lock:
            count = len(self._rows)
            self._rows.clear()
            self._by_comment.clear()
            return count


class MemoryCommentStore(BaseCommentStore):
    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._comments: dict[int, Comment] = {}
        self._documents: dict[int, Document] = {}

    def _insert(self, comment: Comment) -> Comment:
        with self._lock:
            saved = replace(comment, id=next(self._ids))
            self._comments[saved.id] = saved
            return copy.copy(saved)

    def _update_status(self, comment_id: int, status: str) -> None:
        with self._lock:
            self._comments[comment_id].status = status

    def get(self, comment_id: int) -> Comment | None:
        with self._lock:
            comment = self._comments.get(comment_id)
            return copy.copy(comment) if comment else None

    def list_by_status(self, status: str, limit: int = 50, offset: int = 0, order: str = "asc") -> list[Comment]:
        with self._lock:
            rows = [c for c in self._comments.values() if c.status == status]
        rows.sort(key=lambda c: (c.created_at, c.id), reverse=order.lower() == "desc")
        return [copy.copy(c) for c in rows[offset : offset + limit]]

    def count_by_status(self, status: str) -> int:
        with self._lock:
            return sum(1 for c in self._comments.values() if c.status == status)

    def add_document(self, document: Document) -> Document:
        with self._lock:
            self._documents[document.id] = document
            return document

    def get_document(self, document_id: int) -> Document | None:
        with self._lock:
            return self._documents.get(document_id)


class MemoryAuditLog(BaseAuditLog):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._entries: list[LogEntry] = []

    def _write(self, entry: LogEntry) -> None:
        with self._lock:
            entry.id = next(self._ids)
            self._entries.append(entry)

    def list_entries(self, level: str | None = None, comment_id: int | None = None, limit: int = 100) -> list[LogEntry]:
        with self._lock:
            entries = [
                e
                for e in reversed(self._entries)
                if (level is None or e.level == level) and (comment_id is None or e.comment_id == comment_id)
            ]
        return entries[:limit]

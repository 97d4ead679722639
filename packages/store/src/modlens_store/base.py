"""Abstract store interfaces.

The pipeline depends on these interfaces, not on a concrete backend, so
backends (in-memory, SQLite) are swappable without touching core code.

The comment store doubles as the event bus for the comment lifecycle:
creation filters decide the initial status, and listeners are called after
every insert and every status write. That is how the transition guard and
the dispatcher hear about comments without an ambient global dispatcher.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable

from modlens_store.models import APPLIED_BY_HUMAN, LOG_LEVELS, LogEntry, StatusChange

if TYPE_CHECKING:
    from modlens_store.models import Comment, Decision, Document

CreationFilter = Callable[[str, "Comment"], str]
CreatedListener = Callable[["Comment"], None]
StatusListener = Callable[[StatusChange], None]


class BaseDecisionStore(ABC):
    """Append-only record of one decision per comment.

    Rows are only ever mutated to set the overridden fields.
    """

    @abstractmethod
    def save(self, decision: Decision) -> int | None:
        """Persist a decision and return its id.

        Returns None, without writing, when a decision already exists for
        the same comment.
        """

    @abstractmethod
    def get(self, decision_id: int) -> Decision | None:
        """Return a decision by id, or None."""

    @abstractmethod
    def get_for_comment(self, comment_id: int) -> Decision | None:
        """Return the decision recorded for a comment, or None."""

    @abstractmethod
    def list_decisions(
        self,
        decision: str = "all",
        date_from: str = "",
        date_to: str = "",
        limit: int = 50,
        offset: int = 0,
    ) -> list[Decision]:
        """Return decisions newest first. Dates are inclusive YYYY-MM-DD bounds."""

    @abstractmethod
    def count_decisions(self, decision: str = "all", date_from: str = "", date_to: str = "") -> int:
        """Count decisions matching the same filters as list_decisions."""

    @abstractmethod
    def stats(self) -> dict[str, dict]:
        """Per-outcome count, average confidence and average processing time."""

    @abstractmethod
    def mark_overridden(self, decision_id: int, actor: str | None, at: str | None = None) -> bool:
        """Set the overridden fields. Returns False if the decision does not exist."""

    @abstractmethod
    def clear(self) -> int:
        """Delete every decision and return how many were removed."""

    def close(self) -> None:
        """Release any resources held by the store.

        Default is a no-op so callers can always call close() safely.
        """


class BaseCommentStore(ABC):
    """Comment persistence plus the lifecycle hooks the pipeline plugs into."""

    def __init__(self) -> None:
        self._creation_filters: list[CreationFilter] = []
        self._created_listeners: list[CreatedListener] = []
        self._status_listeners: list[StatusListener] = []

    # ------------------------------------------------------------------ #
    # Lifecycle hooks                                                      #
    # ------------------------------------------------------------------ #

    def add_creation_filter(self, fn: CreationFilter) -> None:
        """Register fn(proposed_status, comment) -> status, run before insert."""
        self._creation_filters.append(fn)

    def on_created(self, fn: CreatedListener) -> None:
        self._created_listeners.append(fn)

    def on_status_change(self, fn: StatusListener) -> None:
        self._status_listeners.append(fn)

    def create(self, comment: Comment) -> Comment:
        """Insert a comment after running the creation filters, then notify listeners."""
        status = comment.status
        for fn in self._creation_filters:
            status = fn(status, comment)
        comment.status = status
        saved = self._insert(comment)
        for listener in self._created_listeners:
            listener(saved)
        return saved

    def set_status(
        self,
        comment_id: int,
        status: str,
        applied_by: str = APPLIED_BY_HUMAN,
        actor: str | None = None,
    ) -> bool:
        """Write a new status and tell listeners who issued it.

        Returns False if the comment does not exist.
        """
        comment = self.get(comment_id)
        if comment is None:
            return False
        old_status = comment.status
        self._update_status(comment_id, status)
        change = StatusChange(
            comment_id=comment_id,
            old_status=old_status,
            new_status=status,
            applied_by=applied_by,
            actor=actor,
        )
        for listener in self._status_listeners:
            listener(change)
        return True

    def get_document_title(self, document_id: int) -> str:
        document = self.get_document(document_id)
        return document.title if document else ""

    # ------------------------------------------------------------------ #
    # Backend operations                                                   #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _insert(self, comment: Comment) -> Comment:
        """Store a new comment, assign its id and return it."""

    @abstractmethod
    def _update_status(self, comment_id: int, status: str) -> None:
        """Persist a status value. No notification."""

    @abstractmethod
    def get(self, comment_id: int) -> Comment | None:
        """Return a comment by id, or None."""

    @abstractmethod
    def list_by_status(self, status: str, limit: int = 50, offset: int = 0, order: str = "asc") -> list[Comment]:
        """Return comments with a status ordered by creation time."""

    @abstractmethod
    def count_by_status(self, status: str) -> int:
        """Count comments with a status."""

    @abstractmethod
    def add_document(self, document: Document) -> Document:
        """Insert or replace a document."""

    @abstractmethod
    def get_document(self, document_id: int) -> Document | None:
        """Return a document by id, or None."""

    def close(self) -> None:
        """Release any resources held by the store."""


class BaseAuditLog(ABC):
    """Write-mostly event log surfaced to operators."""

    def append(
        self,
        level: str,
        message: str,
        context: dict | None = None,
        comment_id: int | None = None,
    ) -> None:
        # Normalize level to lowercase to match the listing filters.
        level = level.lower()
        if level not in LOG_LEVELS:
            level = "info"
        self._write(LogEntry(level=level, message=message, context=context, comment_id=comment_id))

    @abstractmethod
    def _write(self, entry: LogEntry) -> None:
        """Persist one entry."""

    @abstractmethod
    def list_entries(self, level: str | None = None, comment_id: int | None = None, limit: int = 100) -> list[LogEntry]:
        """Return entries newest first, optionally filtered."""

    def close(self) -> None:
        """Release any resources held by the log."""

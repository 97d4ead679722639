"""Moderation data models.

Decoupled from modlens_core so the store layer can be used independently
and modlens_core has no knowledge of how rows are persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

# Comment statuses. "pending" is the held state: not yet visible.
STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_SPAM = "spam"
STATUS_TRASH = "trash"
COMMENT_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_SPAM, STATUS_TRASH)

# Decision outcomes.
DECISION_APPROVE = "approve"
DECISION_REJECT = "reject"
DECISION_SPAM = "spam"
DECISION_PENDING_REVIEW = "pending_review"
DECISION_OUTCOMES = (DECISION_APPROVE, DECISION_REJECT, DECISION_SPAM, DECISION_PENDING_REVIEW)

# Who issued a status change.
APPLIED_BY_SYSTEM = "system"
APPLIED_BY_HUMAN = "human"

LOG_LEVELS = ("error", "warning", "info", "debug")


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Document:
    """The page a comment is attached to. ``doc_type`` is post, page or product."""

    id: int
    title: str
    doc_type: str = "post"


@dataclass
class Comment:
    """A user comment. Owned by the comment store; the pipeline only touches status."""

    author: str
    content: str
    document_id: int
    status: str = STATUS_PENDING
    author_email: str = ""
    author_url: str = ""
    id: int | None = None
    created_at: str = field(default_factory=utcnow)


@dataclass
class Decision:
    """One AI classification outcome for one comment.

    ``decision`` is pending_review when the model answered below the
    confidence threshold; ``suggested`` then carries what the model proposed.
    """

    comment_id: int
    decision: str
    confidence: float
    reasoning: str
    model_used: str
    processing_time: float
    suggested: str | None = None
    id: int | None = None
    created_at: str = field(default_factory=utcnow)
    overridden: bool = False
    overridden_by: str | None = None
    overridden_at: str | None = None


@dataclass
class StatusChange:
    """Emitted by the comment store on every status write."""

    comment_id: int
    old_status: str
    new_status: str
    applied_by: str = APPLIED_BY_HUMAN
    actor: str | None = None


@dataclass
class LogEntry:
    level: str
    message: str
    context: dict | None = None
    comment_id: int | None = None
    id: int | None = None
    timestamp: str = field(default_factory=utcnow)

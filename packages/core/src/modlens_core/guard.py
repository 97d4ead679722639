from __future__ import annotations

import logging

from modlens_core.config import ModerationConfig
from modlens_store.base import BaseAuditLog, BaseCommentStore, BaseDecisionStore
from modlens_store.models import (
    APPLIED_BY_SYSTEM,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_SPAM,
    STATUS_TRASH,
    Comment,
    StatusChange,
    utcnow,
)

logger = logging.getLogger(__name__)

_OVERRIDE_STATUSES = (STATUS_APPROVED, STATUS_SPAM, STATUS_TRASH)


class TransitionGuard:
    """Holds new comments for moderation and notices human overrides of AI decisions."""

    def __init__(
        self,
        config: ModerationConfig,
        decisions: BaseDecisionStore,
        comments: BaseCommentStore,
        audit: BaseAuditLog,
    ):
        self.config = config
        self.decisions = decisions
        self.comments = comments
        self.audit = audit

    def refresh(self, config: ModerationConfig) -> None:
        self.config = config

    def hold_filter(self, proposed: str, comment: Comment) -> str:
        """Creation filter: force eligible comments into the pending state.

        Runs synchronously inside comment creation, so it only reads config
        and the document type.
        """
        if not (self.config.auto_moderation_enabled and self.config.has_credentials):
            return proposed
        document = self.comments.get_document(comment.document_id)
        if document is not None and not self.config.moderates_document_type(document.doc_type):
            return proposed
        if proposed != STATUS_PENDING:
            logger.debug("Holding new comment by %s for AI review (was %s)", comment.author, proposed)
        return STATUS_PENDING

    def on_status_change(self, change: StatusChange) -> None:
        if change.old_status == change.new_status:
            return
        if change.applied_by == APPLIED_BY_SYSTEM:
            return
        if change.new_status not in _OVERRIDE_STATUSES:
            return
        decision = self.decisions.get_for_comment(change.comment_id)
        if decision is None or decision.overridden:
            return

        self.decisions.mark_overridden(decision.id, change.actor, utcnow())
        self.audit.append(
            "info",
            "AI decision overridden by manual status change",
            {
                "decision_id": decision.id,
                "original_decision": decision.decision,
                "suggested_decision": decision.suggested,
                "new_status": change.new_status,
                "old_status": change.old_status,
                "actor": change.actor,
            },
            change.comment_id,
        )
        logger.info(
            "Comment %s: AI decision %s overridden by %s (now %s)",
            change.comment_id,
            decision.decision,
            change.actor or "unknown",
            change.new_status,
        )

"""Confidence-gated moderation policy.

Turns one classification result into at most one Decision row and, when
the model was confident enough, the matching comment status.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from modlens_core.providers.base import Classification, ClassificationResult
from modlens_store.base import BaseAuditLog, BaseCommentStore, BaseDecisionStore
from modlens_store.models import (
    APPLIED_BY_SYSTEM,
    DECISION_APPROVE,
    DECISION_PENDING_REVIEW,
    DECISION_REJECT,
    DECISION_SPAM,
    STATUS_APPROVED,
    STATUS_SPAM,
    STATUS_TRASH,
    Decision,
)

logger = logging.getLogger(__name__)

STATUS_FOR_DECISION = {
    DECISION_APPROVE: STATUS_APPROVED,
    DECISION_SPAM: STATUS_SPAM,
    DECISION_REJECT: STATUS_TRASH,
}

# PolicyOutcome.action values.
ACTION_APPLIED = "applied"
ACTION_PENDING_REVIEW = "pending_review"
ACTION_FAILED = "failed"
ACTION_DUPLICATE = "duplicate"


@dataclass
class PolicyOutcome:
    action: str
    decision_id: int | None = None
    decision: str | None = None
    confidence: float | None = None
    status: str | None = None
    error: str | None = None


class ModerationPolicy:
    def __init__(
        self,
        decisions: BaseDecisionStore,
        comments: BaseCommentStore,
        audit: BaseAuditLog,
        confidence_threshold: float = 0.7,
    ):
        self.decisions = decisions
        self.comments = comments
        self.audit = audit
        self.confidence_threshold = confidence_threshold

    def apply(self, comment_id: int, result: ClassificationResult, processing_time: float) -> PolicyOutcome:
        """Record the result for a comment and apply it when confident enough.

        A failed classification writes nothing but the audit entry, so the
        comment stays pending and eligible for the next attempt.
        """
        if not result.ok:
            self.audit.append(
                "error",
                f"AI moderation failed: {result.message}",
                {
                    "error_code": result.code,
                    "model": result.model,
                    "processing_time": processing_time,
                    "details": result.details,
                },
                comment_id,
            )
            return PolicyOutcome(action=ACTION_FAILED, error=result.message)

        if result.confidence >= self.confidence_threshold:
            return self._apply_confident(comment_id, result, processing_time)
        return self._hold_for_review(comment_id, result, processing_time)

    def _apply_confident(self, comment_id: int, result: Classification, processing_time: float) -> PolicyOutcome:
        decision_id = self.decisions.save(
            Decision(
                comment_id=comment_id,
                decision=result.decision,
                confidence=result.confidence,
                reasoning=result.reasoning,
                model_used=result.model,
                processing_time=processing_time,
            )
        )
        if decision_id is None:
            return self._duplicate(comment_id)

        self.audit.append(
            "info",
            "Decision saved",
            {
                "decision": result.decision,
                "confidence": result.confidence,
                "model": result.model,
                "tokens_used": result.tokens_used,
                "parameter_notes": result.parameter_notes,
            },
            comment_id,
        )

        status = STATUS_FOR_DECISION[result.decision]
        self.comments.set_status(comment_id, status, applied_by=APPLIED_BY_SYSTEM)
        logger.info("Comment %s -> %s (%s, confidence %.2f)", comment_id, status, result.decision, result.confidence)
        return PolicyOutcome(
            action=ACTION_APPLIED,
            decision_id=decision_id,
            decision=result.decision,
            confidence=result.confidence,
            status=status,
        )

    def _hold_for_review(self, comment_id: int, result: Classification, processing_time: float) -> PolicyOutcome:
        decision_id = self.decisions.save(
            Decision(
                comment_id=comment_id,
                decision=DECISION_PENDING_REVIEW,
                confidence=result.confidence,
                reasoning=result.reasoning,
                model_used=result.model,
                processing_time=processing_time,
                suggested=result.decision,
            )
        )
        if decision_id is None:
            return self._duplicate(comment_id)

        self.audit.append(
            "warning",
            f"Low confidence ({result.confidence:.2f}) - marked for manual review",
            {
                "suggested_decision": result.decision,
                "confidence": result.confidence,
                "threshold": self.confidence_threshold,
                "reasoning": result.reasoning,
            },
            comment_id,
        )
        return PolicyOutcome(
            action=ACTION_PENDING_REVIEW,
            decision_id=decision_id,
            decision=result.decision,
            confidence=result.confidence,
        )

    def _duplicate(self, comment_id: int) -> PolicyOutcome:
        logger.info("Comment %s already has a decision; result discarded", comment_id)
        return PolicyOutcome(action=ACTION_DUPLICATE)

"""The unit of work: moderate one held comment.

Every trigger (deferred unit, periodic sweep, page-view kick, manual
process-now) ends up in Moderator.moderate(), so the skip checks below are
the only concurrency guard the pipeline needs. With the SQLite store the
unique comment_id constraint closes the remaining check-then-act window.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from modlens_core.config import ModerationConfig
from modlens_core.policy import (
    ACTION_APPLIED,
    ACTION_DUPLICATE,
    ACTION_FAILED,
    ACTION_PENDING_REVIEW,
    ModerationPolicy,
)
from modlens_core.providers.base import BaseClassifier, CommentInput
from modlens_core.providers.openai import OpenAIClassifier
from modlens_core.scheduler import FallbackSignal
from modlens_store.base import BaseAuditLog, BaseCommentStore, BaseDecisionStore
from modlens_store.models import (
    DECISION_APPROVE,
    DECISION_REJECT,
    DECISION_SPAM,
    STATUS_PENDING,
    Comment,
)

logger = logging.getLogger(__name__)

# ModerationOutcome.reason values for skipped comments.
SKIP_NO_CREDENTIALS = "no_credentials"
SKIP_MISSING = "missing"
SKIP_NOT_PENDING = "not_pending"
SKIP_ALREADY_DECIDED = "already_decided"
SKIP_INELIGIBLE = "ineligible"


@dataclass
class ModerationOutcome:
    comment_id: int
    processed: bool
    reason: str | None = None
    action: str | None = None
    decision: str | None = None
    confidence: float | None = None
    status: str | None = None
    error: str | None = None
    processing_time: float = 0.0


@dataclass
class BatchSummary:
    """Counts and per-comment detail for one bounded batch run."""

    processed: int = 0
    approved: int = 0
    rejected: int = 0
    spam: int = 0
    pending_review: int = 0
    skipped: int = 0
    errors: int = 0
    results: list[ModerationOutcome] = field(default_factory=list)

    def add(self, outcome: ModerationOutcome) -> None:
        self.results.append(outcome)
        if not outcome.processed:
            self.skipped += 1
            return
        self.processed += 1
        if outcome.action == ACTION_FAILED:
            self.errors += 1
        elif outcome.action == ACTION_PENDING_REVIEW:
            self.pending_review += 1
        elif outcome.action == ACTION_APPLIED:
            if outcome.decision == DECISION_APPROVE:
                self.approved += 1
            elif outcome.decision == DECISION_REJECT:
                self.rejected += 1
            elif outcome.decision == DECISION_SPAM:
                self.spam += 1


def build_classifier(config: ModerationConfig) -> BaseClassifier:
    return OpenAIClassifier(
        api_key=config.openai_api_key,
        model=config.openai_model,
        base_url=config.api_base_url,
        max_tokens=config.max_tokens,
        temperature=config.temperature,
        reasoning_effort=config.reasoning_effort,
        max_retries=config.max_retries,
    )


class Moderator:
    def __init__(
        self,
        config: ModerationConfig,
        decisions: BaseDecisionStore,
        comments: BaseCommentStore,
        audit: BaseAuditLog,
        classifier: BaseClassifier | None = None,
        fallback: FallbackSignal | None = None,
    ):
        self.config = config
        self.decisions = decisions
        self.comments = comments
        self.audit = audit
        self.fallback = fallback or FallbackSignal()
        self._classifier = classifier
        self.policy = ModerationPolicy(decisions, comments, audit, config.confidence_threshold)

    def refresh(self, config: ModerationConfig) -> None:
        """Adopt a new options snapshot. The classifier is rebuilt on next use."""
        self.config = config
        self.policy.confidence_threshold = config.confidence_threshold
        self._classifier = None

    @property
    def classifier(self) -> BaseClassifier:
        if self._classifier is None:
            self._classifier = build_classifier(self.config)
        return self._classifier

    def is_eligible(self, comment: Comment) -> bool:
        document = self.comments.get_document(comment.document_id)
        return document is not None and self.config.moderates_document_type(document.doc_type)

    def moderate(self, comment_id: int) -> ModerationOutcome:
        """Classify one held comment and apply the policy. Safe to call repeatedly."""
        # Any unit actually running means background dispatch works.
        self.fallback.clear()

        if not self.config.has_credentials:
            logger.debug("Comment %s skipped: no API key configured", comment_id)
            return ModerationOutcome(comment_id, processed=False, reason=SKIP_NO_CREDENTIALS)

        comment = self.comments.get(comment_id)
        if comment is None:
            return ModerationOutcome(comment_id, processed=False, reason=SKIP_MISSING)
        if comment.status != STATUS_PENDING:
            return ModerationOutcome(comment_id, processed=False, reason=SKIP_NOT_PENDING, status=comment.status)
        if self.decisions.get_for_comment(comment_id) is not None:
            logger.debug("Comment %s skipped: decision already exists", comment_id)
            return ModerationOutcome(comment_id, processed=False, reason=SKIP_ALREADY_DECIDED)
        if not self.is_eligible(comment):
            logger.debug("Comment %s skipped: document type not moderated", comment_id)
            return ModerationOutcome(comment_id, processed=False, reason=SKIP_INELIGIBLE)

        comment_input = CommentInput(
            author=comment.author,
            content=comment.content,
            document_title=self.comments.get_document_title(comment.document_id),
            author_email=comment.author_email,
            author_url=comment.author_url,
        )
        classifier = self.classifier
        start = time.monotonic()
        result = classifier.classify(comment_input, classifier.build_prompt(comment_input))
        processing_time = round(time.monotonic() - start, 3)

        applied = self.policy.apply(comment_id, result, processing_time)
        if applied.action == ACTION_DUPLICATE:
            return ModerationOutcome(
                comment_id, processed=False, reason=SKIP_ALREADY_DECIDED, processing_time=processing_time
            )
        return ModerationOutcome(
            comment_id,
            processed=True,
            action=applied.action,
            decision=applied.decision,
            confidence=applied.confidence,
            status=applied.status,
            error=applied.error,
            processing_time=processing_time,
        )

    def held_without_decision(self, limit: int) -> list[Comment]:
        """Oldest held comments that have no decision yet, at most ``limit``.

        Comments on documents that are not moderated are left out so they
        cannot crowd eligible ones out of a bounded batch.
        """
        found: list[Comment] = []
        offset = 0
        page_size = max(limit, 20)
        while len(found) < limit:
            page = self.comments.list_by_status(STATUS_PENDING, limit=page_size, offset=offset, order="asc")
            if not page:
                break
            found.extend(
                c for c in page if self.decisions.get_for_comment(c.id) is None and self.is_eligible(c)
            )
            offset += len(page)
        return found[:limit]

    def has_backlog(self) -> bool:
        return bool(self.held_without_decision(1))

    def run_batch(self, limit: int, pause: float = 0.0) -> BatchSummary:
        """Moderate up to ``limit`` held comments in order, pausing between calls."""
        summary = BatchSummary()
        batch = self.held_without_decision(limit)
        for i, comment in enumerate(batch):
            if i and pause:
                time.sleep(pause)
            summary.add(self.moderate(comment.id))
        if batch:
            logger.info(
                "Batch done: %d processed, %d errors, %d skipped",
                summary.processed,
                summary.errors,
                summary.skipped,
            )
        return summary

"""Operator actions that sit beside the pipeline: overrides, stats, exports, test runs."""

from __future__ import annotations

import csv
import io
import json
import logging
import random
import time
from dataclasses import dataclass

from modlens_core.providers.base import BaseClassifier, ClassificationResult, CommentInput
from modlens_store.base import BaseAuditLog, BaseCommentStore, BaseDecisionStore
from modlens_store.models import DECISION_OUTCOMES, DECISION_PENDING_REVIEW, STATUS_PENDING, Decision, utcnow

logger = logging.getLogger(__name__)

SPAM_SAMPLE = CommentInput(
    author="Marketing Bot",
    content="Check out my amazing website for cheap products! Best deals ever!!! http://spam-site.com Buy now!!!",
    document_title="WordPress Security",
)

EXTRA_SAMPLES = (
    CommentInput(
        author="Test User",
        content="Great article! This really helped me understand the topic better. Thanks for sharing!",
        document_title="Getting Started with WordPress",
    ),
    CommentInput(
        author="Anonymous",
        content="This is terrible content and you should be ashamed.",
        document_title="Plugin Development",
    ),
    CommentInput(
        author="Sales Rep",
        content="Visit our site at www.example.com for the BEST prices!!! Limited time offer!!!",
        document_title="General Discussion",
    ),
)

CSV_HEADER = (
    "ID",
    "Comment ID",
    "Author",
    "Decision",
    "Suggested",
    "Confidence",
    "Reasoning",
    "Model Used",
    "Processing Time",
    "Date",
    "Overridden",
    "Overridden By",
    "Overridden At",
)


@dataclass
class SampleRun:
    sample: CommentInput
    result: ClassificationResult
    processing_time: float


def override_decision(
    decisions: BaseDecisionStore,
    audit: BaseAuditLog,
    decision_id: int,
    actor: str | None,
    reason: str = "",
) -> bool:
    """Mark a decision overridden by an operator. Returns False if it does not exist."""
    decision = decisions.get(decision_id)
    if decision is None:
        return False
    decisions.mark_overridden(decision_id, actor, utcnow())
    audit.append(
        "info",
        "AI decision overridden by operator",
        {"decision_id": decision_id, "original_decision": decision.decision, "actor": actor, "reason": reason},
        decision.comment_id,
    )
    return True


def clear_decisions(decisions: BaseDecisionStore, audit: BaseAuditLog) -> int:
    removed = decisions.clear()
    audit.append("warning", f"All AI decisions cleared ({removed} removed)", {"removed": removed})
    return removed


def decision_stats(decisions: BaseDecisionStore, comments: BaseCommentStore) -> dict:
    """Totals per outcome plus averages.

    pending_review only counts decisions nobody has acted on yet: not
    overridden, and the comment is still held.
    """
    per_outcome = decisions.stats()
    stats: dict = {"total": 0}
    for outcome in DECISION_OUTCOMES:
        stats[outcome] = 0
    for outcome, row in per_outcome.items():
        stats[outcome] = row["count"]
        stats["total"] += row["count"]

    waiting = 0
    total_review = decisions.count_decisions(DECISION_PENDING_REVIEW)
    for decision in decisions.list_decisions(DECISION_PENDING_REVIEW, limit=max(total_review, 1)):
        if decision.overridden:
            continue
        comment = comments.get(decision.comment_id)
        if comment is not None and comment.status == STATUS_PENDING:
            waiting += 1
    stats[DECISION_PENDING_REVIEW] = waiting
    stats["averages"] = per_outcome
    return stats


def run_sample_moderation(classifier: BaseClassifier, rng: random.Random | None = None) -> list[SampleRun]:
    """Classify the spam sample and one randomly picked extra sample. Nothing is persisted."""
    rng = rng or random.Random()
    runs = []
    for sample in (SPAM_SAMPLE, rng.choice(EXTRA_SAMPLES)):
        start = time.monotonic()
        result = classifier.classify(sample)
        runs.append(SampleRun(sample, result, round(time.monotonic() - start, 3)))
    return runs


def _export_row(decision: Decision, comments: BaseCommentStore) -> dict:
    comment = comments.get(decision.comment_id)
    return {
        "id": decision.id,
        "comment_id": decision.comment_id,
        "comment_author": comment.author if comment else None,
        "comment_content": comment.content if comment else None,
        "document_title": comments.get_document_title(comment.document_id) if comment else None,
        "decision": decision.decision,
        "suggested": decision.suggested,
        "confidence": float(decision.confidence),
        "reasoning": decision.reasoning,
        "model_used": decision.model_used,
        "processing_time": float(decision.processing_time),
        "created_at": decision.created_at,
        "overridden": bool(decision.overridden),
        "overridden_by": decision.overridden_by,
        "overridden_at": decision.overridden_at,
    }


def export_json(decisions: list[Decision], comments: BaseCommentStore) -> str:
    return json.dumps([_export_row(d, comments) for d in decisions], indent=2, ensure_ascii=False)


def export_csv(decisions: list[Decision], comments: BaseCommentStore) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_HEADER)
    for decision in decisions:
        row = _export_row(decision, comments)
        writer.writerow(
            [
                row["id"],
                row["comment_id"],
                row["comment_author"] or "",
                row["decision"],
                row["suggested"] or "",
                row["confidence"],
                row["reasoning"],
                row["model_used"],
                row["processing_time"],
                row["created_at"],
                "Yes" if row["overridden"] else "No",
                row["overridden_by"] or "",
                row["overridden_at"] or "",
            ]
        )
    return buf.getvalue()

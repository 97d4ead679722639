"""Tests for modlens-store implementations.

The memory and SQLite backends share one contract, so most behaviour is
tested against both through the ``decisions`` / ``comments`` / ``audit``
fixtures. Backend-specific tests cover persistence and the SQL filters.
"""

from __future__ import annotations

import threading

import pytest

from modlens_store.memory import MemoryAuditLog, MemoryCommentStore, MemoryDecisionStore
from modlens_store.models import (
    APPLIED_BY_SYSTEM,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_SPAM,
    Comment,
    Decision,
    Document,
)
from modlens_store.noop import NoOpAuditLog
from modlens_store.sqlite import SQLiteAuditLog, SQLiteCommentStore, SQLiteDecisionStore


def _decision(comment_id=1, decision="approve", confidence=0.9, created_at=None, **kwargs):
    d = Decision(
        comment_id=comment_id,
        decision=decision,
        confidence=confidence,
        reasoning="Looks fine",
        model_used="gpt-4o-mini",
        processing_time=1.5,
        **kwargs,
    )
    if created_at:
        d.created_at = created_at
    return d


def _comment(author="Alice", content="Nice post!", document_id=1, status=STATUS_PENDING):
    return Comment(author=author, content=content, document_id=document_id, status=status)


@pytest.fixture(params=["memory", "sqlite"])
def decisions(request, tmp_path):
    store = MemoryDecisionStore() if request.param == "memory" else SQLiteDecisionStore(str(tmp_path / "t.db"))
    yield store
    store.close()


@pytest.fixture(params=["memory", "sqlite"])
def comments(request, tmp_path):
    store = MemoryCommentStore() if request.param == "memory" else SQLiteCommentStore(str(tmp_path / "t.db"))
    yield store
    store.close()


@pytest.fixture(params=["memory", "sqlite"])
def audit(request, tmp_path):
    log = MemoryAuditLog() if request.param == "memory" else SQLiteAuditLog(str(tmp_path / "t.db"))
    yield log
    log.close()


# ---------------------------------------------------------------------------
# Decision stores
# ---------------------------------------------------------------------------


class TestDecisionStore:
    def test_save_and_get(self, decisions):
        decision_id = decisions.save(_decision(comment_id=7, decision="spam", confidence=0.92))
        stored = decisions.get(decision_id)
        assert stored.id == decision_id
        assert stored.comment_id == 7
        assert stored.decision == "spam"
        assert stored.confidence == 0.92
        assert stored.overridden is False

    def test_get_missing_returns_none(self, decisions):
        assert decisions.get(999) is None
        assert decisions.get_for_comment(999) is None

    def test_second_save_for_same_comment_is_ignored(self, decisions):
        first = decisions.save(_decision(comment_id=3, decision="approve"))
        assert decisions.save(_decision(comment_id=3, decision="spam")) is None
        assert decisions.count_decisions() == 1
        assert decisions.get_for_comment(3).id == first
        assert decisions.get_for_comment(3).decision == "approve"

    def test_ids_are_monotonic(self, decisions):
        ids = [decisions.save(_decision(comment_id=i)) for i in range(1, 4)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 3

    def test_suggested_outcome_round_trips(self, decisions):
        decisions.save(_decision(comment_id=1, decision="pending_review", confidence=0.4, suggested="spam"))
        stored = decisions.get_for_comment(1)
        assert stored.decision == "pending_review"
        assert stored.suggested == "spam"

    def test_list_newest_first(self, decisions):
        decisions.save(_decision(comment_id=1, created_at="2025-01-01T10:00:00+00:00"))
        decisions.save(_decision(comment_id=2, created_at="2025-01-03T10:00:00+00:00"))
        decisions.save(_decision(comment_id=3, created_at="2025-01-02T10:00:00+00:00"))
        assert [d.comment_id for d in decisions.list_decisions()] == [2, 3, 1]

    def test_list_filters_by_outcome(self, decisions):
        decisions.save(_decision(comment_id=1, decision="approve"))
        decisions.save(_decision(comment_id=2, decision="spam"))
        decisions.save(_decision(comment_id=3, decision="spam"))
        spam = decisions.list_decisions("spam")
        assert {d.comment_id for d in spam} == {2, 3}
        assert decisions.count_decisions("spam") == 2
        assert decisions.count_decisions("reject") == 0

    def test_date_range_is_inclusive_by_day(self, decisions):
        decisions.save(_decision(comment_id=1, created_at="2025-03-01T23:59:00+00:00"))
        decisions.save(_decision(comment_id=2, created_at="2025-03-02T00:01:00+00:00"))
        decisions.save(_decision(comment_id=3, created_at="2025-03-04T12:00:00+00:00"))
        rows = decisions.list_decisions(date_from="2025-03-01", date_to="2025-03-02")
        assert {d.comment_id for d in rows} == {1, 2}
        assert decisions.count_decisions(date_from="2025-03-03") == 1

    def test_limit_and_offset(self, decisions):
        for i in range(1, 6):
            decisions.save(_decision(comment_id=i, created_at=f"2025-01-0{i}T00:00:00+00:00"))
        page = decisions.list_decisions(limit=2, offset=1)
        assert [d.comment_id for d in page] == [4, 3]

    def test_stats_per_outcome(self, decisions):
        decisions.save(_decision(comment_id=1, decision="approve", confidence=0.8))
        decisions.save(_decision(comment_id=2, decision="approve", confidence=1.0))
        decisions.save(_decision(comment_id=3, decision="spam", confidence=0.9))
        stats = decisions.stats()
        assert stats["approve"]["count"] == 2
        assert stats["approve"]["avg_confidence"] == pytest.approx(0.9)
        assert stats["approve"]["avg_processing_time"] == pytest.approx(1.5)
        assert stats["spam"]["count"] == 1
        assert "reject" not in stats

    def test_mark_overridden(self, decisions):
        decision_id = decisions.save(_decision(comment_id=1))
        assert decisions.mark_overridden(decision_id, "editor", "2025-05-01T00:00:00+00:00") is True
        stored = decisions.get(decision_id)
        assert stored.overridden is True
        assert stored.overridden_by == "editor"
        assert stored.overridden_at == "2025-05-01T00:00:00+00:00"

    def test_mark_overridden_defaults_timestamp(self, decisions):
        decision_id = decisions.save(_decision(comment_id=1))
        decisions.mark_overridden(decision_id, "editor")
        assert decisions.get(decision_id).overridden_at

    def test_mark_overridden_missing_returns_false(self, decisions):
        assert decisions.mark_overridden(42, "editor") is False

    def test_clear_returns_count(self, decisions):
        decisions.save(_decision(comment_id=1))
        decisions.save(_decision(comment_id=2))
        assert decisions.clear() == 2
        assert decisions.count_decisions() == 0
        # Cleared comments can be decided again.
        assert decisions.save(_decision(comment_id=1)) is not None


class TestSQLiteDecisionStore:
    def test_persists_across_instances(self, tmp_path):
        db = str(tmp_path / "t.db")
        store = SQLiteDecisionStore(db)
        store.save(_decision(comment_id=5, decision="reject"))
        store.close()

        reopened = SQLiteDecisionStore(db)
        assert reopened.get_for_comment(5).decision == "reject"
        reopened.close()

    def test_concurrent_saves_write_one_row(self, tmp_path):
        store = SQLiteDecisionStore(str(tmp_path / "t.db"))
        results = []

        def _save():
            results.append(store.save(_decision(comment_id=9)))

        threads = [threading.Thread(target=_save) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.count_decisions() == 1
        assert sum(1 for r in results if r is not None) == 1
        store.close()


# ---------------------------------------------------------------------------
# Comment stores
# ---------------------------------------------------------------------------


class TestCommentStore:
    def test_create_assigns_id(self, comments):
        saved = comments.create(_comment())
        assert saved.id is not None
        assert comments.get(saved.id).content == "Nice post!"

    def test_creation_filter_decides_status(self, comments):
        seen = []

        def _hold(proposed, comment):
            seen.append(proposed)
            return STATUS_PENDING

        comments.add_creation_filter(_hold)
        saved = comments.create(_comment(status=STATUS_APPROVED))
        assert seen == [STATUS_APPROVED]
        assert saved.status == STATUS_PENDING
        assert comments.get(saved.id).status == STATUS_PENDING

    def test_filters_run_in_registration_order(self, comments):
        comments.add_creation_filter(lambda proposed, c: STATUS_PENDING)
        comments.add_creation_filter(lambda proposed, c: STATUS_SPAM if proposed == STATUS_PENDING else proposed)
        assert comments.create(_comment(status=STATUS_APPROVED)).status == STATUS_SPAM

    def test_created_listener_receives_saved_comment(self, comments):
        created = []
        comments.on_created(created.append)
        saved = comments.create(_comment())
        assert [c.id for c in created] == [saved.id]

    def test_set_status_emits_change_with_tag(self, comments):
        changes = []
        comments.on_status_change(changes.append)
        saved = comments.create(_comment())

        assert comments.set_status(saved.id, STATUS_APPROVED, applied_by=APPLIED_BY_SYSTEM) is True
        assert comments.get(saved.id).status == STATUS_APPROVED
        assert len(changes) == 1
        change = changes[0]
        assert change.old_status == STATUS_PENDING
        assert change.new_status == STATUS_APPROVED
        assert change.applied_by == APPLIED_BY_SYSTEM

    def test_set_status_defaults_to_human(self, comments):
        changes = []
        comments.on_status_change(changes.append)
        saved = comments.create(_comment())
        comments.set_status(saved.id, STATUS_SPAM, actor="moderator")
        assert changes[0].applied_by == "human"
        assert changes[0].actor == "moderator"

    def test_set_status_missing_comment(self, comments):
        changes = []
        comments.on_status_change(changes.append)
        assert comments.set_status(404, STATUS_APPROVED) is False
        assert changes == []

    def test_list_by_status_orders_oldest_first(self, comments):
        first = comments.create(_comment(author="a"))
        second = comments.create(_comment(author="b"))
        comments.create(_comment(author="c", status=STATUS_APPROVED))

        held = comments.list_by_status(STATUS_PENDING)
        assert [c.id for c in held] == [first.id, second.id]
        newest = comments.list_by_status(STATUS_PENDING, order="desc")
        assert [c.id for c in newest] == [second.id, first.id]
        assert comments.count_by_status(STATUS_PENDING) == 2
        assert comments.count_by_status(STATUS_APPROVED) == 1

    def test_list_by_status_paginates(self, comments):
        ids = [comments.create(_comment(author=str(i))).id for i in range(5)]
        page = comments.list_by_status(STATUS_PENDING, limit=2, offset=2)
        assert [c.id for c in page] == ids[2:4]

    def test_documents(self, comments):
        comments.add_document(Document(id=10, title="Hello World", doc_type="page"))
        assert comments.get_document(10).doc_type == "page"
        assert comments.get_document_title(10) == "Hello World"
        assert comments.get_document_title(11) == ""
        assert comments.get_document(11) is None


# ---------------------------------------------------------------------------
# Audit logs
# ---------------------------------------------------------------------------


class TestAuditLog:
    def test_append_and_list_newest_first(self, audit):
        audit.append("info", "first")
        audit.append("error", "second", {"error_code": "api_error"}, comment_id=3)
        entries = audit.list_entries()
        assert [e.message for e in entries] == ["second", "first"]
        assert entries[0].context == {"error_code": "api_error"}
        assert entries[0].comment_id == 3

    def test_level_is_normalized(self, audit):
        audit.append("WARNING", "upper")
        audit.append("critical", "unknown level")
        levels = [e.level for e in audit.list_entries()]
        assert levels == ["info", "warning"]

    def test_filters(self, audit):
        audit.append("info", "a", comment_id=1)
        audit.append("error", "b", comment_id=1)
        audit.append("error", "c", comment_id=2)
        assert [e.message for e in audit.list_entries(level="error")] == ["c", "b"]
        assert [e.message for e in audit.list_entries(comment_id=1)] == ["b", "a"]
        assert len(audit.list_entries(limit=1)) == 1


class TestNoOpAuditLog:
    def test_append_does_not_raise(self):
        log = NoOpAuditLog()
        log.append("error", "ignored", {"x": 1})  # must not raise

    def test_list_entries_returns_empty(self):
        log = NoOpAuditLog()
        log.append("info", "ignored")
        assert log.list_entries() == []

"""End-to-end wiring: creation hold, deferred moderation, overrides, option reloads."""

import time

import pytest
import yaml

from modlens_core.config import ModerationConfig, OptionsStore
from modlens_core.pipeline import Pipeline, build_scheduler, fallback_marker, open_stores
from modlens_core.providers.base import Classification
from modlens_core.scheduler import PollingScheduler, ThreadedScheduler
from modlens_store.memory import MemoryAuditLog, MemoryCommentStore, MemoryDecisionStore
from modlens_store.models import APPLIED_BY_HUMAN, Comment, Document
from modlens_store.noop import NoOpAuditLog
from modlens_store.sqlite import SQLiteAuditLog, SQLiteDecisionStore


class StubClassifier:
    def __init__(self, decision="spam", confidence=0.92):
        self.result = Classification(decision=decision, confidence=confidence, reasoning="promo", model="gpt-test")

    def build_prompt(self, comment):
        return "prompt"

    def classify(self, comment, prompt=None):
        return self.result


def _config(**overrides):
    values = {
        "openai_api_key": "sk-test",
        "auto_moderation_enabled": True,
        "store": "memory",
        "scheduler": "polling",
        "sweep_pause": 0,
    }
    values.update(overrides)
    return ModerationConfig.from_dict(values)


def _pipeline(classifier=None, **overrides):
    comments = MemoryCommentStore()
    comments.add_document(Document(id=1, title="Hello World", doc_type="post"))
    return Pipeline(
        _config(**overrides),
        MemoryDecisionStore(),
        comments,
        MemoryAuditLog(),
        classifier=classifier or StubClassifier(),
    )


def _submit(pipeline):
    return pipeline.comments.create(
        Comment(author="Bot", content="Buy now!!! http://spam.example", document_id=1, status="approved")
    )


class TestLifecycle:
    def test_comment_is_held_scheduled_and_moderated(self):
        pipeline = _pipeline()
        comment = _submit(pipeline)

        assert comment.status == "pending"
        assert pipeline.scheduler.is_scheduled(comment.id)

        pipeline.scheduler.run_due(now=float("inf"))

        assert pipeline.comments.get(comment.id).status == "spam"
        decision = pipeline.decisions.get_for_comment(comment.id)
        assert decision.decision == "spam"
        assert decision.overridden is False

    def test_operator_reversal_is_an_override(self):
        pipeline = _pipeline()
        comment = _submit(pipeline)
        pipeline.scheduler.run_due(now=float("inf"))

        pipeline.comments.set_status(comment.id, "approved", applied_by=APPLIED_BY_HUMAN, actor="alice")

        decision = pipeline.decisions.get_for_comment(comment.id)
        assert decision.overridden is True
        assert decision.overridden_by == "alice"
        messages = [e.message for e in pipeline.audit.list_entries(comment_id=comment.id)]
        assert "AI decision overridden by manual status change" in messages

    def test_low_confidence_stays_held(self):
        pipeline = _pipeline(StubClassifier("reject", 0.3))
        comment = _submit(pipeline)
        pipeline.scheduler.run_due(now=float("inf"))

        assert pipeline.comments.get(comment.id).status == "pending"
        decision = pipeline.decisions.get_for_comment(comment.id)
        assert decision.decision == "pending_review"
        assert decision.suggested == "reject"

    def test_disabled_pipeline_leaves_comments_alone(self):
        pipeline = _pipeline(auto_moderation_enabled=False)
        comment = _submit(pipeline)
        assert comment.status == "approved"
        assert pipeline.scheduler.pending() == []

    def test_unhealthy_scheduler_sets_fallback(self, mocker):
        mocker.patch("modlens_core.dispatcher.threading.Timer")
        pipeline = _pipeline(scheduler="deferred")
        assert isinstance(pipeline.scheduler, ThreadedScheduler)

        _submit(pipeline)
        assert pipeline.fallback.active is True

    def test_threaded_scheduler_moderates_in_background(self):
        pipeline = _pipeline(scheduler="deferred", schedule_delay=0)
        pipeline.start()
        try:
            comment = _submit(pipeline)
            deadline = time.monotonic() + 5
            while pipeline.comments.get(comment.id).status == "pending" and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            pipeline.close()
        assert pipeline.comments.get(comment.id).status == "spam"


class TestOptionReloads:
    def test_toggle_reaches_guard_and_sweep(self, tmp_path):
        path = tmp_path / ".modlens.yml"
        path.write_text(yaml.safe_dump({"openai_api_key": "sk-test", "store": "memory", "scheduler": "polling"}))
        options = OptionsStore(str(path))
        pipeline = Pipeline.from_options(options, classifier=StubClassifier())
        pipeline.comments.add_document(Document(id=1, title="Hello", doc_type="post"))
        pipeline.start()

        assert pipeline.scheduler.sweep_enabled is False
        assert _submit(pipeline).status == "approved"

        path.write_text(
            yaml.safe_dump(
                {"openai_api_key": "sk-test", "store": "memory", "scheduler": "polling", "auto_moderation_enabled": True}
            )
        )
        options.reload()

        assert pipeline.scheduler.sweep_enabled is True
        assert _submit(pipeline).status == "pending"
        pipeline.close()


class TestWiringHelpers:
    def test_open_stores_memory(self):
        decisions, comments, audit = open_stores(_config())
        assert isinstance(decisions, MemoryDecisionStore)
        assert isinstance(comments, MemoryCommentStore)
        assert isinstance(audit, MemoryAuditLog)

    def test_open_stores_sqlite(self, tmp_path):
        config = _config(store="sqlite", store_path=str(tmp_path / "db.sqlite"))
        decisions, comments, audit = open_stores(config)
        try:
            assert isinstance(decisions, SQLiteDecisionStore)
            assert isinstance(audit, SQLiteAuditLog)
        finally:
            decisions.close()
            comments.close()
            audit.close()

    def test_audit_disabled_uses_noop(self):
        _, _, audit = open_stores(_config(log_decisions=False))
        assert isinstance(audit, NoOpAuditLog)

    @pytest.mark.parametrize(
        "store, path, expected",
        [("memory", ".modlens.db", None), ("sqlite", "data/mod.db", "data/mod.db.fallback")],
    )
    def test_fallback_marker(self, store, path, expected):
        assert fallback_marker(_config(store=store, store_path=path)) == expected

    def test_build_scheduler_backend_override(self):
        config = _config(scheduler="deferred")
        assert isinstance(build_scheduler(config, lambda cid: None), ThreadedScheduler)
        assert isinstance(build_scheduler(config, lambda cid: None, "polling"), PollingScheduler)

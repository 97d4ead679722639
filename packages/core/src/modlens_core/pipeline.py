"""Wires stores, guard, moderator, scheduler and dispatcher together.

The comment store is the event bus: the guard's hold filter runs before
every insert, the dispatcher hears about every new comment, and the guard
sees every status write with its applied-by tag.
"""

from __future__ import annotations

import logging
from typing import Optional

from modlens_core.config import ModerationConfig, OptionsStore
from modlens_core.dispatcher import Dispatcher
from modlens_core.guard import TransitionGuard
from modlens_core.moderator import Moderator
from modlens_core.providers.base import BaseClassifier
from modlens_core.scheduler import BaseScheduler, FallbackSignal, PollingScheduler, ThreadedScheduler
from modlens_store.base import BaseAuditLog, BaseCommentStore, BaseDecisionStore
from modlens_store.memory import MemoryAuditLog, MemoryCommentStore, MemoryDecisionStore
from modlens_store.noop import NoOpAuditLog
from modlens_store.sqlite import SQLiteAuditLog, SQLiteCommentStore, SQLiteDecisionStore

logger = logging.getLogger(__name__)


def open_stores(config: ModerationConfig) -> tuple[BaseDecisionStore, BaseCommentStore, BaseAuditLog]:
    """Instantiate the configured backend. The audit log is a no-op when log_decisions is off."""
    if config.store == "memory":
        decisions, comments, audit = MemoryDecisionStore(), MemoryCommentStore(), MemoryAuditLog()
    else:
        decisions = SQLiteDecisionStore(config.store_path)
        comments = SQLiteCommentStore(config.store_path)
        audit = SQLiteAuditLog(config.store_path)
    if not config.log_decisions:
        audit.close()
        audit = NoOpAuditLog()
    return decisions, comments, audit


def fallback_marker(config: ModerationConfig) -> Optional[str]:
    """Where the fallback signal is kept so other processes can see it."""
    if config.store == "memory":
        return None
    return f"{config.store_path}.fallback"


def build_scheduler(config: ModerationConfig, handler, backend: Optional[str] = None) -> BaseScheduler:
    backend = backend or config.scheduler
    if backend == "polling":
        return PollingScheduler(handler, retry_delay=config.retry_delay)
    return ThreadedScheduler(handler, retry_delay=config.retry_delay)


class Pipeline:
    def __init__(
        self,
        config: ModerationConfig,
        decisions: BaseDecisionStore,
        comments: BaseCommentStore,
        audit: BaseAuditLog,
        classifier: Optional[BaseClassifier] = None,
        scheduler_backend: Optional[str] = None,
        options: Optional[OptionsStore] = None,
    ):
        self.config = config
        self.decisions = decisions
        self.comments = comments
        self.audit = audit

        fallback = FallbackSignal(path=fallback_marker(config))
        self.moderator = Moderator(config, decisions, comments, audit, classifier=classifier, fallback=fallback)
        self.guard = TransitionGuard(config, decisions, comments, audit)
        self.scheduler = build_scheduler(config, self.moderator.moderate, scheduler_backend)
        self.dispatcher = Dispatcher(config, self.moderator, self.scheduler)

        comments.add_creation_filter(self.guard.hold_filter)
        comments.on_created(self.dispatcher.on_comment_created)
        comments.on_status_change(self.guard.on_status_change)

        self.options = options
        if options is not None:
            options.subscribe("auto_moderation_enabled", self.refresh)

    @classmethod
    def from_options(cls, options: OptionsStore, **kwargs) -> "Pipeline":
        config = options.config
        decisions, comments, audit = open_stores(config)
        return cls(config, decisions, comments, audit, options=options, **kwargs)

    @property
    def fallback(self):
        return self.moderator.fallback

    def refresh(self, config: ModerationConfig) -> None:
        """Push a new options snapshot to every component."""
        self.config = config
        self.guard.refresh(config)
        self.dispatcher.refresh(config)

    def start(self) -> None:
        self.dispatcher.start()

    def close(self) -> None:
        self.dispatcher.stop()
        self.decisions.close()
        self.comments.close()
        self.audit.close()

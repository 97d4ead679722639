"""Decides whether and when a held comment gets moderated.

Entry points, all ending in Moderator.moderate():

* on_comment_created: a deferred unit a few seconds after creation.
* the periodic sweep: bounded, oldest-first batches of held comments.
* kick: a rate-limited request to run the sweep early (page views).
* tick: drives the polling backend, rate-limited.
* process_now: synchronous operator batch returning a summary.

When the scheduler cannot take work, the fallback signal is raised and a
direct retry is started on a timer so the comment is not lost; the sweep
picks up anything that still slips through.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from modlens_core.config import ModerationConfig
from modlens_core.moderator import BatchSummary, Moderator
from modlens_core.scheduler import BaseScheduler
from modlens_store.models import STATUS_PENDING, Comment

logger = logging.getLogger(__name__)


class Dispatcher:
    def __init__(
        self,
        config: ModerationConfig,
        moderator: Moderator,
        scheduler: BaseScheduler,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.moderator = moderator
        self.scheduler = scheduler
        self.fallback = moderator.fallback
        self._clock = clock
        self._last_kick: Optional[float] = None
        self._last_tick: Optional[float] = None
        self._timers: list[threading.Timer] = []
        scheduler.set_sweep(self.sweep)

    @property
    def active(self) -> bool:
        return self.config.auto_moderation_enabled and self.config.has_credentials

    # ------------------------------------------------------------------ #
    # Lifecycle                                                            #
    # ------------------------------------------------------------------ #

    def start(self) -> None:
        self.scheduler.start()
        self._sync_sweep()

    def stop(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()
        self.scheduler.stop()

    def refresh(self, config: ModerationConfig) -> None:
        self.config = config
        self.moderator.refresh(config)
        self.scheduler.retry_delay = config.retry_delay
        self._sync_sweep()

    def _sync_sweep(self) -> None:
        if self.active:
            if not self.scheduler.sweep_enabled:
                logger.info("Periodic sweep enabled every %ss", self.config.sweep_interval)
            self.scheduler.enable_sweep(self.config.sweep_interval)
        elif self.scheduler.sweep_enabled:
            logger.info("Periodic sweep disabled")
            self.scheduler.enable_sweep(None)

    def _retry_later(self, fn: Callable, *args) -> None:
        timer = threading.Timer(self.config.retry_delay, fn, args)
        timer.daemon = True
        self._timers = [t for t in self._timers if t.is_alive()]
        self._timers.append(timer)
        timer.start()

    # ------------------------------------------------------------------ #
    # Triggers                                                             #
    # ------------------------------------------------------------------ #

    def on_comment_created(self, comment: Comment) -> bool:
        """Schedule moderation for a freshly held comment. Returns True if queued."""
        if comment.status != STATUS_PENDING or not self.active:
            return False
        if self.moderator.decisions.get_for_comment(comment.id) is not None:
            return False
        if not self.moderator.is_eligible(comment):
            return False

        if not self.scheduler.healthy:
            self.fallback.set(f"scheduler unavailable for comment {comment.id}")
            self._retry_later(self.moderator.moderate, comment.id)
            return False
        return self.scheduler.schedule(comment.id, self.config.schedule_delay)

    def kick(self) -> bool:
        """Wake the sweep early if held comments are waiting. Rate-limited."""
        if not self.active:
            return False
        now = self._clock()
        if self._last_kick is not None and now - self._last_kick < self.config.kick_cooldown:
            return False
        if not self.moderator.has_backlog():
            return False
        self._last_kick = now

        if not self.scheduler.healthy:
            self.fallback.set("scheduler unavailable for sweep")
            self._retry_later(self.sweep)
            return False
        logger.debug("Kick: sweep requested")
        self.scheduler.request_sweep()
        return True

    def tick(self) -> int:
        """Run due work on the polling backend. Returns units executed."""
        now = self._clock()
        if self._last_tick is not None and now - self._last_tick < self.config.tick_cooldown:
            return 0
        self._last_tick = now
        return self.scheduler.run_due()

    # ------------------------------------------------------------------ #
    # Batches                                                              #
    # ------------------------------------------------------------------ #

    def sweep(self) -> BatchSummary:
        if not self.active:
            return BatchSummary()
        return self.moderator.run_batch(self.config.sweep_batch_size, self.config.sweep_pause)

    def process_now(self, limit: Optional[int] = None) -> BatchSummary:
        """Moderate held comments right now, regardless of the auto toggle."""
        return self.moderator.run_batch(limit or self.config.process_now_limit)

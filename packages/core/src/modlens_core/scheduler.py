"""Unified scheduler for deferred moderation units and the periodic sweep.

Two backends share one contract:

* ThreadedScheduler ("deferred"): a background worker thread sleeps until
  the next unit or sweep is due.
* PollingScheduler ("polling"): no thread; whoever owns it calls run_due()
  on its own cadence (page views, a CLI loop).

Contract for both: at most one outstanding unit per comment_id, units fire
no earlier than their due time, a unit whose handler raises is retried
once after retry_delay, and the sweep runs at most once per interval
unless explicitly requested.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

FALLBACK_TTL = 600.0

UnitHandler = Callable[[int], object]
SweepHandler = Callable[[], object]


class FallbackSignal:
    """Marks that background work could not be fired and should be run by hand.

    Expires on its own after ``ttl`` seconds; cleared as soon as any
    moderation unit runs. With a ``path`` the signal is kept in a marker
    file so other processes (``modlens status``) can see it.
    """

    def __init__(
        self,
        ttl: float = FALLBACK_TTL,
        path: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl = ttl
        self.path = Path(path) if path else None
        self._clock = clock
        self._raised_at: Optional[float] = None
        self.reason = ""

    def set(self, reason: str = "") -> None:
        self._raised_at = self._clock()
        self.reason = reason
        logger.warning("Background moderation fallback needed: %s", reason or "dispatch failed")
        if self.path is not None:
            self.path.write_text(f"{self._raised_at}\n{reason}\n")

    def clear(self) -> None:
        self._raised_at = None
        self.reason = ""
        if self.path is not None:
            self.path.unlink(missing_ok=True)

    def _load(self) -> None:
        if self.path is None:
            return
        try:
            raised_at, _, reason = self.path.read_text().partition("\n")
        except FileNotFoundError:
            return
        try:
            self._raised_at = float(raised_at)
        except ValueError:
            logger.warning("Ignoring unreadable fallback marker %s", self.path)
            return
        self.reason = reason.strip()

    @property
    def active(self) -> bool:
        if self.path is not None:
            # The marker file is authoritative; another process may have cleared it.
            self._raised_at = None
            self._load()
        if self._raised_at is None:
            return False
        if self._clock() - self._raised_at > self.ttl:
            self.clear()
            return False
        return True


class BaseScheduler:
    def __init__(
        self,
        handler: UnitHandler,
        retry_delay: float = 10,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.handler = handler
        self.retry_delay = retry_delay
        self._clock = clock
        self._cond = threading.Condition()
        self._queue: list[tuple[float, int, int]] = []
        self._due: dict[int, float] = {}
        self._retried: set[int] = set()
        self._seq = itertools.count()
        self._sweep: Optional[SweepHandler] = None
        self._sweep_interval: Optional[float] = None
        self._next_sweep: Optional[float] = None
        self._sweep_requested = False

    # ------------------------------------------------------------------ #
    # Units                                                                #
    # ------------------------------------------------------------------ #

    def schedule(self, comment_id: int, delay: float = 0) -> bool:
        """Queue a unit for ``comment_id``. Returns False if one is already outstanding."""
        with self._cond:
            if comment_id in self._due:
                return False
            due = self._clock() + delay
            self._due[comment_id] = due
            heapq.heappush(self._queue, (due, next(self._seq), comment_id))
            self._cond.notify()
        logger.debug("Scheduled comment %s in %.1fs", comment_id, delay)
        return True

    def is_scheduled(self, comment_id: int) -> bool:
        with self._cond:
            return comment_id in self._due

    def pending(self) -> list[tuple[int, float]]:
        """Outstanding (comment_id, due_time) pairs, soonest first."""
        with self._cond:
            return sorted(self._due.items(), key=lambda item: item[1])

    # ------------------------------------------------------------------ #
    # Sweep                                                                #
    # ------------------------------------------------------------------ #

    def set_sweep(self, sweep: SweepHandler) -> None:
        self._sweep = sweep

    def enable_sweep(self, interval: Optional[float]) -> None:
        """Run the sweep every ``interval`` seconds; None disables it."""
        with self._cond:
            self._sweep_interval = interval
            self._next_sweep = None if interval is None else self._clock() + interval
            self._cond.notify()

    @property
    def sweep_enabled(self) -> bool:
        return self._sweep_interval is not None

    def request_sweep(self) -> None:
        """Ask for a sweep on the next run_due(), ignoring the interval."""
        with self._cond:
            self._sweep_requested = True
            self._cond.notify()

    # ------------------------------------------------------------------ #
    # Execution                                                            #
    # ------------------------------------------------------------------ #

    def _pop_due(self, now: float) -> list[int]:
        ready = []
        while self._queue and self._queue[0][0] <= now:
            _, _, comment_id = heapq.heappop(self._queue)
            if self._due.pop(comment_id, None) is not None:
                ready.append(comment_id)
        return ready

    def _sweep_due(self, now: float) -> bool:
        if self._sweep is None:
            return False
        if self._sweep_requested:
            return True
        return self._next_sweep is not None and now >= self._next_sweep

    def run_due(self, now: Optional[float] = None) -> int:
        """Run every unit whose time has come, then the sweep if it is due.

        Returns the number of units executed.
        """
        now = self._clock() if now is None else now
        with self._cond:
            ready = self._pop_due(now)
            run_sweep = self._sweep_due(now)
            if run_sweep:
                self._sweep_requested = False
                if self._sweep_interval is not None:
                    self._next_sweep = now + self._sweep_interval

        for comment_id in ready:
            self._run_unit(comment_id)
        if run_sweep:
            try:
                self._sweep()
            except Exception:
                logger.exception("Moderation sweep failed")
        return len(ready)

    def _run_unit(self, comment_id: int) -> None:
        try:
            self.handler(comment_id)
        except Exception:
            logger.exception("Moderation unit for comment %s failed", comment_id)
            if comment_id in self._retried:
                # Left to the sweep from here on.
                self._retried.discard(comment_id)
                return
            self._retried.add(comment_id)
            self.schedule(comment_id, self.retry_delay)
        else:
            self._retried.discard(comment_id)

    def _next_wakeup(self) -> Optional[float]:
        candidates = []
        if self._queue:
            candidates.append(self._queue[0][0])
        if self._sweep is not None and self._next_sweep is not None:
            candidates.append(self._next_sweep)
        return min(candidates) if candidates else None

    # ------------------------------------------------------------------ #
    # Lifecycle                                                            #
    # ------------------------------------------------------------------ #

    @property
    def healthy(self) -> bool:
        return True

    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass


class PollingScheduler(BaseScheduler):
    """Backend with no thread of its own; the owner drives run_due()."""


class ThreadedScheduler(BaseScheduler):
    """Backend with a daemon worker thread that waits for the next due time."""

    def __init__(self, handler: UnitHandler, retry_delay: float = 10, clock: Callable[[], float] = time.monotonic):
        super().__init__(handler, retry_delay=retry_delay, clock=clock)
        self._thread: Optional[threading.Thread] = None
        self._stopping = False

    @property
    def healthy(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.healthy:
            return
        self._stopping = False
        self._thread = threading.Thread(target=self._loop, name="modlens-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        with self._cond:
            self._stopping = True
            self._cond.notify_all()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        while True:
            with self._cond:
                while not self._stopping:
                    now = self._clock()
                    if self._sweep_requested and self._sweep is not None:
                        break
                    wakeup = self._next_wakeup()
                    if wakeup is not None and wakeup <= now:
                        break
                    self._cond.wait(None if wakeup is None else wakeup - now)
                if self._stopping:
                    return
            self.run_due()

"""Tests for the unified scheduler and the fallback signal."""

import threading

import pytest

from modlens_core.scheduler import FallbackSignal, PollingScheduler, ThreadedScheduler


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def _polling(clock, handler=None, retry_delay=10):
    calls = []
    scheduler = PollingScheduler(handler or calls.append, retry_delay=retry_delay, clock=clock)
    return scheduler, calls


class TestUnits:
    def test_schedule_deduplicates_by_comment(self, clock):
        scheduler, _ = _polling(clock)
        assert scheduler.schedule(1, 5) is True
        assert scheduler.schedule(1, 5) is False
        assert scheduler.is_scheduled(1)
        assert scheduler.pending() == [(1, 5)]

    def test_units_fire_no_earlier_than_due(self, clock):
        scheduler, calls = _polling(clock)
        scheduler.schedule(1, 5)
        scheduler.schedule(2, 1)

        assert scheduler.run_due(now=0.5) == 0
        assert scheduler.run_due(now=1) == 1
        assert calls == [2]
        assert scheduler.run_due(now=10) == 1
        assert calls == [2, 1]
        assert scheduler.pending() == []

    def test_can_reschedule_after_firing(self, clock):
        scheduler, calls = _polling(clock)
        scheduler.schedule(1, 0)
        scheduler.run_due()
        assert scheduler.schedule(1, 0) is True

    def test_pending_sorted_by_due_time(self, clock):
        scheduler, _ = _polling(clock)
        scheduler.schedule(1, 30)
        scheduler.schedule(2, 10)
        assert [cid for cid, _ in scheduler.pending()] == [2, 1]

    def test_failed_unit_is_retried_once(self, clock):
        attempts = []

        def _boom(comment_id):
            attempts.append(comment_id)
            raise RuntimeError("dispatch failed")

        scheduler, _ = _polling(clock, handler=_boom, retry_delay=10)
        scheduler.schedule(7, 0)
        scheduler.run_due()
        assert scheduler.pending() == [(7, 10)]

        clock.now = 10
        scheduler.run_due()
        assert attempts == [7, 7]
        assert scheduler.pending() == []

    def test_retry_budget_resets_after_success(self, clock):
        outcomes = [RuntimeError("x"), None, RuntimeError("y")]

        def _handler(comment_id):
            out = outcomes.pop(0)
            if out:
                raise out

        scheduler, _ = _polling(clock, handler=_handler, retry_delay=1)
        scheduler.schedule(1, 0)
        scheduler.run_due()
        clock.now = 1
        scheduler.run_due()
        scheduler.schedule(1, 0)
        scheduler.run_due()
        assert scheduler.is_scheduled(1)


class TestSweep:
    def test_runs_on_interval(self, clock):
        scheduler, _ = _polling(clock)
        sweeps = []
        scheduler.set_sweep(lambda: sweeps.append(clock.now))
        scheduler.enable_sweep(120)

        scheduler.run_due(now=119)
        assert sweeps == []
        clock.now = 120
        scheduler.run_due()
        clock.now = 200
        scheduler.run_due()
        clock.now = 240
        scheduler.run_due()
        assert sweeps == [120, 240]

    def test_disabled_sweep_never_runs(self, clock):
        scheduler, _ = _polling(clock)
        sweeps = []
        scheduler.set_sweep(lambda: sweeps.append(1))
        scheduler.enable_sweep(60)
        scheduler.enable_sweep(None)
        assert scheduler.sweep_enabled is False
        scheduler.run_due(now=1000)
        assert sweeps == []

    def test_request_runs_sweep_once(self, clock):
        scheduler, _ = _polling(clock)
        sweeps = []
        scheduler.set_sweep(lambda: sweeps.append(1))
        scheduler.request_sweep()
        scheduler.run_due()
        scheduler.run_due()
        assert sweeps == [1]

    def test_sweep_errors_are_contained(self, clock):
        scheduler, calls = _polling(clock)

        def _broken():
            raise RuntimeError("db locked")

        scheduler.set_sweep(_broken)
        scheduler.schedule(1, 0)
        scheduler.request_sweep()
        assert scheduler.run_due() == 1
        assert calls == [1]


class TestBackends:
    def test_polling_is_always_healthy(self, clock):
        scheduler, _ = _polling(clock)
        assert scheduler.healthy is True

    def test_threaded_scheduler_runs_units_in_background(self):
        fired = threading.Event()
        seen = []

        def _handler(comment_id):
            seen.append(comment_id)
            fired.set()

        scheduler = ThreadedScheduler(_handler)
        assert scheduler.healthy is False
        scheduler.start()
        try:
            assert scheduler.healthy is True
            scheduler.schedule(3, 0.01)
            assert fired.wait(2.0)
            assert seen == [3]
        finally:
            scheduler.stop()
        assert scheduler.healthy is False

    def test_threaded_scheduler_runs_requested_sweep(self):
        swept = threading.Event()
        scheduler = ThreadedScheduler(lambda comment_id: None)
        scheduler.set_sweep(swept.set)
        scheduler.start()
        try:
            scheduler.request_sweep()
            assert swept.wait(2.0)
        finally:
            scheduler.stop()


class TestFallbackSignal:
    def test_set_and_clear(self, clock):
        signal = FallbackSignal(clock=clock)
        assert signal.active is False
        signal.set("scheduler down")
        assert signal.active is True
        assert signal.reason == "scheduler down"
        signal.clear()
        assert signal.active is False

    def test_expires_after_ttl(self, clock):
        signal = FallbackSignal(ttl=600, clock=clock)
        signal.set()
        clock.now = 600
        assert signal.active is True
        clock.now = 601
        assert signal.active is False

    def test_marker_file_is_shared(self, tmp_path, clock):
        marker = str(tmp_path / "db.fallback")
        FallbackSignal(path=marker, clock=clock).set("loopback failed")

        other = FallbackSignal(path=marker, clock=clock)
        assert other.active is True
        assert other.reason == "loopback failed"

        other.clear()
        assert not (tmp_path / "db.fallback").exists()
        assert FallbackSignal(path=marker, clock=clock).active is False

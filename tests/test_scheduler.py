"""
Unit tests for the reconciliation scheduler.
"""
import threading
import time
from unittest.mock import Mock

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config.settings import AppConfig
from src.notifications.checkout_digest import CheckoutDigest
from src.reconciliation.engine import ReconciliationEngine
from src.scheduler.jobs import (
    CALENDAR_SYNC, CHECKOUT_DIGEST, MAILBOX_POLL, ReconciliationScheduler, ScheduledTask
)


@pytest.fixture
def engine():
    return Mock(spec=ReconciliationEngine)


@pytest.fixture
def digest():
    return Mock(spec=CheckoutDigest)


@pytest.fixture
def scheduler(engine, digest):
    config = AppConfig(default_timezone="Europe/Prague", calendar_sync_minutes=15,
                       mailbox_poll_minutes=5, checkout_digest_hour=9)
    scheduler = ReconciliationScheduler.from_components(engine, digest, config)
    scheduler.scheduler = Mock()
    return scheduler


class TestScheduledTask:

    def test_run_once_success(self):
        func = Mock()

        assert ScheduledTask("job", func, IntervalTrigger(minutes=1)).run_once() is True
        func.assert_called_once_with()

    def test_run_once_swallows_errors(self):
        func = Mock(side_effect=RuntimeError("database unavailable"))

        assert ScheduledTask("job", func, IntervalTrigger(minutes=1)).run_once() is False


class TestReconciliationScheduler:

    def test_builds_three_cadences(self, scheduler, engine, digest):
        tasks = scheduler.tasks

        assert set(tasks) == {CALENDAR_SYNC, MAILBOX_POLL, CHECKOUT_DIGEST}
        assert tasks[CALENDAR_SYNC].func == engine.sync_calendars
        assert tasks[MAILBOX_POLL].func == engine.process_mailbox
        assert tasks[CHECKOUT_DIGEST].func == digest.run
        assert tasks[MAILBOX_POLL].trigger.interval.total_seconds() == 300
        assert isinstance(tasks[CHECKOUT_DIGEST].trigger, CronTrigger)
        assert str(scheduler.timezone) == "Europe/Prague"

    def test_start_registers_non_overlapping_jobs(self, scheduler):
        scheduler.start()

        assert scheduler.scheduler.add_job.call_count == 3
        for call in scheduler.scheduler.add_job.call_args_list:
            assert call.kwargs["max_instances"] == 1
            assert call.kwargs["coalesce"] is True
            assert "next_run_time" in call.kwargs
        scheduler.scheduler.start.assert_called_once()

    def test_start_without_immediate_run(self, scheduler):
        scheduler.start(run_immediately=False)

        for call in scheduler.scheduler.add_job.call_args_list:
            assert "next_run_time" not in call.kwargs

    def test_trigger_now_adds_one_off_job(self, scheduler):
        scheduler.scheduler.running = True

        scheduler.trigger_now(MAILBOX_POLL)

        call = scheduler.scheduler.add_job.call_args
        assert call.args[0] == scheduler.tasks[MAILBOX_POLL].run_once
        assert call.kwargs["trigger"] == "date"
        assert call.kwargs["id"] == f"{MAILBOX_POLL}-on-demand"

    def test_trigger_before_start_runs_inline(self, engine, digest):
        scheduler = ReconciliationScheduler.from_components(engine, digest, AppConfig(default_timezone="UTC"))

        scheduler.trigger_now(MAILBOX_POLL)

        engine.process_mailbox.assert_called_once_with()

    def test_trigger_unknown_task(self, scheduler):
        with pytest.raises(KeyError):
            scheduler.trigger_now("backup")

    def test_registered_job_runs_cycle(self, scheduler, engine):
        scheduler.start()
        job_func = next(call.args[0] for call in scheduler.scheduler.add_job.call_args_list
                        if call.kwargs["id"] == CALENDAR_SYNC)

        assert job_func() is True
        engine.sync_calendars.assert_called_once_with()


def _wait_for(condition, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return False


class BlockingCycle:
    """Cycle that holds its first run until released and records overlap."""

    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()
        self.runs = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            self.runs += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.started.set()
        self.release.wait(5)
        with self._lock:
            self.active -= 1


class TestOnDemandRuns:

    def test_run_requested_during_run_is_queued(self):
        cycle = BlockingCycle()
        task = ScheduledTask("job", cycle, IntervalTrigger(hours=1))
        worker = threading.Thread(target=task.run_once)
        worker.start()
        assert cycle.started.wait(5)

        assert task.run_once() is False
        cycle.release.set()
        worker.join(5)

        assert cycle.runs == 2
        assert cycle.max_active == 1
        assert task.running is False

    def test_background_scheduler_runs_immediately_and_honours_trigger(self):
        cycle = BlockingCycle()
        scheduler = ReconciliationScheduler([ScheduledTask("job", cycle, IntervalTrigger(hours=1))],
                                            timezone="UTC")
        scheduler.start()
        try:
            assert cycle.started.wait(5)
            assert scheduler.next_run_time("job") is not None

            scheduler.trigger_now("job")
            assert _wait_for(lambda: scheduler.tasks["job"]._pending.is_set()
                             or scheduler.scheduler.get_job("job-on-demand") is None)
            cycle.release.set()

            assert _wait_for(lambda: cycle.runs == 2)
            assert _wait_for(lambda: not scheduler.tasks["job"].running)
        finally:
            cycle.release.set()
            scheduler.shutdown(wait=True)

        assert cycle.runs == 2
        assert cycle.max_active == 1

"""
Recurring reconciliation tasks on APScheduler.

Usage:
    scheduler = ReconciliationScheduler.from_components(engine, digest)
    scheduler.run_forever()
"""
import signal
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from pytz import timezone as pytz_timezone

from ..notifications.checkout_digest import CheckoutDigest
from ..reconciliation.engine import ReconciliationEngine
from ..utils.logger import get_logger
from config.settings import AppConfig, app_config

CALENDAR_SYNC = "calendar_sync"
MAILBOX_POLL = "mailbox_poll"
CHECKOUT_DIGEST = "checkout_digest"


@dataclass
class ScheduledTask:
    """One cadence: a cycle entry point and the trigger that drives it.

    A run requested while the cycle is already executing is queued and
    performed right after it, so the task never overlaps itself and no
    request is lost.
    """
    name: str
    func: Callable[[], object]
    trigger: BaseTrigger
    _running: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)
    _pending: threading.Event = field(default_factory=threading.Event, init=False, repr=False, compare=False)

    @property
    def running(self) -> bool:
        return self._running.locked()

    def run_once(self) -> bool:
        """Run the cycle, or queue it when already running.

        Returns whether the last run performed by this call succeeded; a call
        that only queued a run returns False.
        """
        self._pending.set()
        succeeded = False
        while self._pending.is_set() and self._running.acquire(blocking=False):
            try:
                self._pending.clear()
                succeeded = self._execute()
            finally:
                self._running.release()
        if self._pending.is_set() and self.running:
            get_logger("scheduler").info("Task already running, run queued", task=self.name)
        return succeeded

    def _execute(self) -> bool:
        # Errors are logged and never propagate to the scheduler
        logger = get_logger("scheduler")
        started = datetime.now()
        logger.info("Task started", task=self.name)
        try:
            self.func()
        except Exception as e:
            logger.error("Task failed", task=self.name, error=str(e), error_type=type(e).__name__)
            return False
        logger.info("Task finished", task=self.name,
                    seconds=round((datetime.now() - started).total_seconds(), 2))
        return True


class ReconciliationScheduler:
    """Owns the background scheduler and the three reconciliation cadences."""

    def __init__(self, tasks: List[ScheduledTask], timezone: str = app_config.default_timezone):
        self.logger = get_logger("scheduler")
        self.timezone = pytz_timezone(timezone)
        self.tasks: Dict[str, ScheduledTask] = {task.name: task for task in tasks}
        self.scheduler = BackgroundScheduler(timezone=self.timezone)
        self._stop = threading.Event()

    @classmethod
    def from_components(cls, engine: ReconciliationEngine, digest: CheckoutDigest,
                        config: AppConfig = app_config) -> 'ReconciliationScheduler':
        tz = pytz_timezone(config.default_timezone)
        tasks = [
            ScheduledTask(CALENDAR_SYNC, engine.sync_calendars,
                          IntervalTrigger(minutes=config.calendar_sync_minutes, timezone=tz)),
            ScheduledTask(MAILBOX_POLL, engine.process_mailbox,
                          IntervalTrigger(minutes=config.mailbox_poll_minutes, timezone=tz)),
            ScheduledTask(CHECKOUT_DIGEST, digest.run,
                          CronTrigger(hour=config.checkout_digest_hour, minute=0, timezone=tz)),
        ]
        return cls(tasks, timezone=config.default_timezone)

    def start(self, run_immediately: bool = True):
        """Register every task and start the scheduler."""
        now = datetime.now(self.timezone)
        for task in self.tasks.values():
            job_kwargs = {}
            if run_immediately:
                job_kwargs["next_run_time"] = now
            self.scheduler.add_job(
                task.run_once,
                trigger=task.trigger,
                id=task.name,
                name=task.name,
                max_instances=1,
                coalesce=True,
                replace_existing=True,
                **job_kwargs,
            )
        self.scheduler.start()
        self.logger.info("Scheduler started", tasks=list(self.tasks))

    def trigger_now(self, name: str):
        """Run a task immediately, or right after its current run.

        Before ``start()`` the task runs in the calling thread. Raises KeyError
        for an unknown task.
        """
        if name not in self.tasks:
            raise KeyError(f"Unknown task: {name}")
        task = self.tasks[name]

        if not self.scheduler.running:
            self.logger.info("Task triggered on demand, scheduler not running", task=name)
            task.run_once()
            return

        # A one-off job outside the cadence job's max_instances; run_once queues
        # it behind a run already in progress
        self.scheduler.add_job(
            task.run_once,
            trigger="date",
            run_date=datetime.now(self.timezone),
            id=f"{name}-on-demand",
            name=f"{name} (on demand)",
            replace_existing=True,
        )
        self.logger.info("Task triggered on demand", task=name, running=task.running)

    def next_run_time(self, name: str) -> Optional[datetime]:
        job = self.scheduler.get_job(name)
        return job.next_run_time if job else None

    def shutdown(self, wait: bool = True):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            self.logger.info("Scheduler stopped")
        self._stop.set()

    def run_forever(self):
        """Start and block until SIGINT or SIGTERM, then shut down cleanly."""

        def _handle_signal(signum, frame):
            self.logger.info("Shutdown requested", signal=signum)
            self._stop.set()

        signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)

        self.start()
        try:
            self._stop.wait()
        finally:
            self.shutdown(wait=True)

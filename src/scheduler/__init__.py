"""
Recurring task scheduling.
"""

from .jobs import (
    ReconciliationScheduler, ScheduledTask, CALENDAR_SYNC, MAILBOX_POLL, CHECKOUT_DIGEST
)

__all__ = [
    'ReconciliationScheduler', 'ScheduledTask', 'CALENDAR_SYNC', 'MAILBOX_POLL', 'CHECKOUT_DIGEST'
]

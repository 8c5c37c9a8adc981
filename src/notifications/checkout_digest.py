"""
Daily digest of tomorrow's checkouts.
"""
from datetime import date, datetime, timedelta
from typing import Optional

from pytz import timezone as pytz_timezone

from .notifier import Notifier
from ..storage.base import ReservationStore
from ..utils.logger import ReconciliationLogger, get_logger
from ..utils.models import CycleReport, RuntimeSettings
from config.settings import app_config


class CheckoutDigest:
    """Notifies staff about every reservation departing tomorrow."""

    def __init__(self, store: ReservationStore, notifier: Notifier,
                 timezone: str = app_config.default_timezone):
        self.store = store
        self.notifier = notifier
        self.timezone = pytz_timezone(timezone)
        self.logger = get_logger("checkout_digest")

    def today(self) -> date:
        """Current date in the scheduler's timezone."""
        return datetime.now(self.timezone).date()

    def run(self, today: Optional[date] = None, settings: Optional[RuntimeSettings] = None) -> CycleReport:
        cycle = ReconciliationLogger(self.logger, "checkout_digest")
        settings = settings or self.store.get_runtime_settings()
        tomorrow = (today or self.today()) + timedelta(days=1)

        reservations = self.store.get_reservations_departing_on(tomorrow)
        if not reservations:
            self.logger.info("No checkouts tomorrow", date=tomorrow.isoformat())
            return cycle.print_summary()

        self.logger.info("Found checkouts for tomorrow", count=len(reservations), date=tomorrow.isoformat())
        property_names = {}
        for reservation in reservations:
            cycle.report.processed += 1
            try:
                if reservation.property_id not in property_names:
                    prop = self.store.get_property(reservation.property_id)
                    property_names[reservation.property_id] = prop.name if prop else reservation.property_id

                self.notifier.notify_checkout_tomorrow(
                    reservation,
                    property_names[reservation.property_id],
                    self.store.get_notes(reservation.id),
                    self.store.get_special_requests(reservation.id),
                    settings,
                )
            except Exception as e:
                cycle.log_error(e, f"Checkout notification failed: {reservation.id}")

        return cycle.print_summary()

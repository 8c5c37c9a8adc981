"""
Reconciliation engine: the single writer of reservation rows.

Calendar events are upserted by ``(property_id, external_id)`` with the feed
authoritative for dates. Guest emails are classified by subject, run through
the extractor, matched to a reservation by guest name and merged field by
field, where an extracted value only replaces the stored one when present.
A successful merge clears ``missing_info`` for good.
"""
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..calendar_feed.ical_client import ICalFeedClient
from ..email_reader.imap_client import ImapMailboxClient
from ..llm.extractor import ReservationExtractor
from ..notifications.notifier import Notifier
from ..storage.base import ReservationStore
from ..utils.errors import DuplicateReservationError, StoreError
from ..utils.logger import ReconciliationLogger, get_logger
from ..utils.models import (
    CalendarEvent, EmailData, ExtractedReservationData, Property, ReconcileOutcome,
    RequestItem, RequestStatus, Reservation, RuntimeSettings, SpecialRequest, UNKNOWN_GUEST, UpsertOutcome,
    CycleReport
)
from config.settings import app_config

MERGE_FIELDS = ("guest_count", "contact_phone", "wellness_fee", "safebox_password", "arrival_time")

MailboxFactory = Callable[[RuntimeSettings], ImapMailboxClient]


def merge_extracted(reservation: Reservation, extracted: ExtractedReservationData) -> Dict[str, Any]:
    """Field changes for a merge: non-null extracted values win, missing_info is cleared."""
    changes = {}
    for field_name in MERGE_FIELDS:
        value = getattr(extracted, field_name)
        changes[field_name] = value if value is not None else getattr(reservation, field_name)
    changes["missing_info"] = False
    return changes


def select_match(candidates: Sequence[Reservation]) -> Optional[Reservation]:
    """Prefer reservations still waiting for guest details, then the first by arrival."""
    if not candidates:
        return None
    for candidate in candidates:
        if candidate.missing_info:
            return candidate
    return candidates[0]


class ReconciliationEngine:
    """Upserts calendar events and merges email-extracted details into reservations."""

    def __init__(
        self,
        store: ReservationStore,
        notifier: Optional[Notifier] = None,
        feed_client: Optional[ICalFeedClient] = None,
        extractor: Optional[ReservationExtractor] = None,
        mailbox_factory: Optional[MailboxFactory] = None,
        reservation_keywords: Sequence[str] = app_config.reservation_keywords,
    ):
        self.store = store
        self.notifier = notifier or Notifier()
        self.feed_client = feed_client or ICalFeedClient()
        self.extractor = extractor or ReservationExtractor()
        self.mailbox_factory = mailbox_factory or ImapMailboxClient
        self.reservation_keywords = tuple(reservation_keywords)
        self.logger = get_logger("reconciliation_engine")

    # Calendar feed

    def upsert_event(self, prop: Property, event: CalendarEvent,
                     settings: RuntimeSettings) -> UpsertOutcome:
        """Create the reservation for a feed event, or align an existing one with the feed."""
        existing = self.store.get_reservation_by_external_id(prop.id, event.external_id)

        if existing is None:
            try:
                created = self.store.create_reservation(Reservation(
                    property_id=prop.id,
                    external_id=event.external_id,
                    guest_name=event.guest_name,
                    arrival_date=event.start_date,
                    departure_date=event.end_date,
                    missing_info=True,
                ))
            except DuplicateReservationError:
                # Created concurrently by another tick; continue on the update path
                existing = self.store.get_reservation_by_external_id(prop.id, event.external_id)
                if existing is None:
                    raise
            else:
                self.notifier.notify_new_reservation(created, prop.name, settings)
                return UpsertOutcome.CREATED

        changes = self._feed_changes(existing, event)
        if not changes:
            return UpsertOutcome.UNCHANGED

        self.store.update_reservation(existing.id, changes)
        return UpsertOutcome.UPDATED

    def _feed_changes(self, existing: Reservation, event: CalendarEvent) -> Dict[str, Any]:
        changes = {}
        if existing.arrival_date != event.start_date or existing.departure_date != event.end_date:
            changes["arrival_date"] = event.start_date
            changes["departure_date"] = event.end_date
        # Only the placeholder name may be replaced by a feed guess
        if (existing.missing_info and existing.guest_name == UNKNOWN_GUEST
                and event.guest_name != UNKNOWN_GUEST):
            changes["guest_name"] = event.guest_name
        return changes

    def sync_property(self, prop: Property, settings: RuntimeSettings,
                      cycle: ReconciliationLogger) -> None:
        events = self.feed_client.get_events(prop.ical_url)
        self.logger.info("Syncing reservations", property=prop.name, events=len(events))

        for event in events:
            cycle.report.processed += 1
            try:
                outcome = self.upsert_event(prop, event, settings)
            except (StoreError, ValueError) as e:
                cycle.log_error(e, f"Upsert failed: {prop.name}/{event.external_id}")
                continue

            if outcome == UpsertOutcome.CREATED:
                cycle.log_created(prop.name, event.external_id, event.guest_name)
            elif outcome == UpsertOutcome.UPDATED:
                cycle.log_updated(event.external_id, property=prop.name,
                                  arrival_date=event.start_date.isoformat(),
                                  departure_date=event.end_date.isoformat())
            else:
                cycle.log_unchanged()

    def sync_calendars(self, settings: Optional[RuntimeSettings] = None) -> CycleReport:
        """Run one calendar sync over every property; failures stay local to a property."""
        cycle = ReconciliationLogger(self.logger, "calendar_sync")
        settings = settings or self.store.get_runtime_settings()
        self.logger.info("Starting iCal sync")

        for prop in self.store.get_properties():
            if not prop.ical_url:
                cycle.log_skipped("Property has no calendar feed", property=prop.name)
                continue
            try:
                self.sync_property(prop, settings, cycle)
            except Exception as e:
                cycle.log_error(e, f"Calendar sync failed for property {prop.name}")

        return cycle.print_summary()

    # Guest emails

    def is_reservation_email(self, subject: Optional[str]) -> bool:
        return any(keyword in (subject or "") for keyword in self.reservation_keywords)

    def reconcile_email(self, email_data: EmailData, settings: RuntimeSettings) -> ReconcileOutcome:
        """Match one email to a reservation and merge its details."""
        if not self.is_reservation_email(email_data.subject):
            self.logger.debug("Ignoring non-reservation email", subject=email_data.subject)
            return ReconcileOutcome.IGNORED

        self.logger.info("Processing reservation email", subject=email_data.subject)
        extracted = self.extractor.extract(email_data.body_text, settings.openai_api_key)
        if not extracted.guest_name:
            self.logger.warning("Could not extract guest name from email",
                                email_id=email_data.email_id,
                                extraction_failed=extracted.extraction_failed)
            return ReconcileOutcome.NO_GUEST_NAME

        candidates = self.store.find_reservations_by_guest_name(extracted.guest_name)
        reservation = select_match(candidates)
        if reservation is None:
            self.logger.warning("No matching reservation found", guest_name=extracted.guest_name)
            return ReconcileOutcome.NO_MATCH
        if len(candidates) > 1:
            self.logger.info("Several reservations match guest name", guest_name=extracted.guest_name,
                             candidates=len(candidates), chosen=reservation.id)

        updated = self.store.update_reservation(reservation.id, merge_extracted(reservation, extracted))
        # The email counts as processed once the merge is stored; request
        # inserts fail one at a time
        added = self._add_special_requests(reservation.id, extracted)
        self.logger.info("Updated reservation with data from email", reservation_id=reservation.id,
                         guest_name=updated.guest_name)

        prop = self.store.get_property(updated.property_id)
        self.notifier.notify_reservation_updated(
            updated,
            prop.name if prop else updated.property_id,
            added,
            settings,
        )
        return ReconcileOutcome.MERGED

    def _add_special_requests(self, reservation_id: str,
                              extracted: ExtractedReservationData) -> List[RequestItem]:
        added = []
        for item in extracted.special_requests:
            try:
                self.store.create_special_request(SpecialRequest(
                    reservation_id=reservation_id,
                    request_type=item.type,
                    description=item.description,
                    status=RequestStatus.PENDING,
                ))
            except StoreError as e:
                self.logger.error("Failed to add special request", reservation_id=reservation_id,
                                  request_type=item.type, error=str(e))
                continue
            added.append(item)
        if added:
            self.logger.info("Added special requests", reservation_id=reservation_id, count=len(added))
        return added

    def process_mailbox(self, settings: Optional[RuntimeSettings] = None) -> CycleReport:
        """Poll the mailbox once and reconcile every fetched email."""
        cycle = ReconciliationLogger(self.logger, "mailbox_poll")
        settings = settings or self.store.get_runtime_settings()

        if not settings.mailbox_configured:
            self.logger.warning("Email settings not configured")
            cycle.report.disabled = True
            return cycle.report
        if not settings.extractor_configured:
            self.logger.warning("OpenAI API key not configured")
            cycle.report.disabled = True
            return cycle.report

        mailbox = self.mailbox_factory(settings)
        if not mailbox.connect():
            cycle.log_error(ConnectionError(f"Could not connect to {settings.email_server}"), "Mailbox connect")
            return cycle.print_summary()

        try:
            emails = mailbox.fetch_emails()
            self.logger.info("Found emails to process", count=len(emails))

            for email_data in emails:
                cycle.report.processed += 1
                try:
                    outcome = self.reconcile_email(email_data, settings)
                except Exception as e:
                    cycle.log_error(e, f"Email processing failed: {email_data.email_id}")
                    continue

                if outcome == ReconcileOutcome.IGNORED:
                    continue
                if outcome == ReconcileOutcome.MERGED:
                    cycle.log_merged(email_data.email_id, subject=email_data.subject)
                else:
                    cycle.log_skipped("Email not merged", email_id=email_data.email_id,
                                      outcome=outcome.value)
                mailbox.mark_as_read(email_data.email_id)
        finally:
            mailbox.disconnect()

        return cycle.print_summary()

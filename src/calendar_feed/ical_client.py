"""
Calendar feed client for reading per-property iCalendar booking feeds.
"""
import re
from datetime import date, datetime
from typing import List, Optional

import requests
from icalendar import Calendar

from ..utils.errors import FeedError
from ..utils.logger import get_logger
from ..utils.models import CalendarEvent, UNKNOWN_GUEST
from config.settings import app_config

SUMMARY_NAME_PATTERN = re.compile(r'Reservation for (.+?)(?: -|$)', re.IGNORECASE)
DESCRIPTION_NAME_PATTERN = re.compile(r'Guest: (.+?)(?:\n|$)', re.IGNORECASE)


def extract_guest_name(summary: Optional[str], description: Optional[str]) -> str:
    """Guess the guest name from an event's summary or description."""
    match = SUMMARY_NAME_PATTERN.search(summary or "")
    if not match:
        match = DESCRIPTION_NAME_PATTERN.search(description or "")
    if match and match.group(1).strip():
        return match.group(1).strip()
    return UNKNOWN_GUEST


def _to_date(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


class ICalFeedClient:
    """Fetches and parses booking events from iCalendar feeds."""

    def __init__(self, timeout: Optional[int] = None, session: Optional[requests.Session] = None):
        self.logger = get_logger("ical_client")
        self.timeout = timeout or app_config.http_timeout_seconds
        self.session = session or requests.Session()

    def fetch_feed(self, url: str) -> bytes:
        """Download the raw calendar markup."""
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            self.logger.error("Failed to fetch calendar feed", url=url, error=str(e))
            raise FeedError(f"Failed to fetch calendar feed: {e}", url=url) from e
        return response.content

    def parse_feed(self, data: bytes) -> List[CalendarEvent]:
        """
        Parse calendar markup into booking events.

        Only VEVENT components are considered. Events without a UID or start
        date, or ending before they start, are skipped.

        Raises:
            FeedError: if the markup is not a calendar at all
        """
        try:
            calendar = Calendar.from_ical(data)
        except ValueError as e:
            raise FeedError(f"Invalid calendar data: {e}") from e

        events = []
        for component in calendar.walk("VEVENT"):
            uid = str(component.get("UID", "")).strip()
            dtstart = component.get("DTSTART")
            dtend = component.get("DTEND")

            start_date = _to_date(dtstart.dt) if dtstart else None
            end_date = _to_date(dtend.dt) if dtend else start_date

            if not uid or not start_date:
                self.logger.warning("Skipping calendar event without UID or start", uid=uid or None)
                continue
            if end_date < start_date:
                self.logger.warning("Skipping calendar event ending before it starts",
                                    uid=uid, start=start_date.isoformat(), end=end_date.isoformat())
                continue

            summary = str(component.get("SUMMARY", "")) or None
            description = str(component.get("DESCRIPTION", "")) or None
            events.append(CalendarEvent(
                external_id=uid,
                guest_name=extract_guest_name(summary, description),
                start_date=start_date,
                end_date=end_date,
                summary=summary,
                description=description,
            ))

        self.logger.debug("Parsed calendar feed", events=len(events))
        return events

    def get_events(self, url: str) -> List[CalendarEvent]:
        """Fetch and parse a feed."""
        return self.parse_feed(self.fetch_feed(url))

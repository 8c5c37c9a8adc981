"""
Shared fixtures: an in-memory reservation store and sample records.
"""
import itertools
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from unittest.mock import Mock

import pytest

from src.storage.base import ReservationStore
from src.utils.errors import DuplicateReservationError
from src.utils.models import (
    Note, NotificationResult, NotificationStatus, Property, RequestStatus, Reservation,
    RuntimeSettings, SpecialRequest
)


class InMemoryStore(ReservationStore):
    """Dict-backed store honouring the (property_id, external_id) uniqueness."""

    def __init__(self, properties: Optional[List[Property]] = None, settings: Optional[Dict[str, str]] = None):
        self.properties = {p.id: p for p in properties or []}
        self.reservations: Dict[str, Reservation] = {}
        self.notes: List[Note] = []
        self.requests: Dict[str, SpecialRequest] = {}
        self.settings = dict(settings or {})
        self._ids = itertools.count(1)

    def _next_id(self) -> str:
        return str(next(self._ids))

    def get_properties(self):
        return sorted(self.properties.values(), key=lambda p: p.name)

    def get_property(self, property_id):
        return self.properties.get(property_id)

    def get_reservation(self, reservation_id):
        found = self.reservations.get(reservation_id)
        return replace(found) if found else None

    def _find(self, property_id, external_id):
        for reservation in self.reservations.values():
            if reservation.property_id == property_id and reservation.external_id == external_id:
                return reservation
        return None

    def get_reservation_by_external_id(self, property_id, external_id):
        found = self._find(property_id, external_id)
        return replace(found) if found else None

    def create_reservation(self, reservation):
        if self._find(reservation.property_id, reservation.external_id):
            raise DuplicateReservationError(reservation.property_id, reservation.external_id)
        created = replace(reservation, id=self._next_id())
        self.reservations[created.id] = created
        return replace(created)

    def update_reservation(self, reservation_id, changes: Dict[str, Any]):
        updated = replace(self.reservations[reservation_id], **changes)
        self.reservations[reservation_id] = updated
        return replace(updated)

    def find_reservations_by_guest_name(self, name):
        needle = name.lower()
        matches = [r for r in self.reservations.values() if needle in r.guest_name.lower()]
        return [replace(r) for r in sorted(matches, key=lambda r: r.arrival_date)]

    def get_reservations_departing_on(self, day):
        return [replace(r) for r in self.reservations.values() if r.departure_date == day]

    def create_note(self, note):
        created = replace(note, id=self._next_id(), created_at=datetime(2024, 6, 1, 12, 0))
        self.notes.append(created)
        return created

    def get_notes(self, reservation_id):
        return [n for n in self.notes if n.reservation_id == reservation_id]

    def create_special_request(self, request):
        created = replace(request, id=self._next_id())
        self.requests[created.id] = created
        return replace(created)

    def get_special_request(self, request_id):
        found = self.requests.get(request_id)
        return replace(found) if found else None

    def get_special_requests(self, reservation_id):
        return [replace(r) for r in self.requests.values() if r.reservation_id == reservation_id]

    def save_special_request_status(self, request_id, status: RequestStatus):
        self.requests[request_id] = replace(self.requests[request_id], status=status)
        return replace(self.requests[request_id])

    def get_settings(self):
        return dict(self.settings)

    def snapshot(self):
        return {rid: replace(r) for rid, r in self.reservations.items()}


@pytest.fixture
def villa():
    return Property(id="p1", name="Villa A", ical_url="https://calendar.example.com/villa-a.ics")


@pytest.fixture
def runtime_settings():
    return RuntimeSettings(
        email_server="imap.example.com",
        email_user="host@example.com",
        email_password="secret",
        openai_api_key="sk-test",
        telegram_token="123:abc",
        telegram_chat_id="-100200",
    )


@pytest.fixture
def store(villa, runtime_settings):
    return InMemoryStore(
        properties=[villa],
        settings={
            "email_server": runtime_settings.email_server,
            "email_user": runtime_settings.email_user,
            "email_password": runtime_settings.email_password,
            "openai_api_key": runtime_settings.openai_api_key,
            "telegram_token": runtime_settings.telegram_token,
            "telegram_chat_id": runtime_settings.telegram_chat_id,
        },
    )


@pytest.fixture
def notifier():
    mock = Mock()
    sent = NotificationResult(NotificationStatus.SENT)
    mock.notify_new_reservation.return_value = sent
    mock.notify_reservation_updated.return_value = sent
    mock.notify_checkout_tomorrow.return_value = sent
    return mock


@pytest.fixture
def jane_reservation(store, villa):
    return store.create_reservation(Reservation(
        property_id=villa.id,
        external_id="E1",
        guest_name="Jane Doe",
        arrival_date=date(2024, 6, 1),
        departure_date=date(2024, 6, 5),
        missing_info=True,
    ))

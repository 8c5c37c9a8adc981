"""
Unit tests for the data models.
"""
from datetime import date
from decimal import Decimal

import pytest

from src.utils.errors import InvalidStatusTransition
from src.utils.models import (
    NotificationResult, NotificationStatus, RequestStatus, Reservation, RuntimeSettings, SpecialRequest
)


class TestReservation:

    def test_from_storage_row(self):
        reservation = Reservation.from_dict({
            "id": 12,
            "property_id": 3,
            "external_id": "abc@airbnb.com",
            "guest_name": "Jane Doe",
            "arrival_date": "2024-06-01",
            "departure_date": "2024-06-05T00:00:00",
            "guest_count": 4,
            "wellness_fee": "50.00",
            "arrival_time": "15:30:00",
            "missing_info": False,
        })

        assert reservation.id == "12"
        assert reservation.property_id == "3"
        assert reservation.departure_date == date(2024, 6, 5)
        assert reservation.wellness_fee == Decimal("50.00")
        assert reservation.arrival_time == "15:30"
        assert reservation.missing_info is False

    def test_to_dict_serializes_values(self):
        payload = Reservation(
            property_id="p1", external_id="E1", guest_name="Jane",
            arrival_date=date(2024, 6, 1), departure_date=date(2024, 6, 5),
            wellness_fee=Decimal("12.5"),
        ).to_dict()

        assert payload["arrival_date"] == "2024-06-01"
        assert payload["wellness_fee"] == "12.5"
        assert payload["missing_info"] is True
        assert "id" not in payload

    def test_arrival_after_departure_rejected(self):
        with pytest.raises(ValueError):
            Reservation(property_id="p1", external_id="E1", guest_name="Jane",
                        arrival_date=date(2024, 6, 5), departure_date=date(2024, 6, 1))


class TestSpecialRequestStatus:

    @pytest.mark.parametrize("target", [RequestStatus.COMPLETED, RequestStatus.CANCELLED])
    def test_pending_moves_to_terminal(self, target):
        request = SpecialRequest(reservation_id="r1", request_type="Cleaning", description="Extra")

        assert request.transition(target).status == target

    @pytest.mark.parametrize("current,target", [
        (RequestStatus.COMPLETED, RequestStatus.CANCELLED),
        (RequestStatus.CANCELLED, RequestStatus.PENDING),
        (RequestStatus.PENDING, RequestStatus.PENDING),
    ])
    def test_invalid_transitions(self, current, target):
        request = SpecialRequest(reservation_id="r1", request_type="Other", description="x", status=current)

        with pytest.raises(InvalidStatusTransition):
            request.transition(target)

    def test_status_parsed_from_string(self):
        assert SpecialRequest.from_dict({
            "id": 1, "reservation_id": 2, "request_type": "Beer Keg",
            "description": "Keg", "status": "completed",
        }).status == RequestStatus.COMPLETED

    def test_store_applies_transition(self, store, jane_reservation):
        created = store.create_special_request(SpecialRequest(
            reservation_id=jane_reservation.id, request_type="Beer Keg", description="Keg"))

        store.update_special_request_status(created.id, RequestStatus.COMPLETED)

        assert store.get_special_request(created.id).status == RequestStatus.COMPLETED
        with pytest.raises(InvalidStatusTransition):
            store.update_special_request_status(created.id, RequestStatus.CANCELLED)


class TestRuntimeSettings:

    def test_from_mapping(self):
        settings = RuntimeSettings.from_mapping({
            "email_server": "imap.example.com",
            "email_user": "host@example.com",
            "email_password": "secret",
            "openai_api_key": " ",
            "telegram_token": "123:abc",
            "unrelated": "value",
        })

        assert settings.mailbox_configured is True
        assert settings.extractor_configured is False
        assert settings.notifications_configured is False

    def test_store_resolves_settings(self, store):
        settings = store.get_runtime_settings()

        assert settings.mailbox_configured
        assert settings.extractor_configured
        assert settings.notifications_configured


def test_notification_result_delivered():
    assert NotificationResult(NotificationStatus.SENT).delivered is True
    assert NotificationResult(NotificationStatus.FAILED, error="boom").delivered is False

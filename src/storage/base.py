"""
Storage interface consumed by the reconciliation engine.
"""
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Optional

from ..utils.models import (
    Note, Property, RequestStatus, Reservation, RuntimeSettings, SpecialRequest
)


class ReservationStore(ABC):
    """Query interface over properties, reservations, notes, requests and settings.

    Every call is atomic for a single row. ``create_reservation`` raises
    ``DuplicateReservationError`` when ``(property_id, external_id)`` exists.
    """

    @abstractmethod
    def get_properties(self) -> List[Property]:
        pass

    @abstractmethod
    def get_property(self, property_id: str) -> Optional[Property]:
        pass

    @abstractmethod
    def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        pass

    @abstractmethod
    def get_reservation_by_external_id(self, property_id: str, external_id: str) -> Optional[Reservation]:
        pass

    @abstractmethod
    def create_reservation(self, reservation: Reservation) -> Reservation:
        pass

    @abstractmethod
    def update_reservation(self, reservation_id: str, changes: Dict[str, Any]) -> Reservation:
        pass

    @abstractmethod
    def find_reservations_by_guest_name(self, name: str) -> List[Reservation]:
        """Case-insensitive substring search, ordered by arrival date."""

    @abstractmethod
    def get_reservations_departing_on(self, day: date) -> List[Reservation]:
        pass

    @abstractmethod
    def create_note(self, note: Note) -> Note:
        pass

    @abstractmethod
    def get_notes(self, reservation_id: str) -> List[Note]:
        pass

    @abstractmethod
    def create_special_request(self, request: SpecialRequest) -> SpecialRequest:
        pass

    @abstractmethod
    def get_special_request(self, request_id: str) -> Optional[SpecialRequest]:
        pass

    @abstractmethod
    def get_special_requests(self, reservation_id: str) -> List[SpecialRequest]:
        pass

    @abstractmethod
    def save_special_request_status(self, request_id: str, status: RequestStatus) -> SpecialRequest:
        pass

    @abstractmethod
    def get_settings(self) -> Dict[str, str]:
        pass

    def get_runtime_settings(self) -> RuntimeSettings:
        """Resolve the settings table into a value object for one cycle."""
        return RuntimeSettings.from_mapping(self.get_settings())

    def update_special_request_status(self, request_id: str, status: RequestStatus) -> SpecialRequest:
        """Apply a status transition; raises InvalidStatusTransition or KeyError."""
        request = self.get_special_request(request_id)
        if request is None:
            raise KeyError(f"Special request {request_id} not found")
        request.transition(status)
        return self.save_special_request_status(request_id, request.status)

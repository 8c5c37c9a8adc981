"""
Exception types raised inside the reconciler.
"""


class ReconcilerError(Exception):
    """Base class for reconciler errors."""


class FeedError(ReconcilerError):
    """A calendar feed could not be fetched or parsed."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.url = url


class StoreError(ReconcilerError):
    """A storage call failed."""


class DuplicateReservationError(StoreError):
    """A reservation with the same (property_id, external_id) already exists."""

    def __init__(self, property_id: str, external_id: str):
        super().__init__(f"Reservation {external_id} already exists for property {property_id}")
        self.property_id = property_id
        self.external_id = external_id


class InvalidStatusTransition(ReconcilerError):
    """A special request status change is not allowed."""

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move special request from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested

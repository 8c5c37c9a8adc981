"""
Supabase-backed reservation store.
"""
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from postgrest.exceptions import APIError
from supabase import create_client

from .base import ReservationStore
from ..utils.errors import DuplicateReservationError, StoreError
from ..utils.logger import get_logger
from ..utils.models import Note, Property, RequestStatus, Reservation, SpecialRequest
from config.settings import supabase_config, app_config

UNIQUE_VIOLATION = "23505"


class SupabaseStore(ReservationStore):
    """Supabase client for reservation storage."""

    def __init__(self):
        self.logger = get_logger("supabase_store")
        self.client = None
        self.initialized = False

    def initialize(self) -> bool:
        """Initialize Supabase client from environment configuration."""
        try:
            if self.initialized:
                return True

            auth_key = supabase_config.get_auth_key()
            if not supabase_config.url or not auth_key:
                self.logger.error("Supabase configuration missing", url=bool(supabase_config.url))
                return False

            self.client = create_client(supabase_config.url, auth_key)
            self.initialized = True
            self.logger.info("Supabase client initialized successfully", url=supabase_config.url)
            return True
        except Exception as e:
            self.logger.error("Failed to initialize Supabase client", error=str(e))
            self.initialized = False
            return False

    def _table(self, name: str):
        if not self.initialized and not self.initialize():
            raise StoreError("Supabase client not initialized")
        return self.client.table(name)

    def _serialize_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Convert dates and decimals to JSON-serializable values."""

        def serialize_value(value):
            if isinstance(value, (datetime, date)):
                return value.isoformat()
            if isinstance(value, Decimal):
                return str(value)
            if isinstance(value, RequestStatus):
                return value.value
            return value

        return {k: serialize_value(v) for k, v in payload.items()}

    def _execute(self, query, action: str) -> List[Dict[str, Any]]:
        try:
            resp = query.execute()
        except APIError as e:
            self.logger.error("Supabase query failed", action=action, error=str(e), code=e.code)
            raise StoreError(f"{action} failed: {e}") from e
        return getattr(resp, "data", None) or []

    # Properties
    def get_properties(self) -> List[Property]:
        rows = self._execute(
            self._table(app_config.properties_table).select("*").order("name"),
            "get_properties",
        )
        return [Property.from_dict(row) for row in rows]

    def get_property(self, property_id: str) -> Optional[Property]:
        rows = self._execute(
            self._table(app_config.properties_table).select("*").eq("id", property_id).limit(1),
            "get_property",
        )
        return Property.from_dict(rows[0]) if rows else None

    # Reservations
    def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        rows = self._execute(
            self._table(app_config.reservations_table).select("*").eq("id", reservation_id).limit(1),
            "get_reservation",
        )
        return Reservation.from_dict(rows[0]) if rows else None

    def get_reservation_by_external_id(self, property_id: str, external_id: str) -> Optional[Reservation]:
        rows = self._execute(
            self._table(app_config.reservations_table)
            .select("*")
            .eq("property_id", property_id)
            .eq("external_id", external_id)
            .limit(1),
            "get_reservation_by_external_id",
        )
        return Reservation.from_dict(rows[0]) if rows else None

    def create_reservation(self, reservation: Reservation) -> Reservation:
        payload = reservation.to_dict()
        payload.pop("id", None)
        try:
            resp = self._table(app_config.reservations_table).insert(payload).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise DuplicateReservationError(reservation.property_id, reservation.external_id) from e
            self.logger.error("Failed to create reservation", external_id=reservation.external_id, error=str(e))
            raise StoreError(f"create_reservation failed: {e}") from e

        rows = getattr(resp, "data", None) or []
        if not rows:
            # Some PostgREST configurations return no representation
            created = self.get_reservation_by_external_id(reservation.property_id, reservation.external_id)
            if created is None:
                raise StoreError("Failed to retrieve created reservation")
            return created
        return Reservation.from_dict(rows[0])

    def update_reservation(self, reservation_id: str, changes: Dict[str, Any]) -> Reservation:
        payload = self._serialize_payload(changes)
        payload["updated_at"] = datetime.now(timezone.utc).isoformat()
        rows = self._execute(
            self._table(app_config.reservations_table).update(payload).eq("id", reservation_id),
            "update_reservation",
        )
        if not rows:
            updated = self.get_reservation(reservation_id)
            if updated is None:
                raise StoreError(f"Reservation {reservation_id} not found")
            return updated
        return Reservation.from_dict(rows[0])

    def find_reservations_by_guest_name(self, name: str) -> List[Reservation]:
        needle = name.strip()
        if not needle:
            return []
        # LIKE wildcards in the name are matched literally
        escaped = needle.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        rows = self._execute(
            self._table(app_config.reservations_table)
            .select("*")
            .ilike("guest_name", f"%{escaped}%")
            .order("arrival_date"),
            "find_reservations_by_guest_name",
        )
        return [Reservation.from_dict(row) for row in rows]

    def get_reservations_departing_on(self, day: date) -> List[Reservation]:
        rows = self._execute(
            self._table(app_config.reservations_table)
            .select("*")
            .eq("departure_date", day.isoformat())
            .order("property_id"),
            "get_reservations_departing_on",
        )
        return [Reservation.from_dict(row) for row in rows]

    # Notes
    def create_note(self, note: Note) -> Note:
        rows = self._execute(
            self._table(app_config.notes_table).insert({
                "reservation_id": note.reservation_id,
                "content": note.content,
                "is_internal": note.is_internal,
            }),
            "create_note",
        )
        return Note.from_dict(rows[0]) if rows else note

    def get_notes(self, reservation_id: str) -> List[Note]:
        rows = self._execute(
            self._table(app_config.notes_table)
            .select("*")
            .eq("reservation_id", reservation_id)
            .order("created_at", desc=True),
            "get_notes",
        )
        return [Note.from_dict(row) for row in rows]

    # Special requests
    def create_special_request(self, request: SpecialRequest) -> SpecialRequest:
        rows = self._execute(
            self._table(app_config.special_requests_table).insert({
                "reservation_id": request.reservation_id,
                "request_type": request.request_type,
                "description": request.description,
                "status": request.status.value,
            }),
            "create_special_request",
        )
        return SpecialRequest.from_dict(rows[0]) if rows else request

    def get_special_request(self, request_id: str) -> Optional[SpecialRequest]:
        rows = self._execute(
            self._table(app_config.special_requests_table).select("*").eq("id", request_id).limit(1),
            "get_special_request",
        )
        return SpecialRequest.from_dict(rows[0]) if rows else None

    def get_special_requests(self, reservation_id: str) -> List[SpecialRequest]:
        rows = self._execute(
            self._table(app_config.special_requests_table)
            .select("*")
            .eq("reservation_id", reservation_id)
            .order("created_at", desc=True),
            "get_special_requests",
        )
        return [SpecialRequest.from_dict(row) for row in rows]

    def save_special_request_status(self, request_id: str, status: RequestStatus) -> SpecialRequest:
        rows = self._execute(
            self._table(app_config.special_requests_table)
            .update({"status": status.value, "updated_at": datetime.now(timezone.utc).isoformat()})
            .eq("id", request_id),
            "save_special_request_status",
        )
        if not rows:
            raise StoreError(f"Special request {request_id} not found")
        return SpecialRequest.from_dict(rows[0])

    # Settings
    def get_settings(self) -> Dict[str, str]:
        rows = self._execute(
            self._table(app_config.settings_table).select("key,value"),
            "get_settings",
        )
        return {row["key"]: row["value"] for row in rows if row.get("key")}

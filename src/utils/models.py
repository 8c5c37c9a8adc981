"""
Data models for the Rental Reservation Reconciler.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .errors import InvalidStatusTransition

UNKNOWN_GUEST = "Unknown Guest"


def _to_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _to_time(value: Any) -> Optional[str]:
    # Postgres returns TIME columns as HH:MM:SS
    if not value:
        return None
    return str(value)[:5]


class RequestStatus(Enum):
    """Lifecycle of a special request."""
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.COMPLETED, RequestStatus.CANCELLED)

    def can_transition_to(self, target: "RequestStatus") -> bool:
        return self == RequestStatus.PENDING and target.is_terminal


@dataclass(frozen=True)
class Property:
    """A rental property with its calendar feed."""
    id: str
    name: str
    ical_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Property':
        return cls(id=str(data["id"]), name=data.get("name") or "", ical_url=data.get("ical_url"))


@dataclass
class Reservation:
    """Canonical reservation record."""
    property_id: str
    external_id: str
    guest_name: str
    arrival_date: date
    departure_date: date
    id: Optional[str] = None
    guest_count: Optional[int] = None
    contact_phone: Optional[str] = None
    wellness_fee: Optional[Decimal] = None
    safebox_password: Optional[str] = None
    arrival_time: Optional[str] = None
    missing_info: bool = True

    def __post_init__(self):
        if self.arrival_date > self.departure_date:
            raise ValueError(
                f"arrival_date {self.arrival_date} is after departure_date {self.departure_date}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert reservation to a storage payload."""
        payload = {
            'property_id': self.property_id,
            'external_id': self.external_id,
            'guest_name': self.guest_name,
            'arrival_date': self.arrival_date.isoformat(),
            'departure_date': self.departure_date.isoformat(),
            'guest_count': self.guest_count,
            'contact_phone': self.contact_phone,
            'wellness_fee': str(self.wellness_fee) if self.wellness_fee is not None else None,
            'safebox_password': self.safebox_password,
            'arrival_time': self.arrival_time,
            'missing_info': self.missing_info,
        }
        if self.id is not None:
            payload['id'] = self.id
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Reservation':
        """Create Reservation from a storage row."""
        guest_count = data.get("guest_count")
        return cls(
            id=str(data["id"]) if data.get("id") is not None else None,
            property_id=str(data["property_id"]),
            external_id=data["external_id"],
            guest_name=data.get("guest_name") or UNKNOWN_GUEST,
            arrival_date=_to_date(data["arrival_date"]),
            departure_date=_to_date(data["departure_date"]),
            guest_count=int(guest_count) if guest_count is not None else None,
            contact_phone=data.get("contact_phone"),
            wellness_fee=_to_decimal(data.get("wellness_fee")),
            safebox_password=data.get("safebox_password"),
            arrival_time=_to_time(data.get("arrival_time")),
            missing_info=bool(data.get("missing_info", True)),
        )


@dataclass
class Note:
    """Free-text note attached to a reservation."""
    reservation_id: str
    content: str
    is_internal: bool = True
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Note':
        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return cls(
            id=str(data["id"]) if data.get("id") is not None else None,
            reservation_id=str(data["reservation_id"]),
            content=data.get("content") or "",
            is_internal=bool(data.get("is_internal", True)),
            created_at=created_at,
        )


@dataclass
class SpecialRequest:
    """Guest special request, e.g. a beer keg or extra cleaning."""
    reservation_id: str
    request_type: str
    description: str
    status: RequestStatus = RequestStatus.PENDING
    id: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.status, str):
            self.status = RequestStatus(self.status.lower())

    def transition(self, target: RequestStatus) -> 'SpecialRequest':
        """Move to a terminal status; raises InvalidStatusTransition otherwise."""
        if not self.status.can_transition_to(target):
            raise InvalidStatusTransition(self.status.value, target.value)
        self.status = target
        return self

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SpecialRequest':
        return cls(
            id=str(data["id"]) if data.get("id") is not None else None,
            reservation_id=str(data["reservation_id"]),
            request_type=data.get("request_type") or "Other",
            description=data.get("description") or "",
            status=data.get("status") or RequestStatus.PENDING,
        )


@dataclass(frozen=True)
class RuntimeSettings:
    """Key/value settings resolved once per cycle."""
    email_server: Optional[str] = None
    email_user: Optional[str] = None
    email_password: Optional[str] = None
    openai_api_key: Optional[str] = None
    telegram_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None

    @classmethod
    def from_mapping(cls, values: Mapping[str, Optional[str]]) -> 'RuntimeSettings':
        def get(key: str) -> Optional[str]:
            value = values.get(key)
            if isinstance(value, str):
                return value.strip() or None
            return value

        return cls(
            email_server=get("email_server"),
            email_user=get("email_user"),
            email_password=get("email_password"),
            openai_api_key=get("openai_api_key"),
            telegram_token=get("telegram_token"),
            telegram_chat_id=get("telegram_chat_id"),
        )

    @property
    def mailbox_configured(self) -> bool:
        return bool(self.email_server and self.email_user and self.email_password)

    @property
    def extractor_configured(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def notifications_configured(self) -> bool:
        return bool(self.telegram_token and self.telegram_chat_id)


@dataclass
class EmailData:
    """Email data structure."""
    email_id: str
    subject: str
    sender: str
    date: datetime
    body_text: str
    body_html: str = ""
    folder: str = "INBOX"


@dataclass(frozen=True)
class CalendarEvent:
    """Booking event parsed from a calendar feed."""
    external_id: str
    guest_name: str
    start_date: date
    end_date: date
    summary: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class RequestItem:
    """Special request proposed by the extractor."""
    type: str
    description: str


@dataclass
class ExtractedReservationData:
    """Partial field set extracted from one email."""
    guest_name: Optional[str] = None
    guest_count: Optional[int] = None
    contact_phone: Optional[str] = None
    wellness_fee: Optional[Decimal] = None
    arrival_time: Optional[str] = None
    safebox_password: Optional[str] = None
    special_requests: List[RequestItem] = field(default_factory=list)
    candidate_dates: List[str] = field(default_factory=list)
    extraction_failed: bool = False

    @classmethod
    def empty(cls, failed: bool = True) -> 'ExtractedReservationData':
        return cls(extraction_failed=failed)


class UpsertOutcome(Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class ReconcileOutcome(Enum):
    IGNORED = "ignored"
    NO_GUEST_NAME = "no_guest_name"
    NO_MATCH = "no_match"
    MERGED = "merged"


class NotificationStatus(Enum):
    SENT = "sent"
    NOT_CONFIGURED = "not_configured"
    FAILED = "failed"


@dataclass(frozen=True)
class NotificationResult:
    """Outcome of a best-effort notification. Callers may ignore it."""
    status: NotificationStatus
    error: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.status == NotificationStatus.SENT


@dataclass
class CycleReport:
    """Counters for one scheduler cycle."""
    name: str
    processed: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    merged: int = 0
    skipped: int = 0
    errors: int = 0
    disabled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'processed': self.processed,
            'created': self.created,
            'updated': self.updated,
            'unchanged': self.unchanged,
            'merged': self.merged,
            'skipped': self.skipped,
            'errors': self.errors,
            'disabled': self.disabled,
        }

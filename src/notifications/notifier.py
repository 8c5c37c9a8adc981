# notifications/notifier.py
from html import escape
from typing import Iterable, Optional

from .telegram_client import TelegramClient
from ..utils.logger import get_logger
from ..utils.models import (
    Note, NotificationResult, NotificationStatus, RequestItem, Reservation,
    RuntimeSettings, SpecialRequest
)


def _value(value, default: str = "Unknown") -> str:
    if value is None or value == "":
        return default
    return escape(str(value))


class Notifier:
    """Best-effort staff notifications. Every method returns a NotificationResult and never raises."""

    def __init__(self, transport: Optional[TelegramClient] = None):
        self.transport = transport or TelegramClient()
        self.logger = get_logger("notifier")

    def send(self, text: str, settings: RuntimeSettings) -> NotificationResult:
        if not settings.notifications_configured:
            self.logger.info("Telegram settings not configured, notification skipped")
            return NotificationResult(NotificationStatus.NOT_CONFIGURED)

        try:
            self.transport.send_message(text, settings.telegram_token, settings.telegram_chat_id)
            return NotificationResult(NotificationStatus.SENT)
        except Exception as e:
            self.logger.warning("notification_failed", error=str(e), error_type=type(e).__name__)
            return NotificationResult(NotificationStatus.FAILED, error=str(e))

    def notify_new_reservation(self, reservation: Reservation, property_name: str,
                               settings: RuntimeSettings) -> NotificationResult:
        text = (
            f"🆕 New reservation:\n"
            f"📍 {_value(property_name)}\n"
            f"👤 {_value(reservation.guest_name)}\n"
            f"📅 Check-in: {reservation.arrival_date.isoformat()}\n"
            f"📅 Check-out: {reservation.departure_date.isoformat()}\n"
            f"ℹ️ Need more info from email"
        )
        return self.send(text, settings)

    def notify_reservation_updated(self, reservation: Reservation, property_name: str,
                                   new_requests: Iterable[RequestItem],
                                   settings: RuntimeSettings) -> NotificationResult:
        text = (
            f"🔄 Updated reservation:\n"
            f"📍 {_value(property_name)}\n"
            f"👤 {_value(reservation.guest_name)}\n"
            f"📅 Check-in: {reservation.arrival_date.isoformat()}\n"
            f"📅 Check-out: {reservation.departure_date.isoformat()}\n"
            f"👥 Guests: {_value(reservation.guest_count)}\n"
            f"🕒 Arrival time: {_value(reservation.arrival_time)}\n"
            f"📱 Contact: {_value(reservation.contact_phone)}\n"
            f"💶 Wellness fee: {_value(reservation.wellness_fee, 'None')}\n"
            f"🔑 Safebox: {_value(reservation.safebox_password, 'Not set')}"
        )
        descriptions = [escape(item.description) for item in new_requests]
        if descriptions:
            text += f"\n🔶 Special requests: {', '.join(descriptions)}"
        return self.send(text, settings)

    def notify_checkout_tomorrow(self, reservation: Reservation, property_name: str,
                                 notes: Iterable[Note], requests: Iterable[SpecialRequest],
                                 settings: RuntimeSettings) -> NotificationResult:
        """Send the checkout alert, then a second message with notes and requests if any exist."""
        text = (
            f"⚠️ CHECKOUT TOMORROW ⚠️\n"
            f"📍 {_value(property_name)}\n"
            f"👤 {_value(reservation.guest_name)}\n"
            f"📅 Checkout date: {reservation.departure_date.isoformat()}\n"
            f"👥 Guests: {_value(reservation.guest_count)}\n"
            f"📱 Contact: {_value(reservation.contact_phone)}"
        )
        result = self.send(text, settings)

        notes = list(notes)
        requests = list(requests)
        if not notes and not requests:
            return result

        details = f"📝 Notes and requests for {_value(reservation.guest_name)}:\n"
        if notes:
            details += "🗒️ Notes:\n"
            details += "".join(f"- {escape(note.content)}\n" for note in notes)
        if requests:
            details += "🔶 Special requests:\n"
            details += "".join(
                f"- {escape(req.request_type)}: {escape(req.description)} ({req.status.value})\n"
                for req in requests
            )
        details_result = self.send(details, settings)
        return result if not result.delivered else details_result

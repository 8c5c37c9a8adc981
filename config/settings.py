"""
Configuration settings for the Rental Reservation Reconciler.
"""
import os
from typing import Tuple
from dataclasses import dataclass
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


@dataclass
class SupabaseConfig:
    """Supabase configuration settings."""
    url: str = os.getenv("SUPABASE_URL", "")
    anon_key: str = os.getenv("SUPABASE_ANON_KEY", "")
    service_role_key: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    def get_auth_key(self) -> str:
        """Prefer service role key for server-side operations when available."""
        return self.service_role_key or self.anon_key


@dataclass
class AppConfig:
    """Application configuration settings."""
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    default_timezone: str = os.getenv("DEFAULT_TIMEZONE", "UTC")
    http_timeout_seconds: int = int(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

    # Mailbox
    imap_port: int = int(os.getenv("IMAP_PORT", "993"))
    mailbox_folder: str = os.getenv("MAILBOX_FOLDER", "INBOX")
    mailbox_search: str = os.getenv("MAILBOX_SEARCH", "UNSEEN")

    # Extraction
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o")

    # Scheduler cadences
    calendar_sync_minutes: int = int(os.getenv("CALENDAR_SYNC_MINUTES", "60"))
    mailbox_poll_minutes: int = int(os.getenv("MAILBOX_POLL_MINUTES", "30"))
    checkout_digest_hour: int = int(os.getenv("CHECKOUT_DIGEST_HOUR", "10"))

    # Table names
    properties_table: str = "properties"
    reservations_table: str = "reservations"
    notes_table: str = "notes"
    special_requests_table: str = "special_requests"
    settings_table: str = "settings"

    # Case-sensitive subject keywords marking an email as reservation-related
    reservation_keywords: Tuple[str, ...] = ("Reservation", "Booking", "rezervace", "ubytování")


supabase_config = SupabaseConfig()
app_config = AppConfig()

"""
IMAP client for reading guest emails from the property mailbox.
"""
import imaplib
import email
from email.header import decode_header
from email.utils import parsedate_to_datetime
from datetime import datetime
from typing import List, Optional

from bs4 import BeautifulSoup

from ..utils.models import EmailData, RuntimeSettings
from ..utils.logger import get_logger
from config.settings import app_config


class ImapMailboxClient:
    """IMAP client for reading guest emails."""

    def __init__(self, settings: RuntimeSettings, port: Optional[int] = None):
        self.logger = get_logger("imap_client")
        self.host = settings.email_server
        self.user = settings.email_user
        self.password = settings.email_password
        self.port = port or app_config.imap_port
        self.folder = app_config.mailbox_folder
        self.connection: Optional[imaplib.IMAP4_SSL] = None
        self.connected = False

    def connect(self) -> bool:
        """Connect and log in to the IMAP server."""
        try:
            self.logger.info("Connecting to IMAP server", server=self.host, port=self.port)
            self.connection = imaplib.IMAP4_SSL(self.host, self.port)
            self.connection.login(self.user, self.password)
            self.connected = True
            self.logger.info("Successfully connected to mailbox", user=self.user)
            return True
        except Exception as e:
            self.logger.error("Failed to connect to mailbox", server=self.host, error=str(e))
            self.connected = False
            return False

    def disconnect(self):
        """Log out from the IMAP server."""
        if self.connection and self.connected:
            try:
                self.connection.logout()
                self.connected = False
                self.logger.info("Disconnected from mailbox")
            except Exception as e:
                self.logger.error("Error disconnecting from mailbox", error=str(e))

    def search_emails(self, criteria: Optional[str] = None, limit: Optional[int] = None) -> List[str]:
        """Return ids of messages matching the IMAP search criteria."""
        if not self.connected:
            self.logger.error("Not connected to mailbox")
            return []

        criteria = criteria or app_config.mailbox_search
        try:
            self.connection.select(self.folder)
            status, email_ids = self.connection.search(None, criteria)
            if status != "OK":
                self.logger.error("Failed to search emails", status=status)
                return []

            email_id_list = email_ids[0].split()
            if limit:
                email_id_list = email_id_list[:limit]

            self.logger.info("Found emails", count=len(email_id_list), criteria=criteria)
            return [eid.decode() for eid in email_id_list]
        except Exception as e:
            self.logger.error("Error searching emails", error=str(e))
            return []

    def fetch_email(self, email_id: str) -> Optional[EmailData]:
        """Fetch and parse a single email."""
        if not self.connected:
            self.logger.error("Not connected to mailbox")
            return None

        try:
            # BODY.PEEK leaves the message unseen until it is processed
            status, msg_data = self.connection.fetch(email_id, "(BODY.PEEK[])")
            if status != "OK":
                self.logger.error("Failed to fetch email", email_id=email_id, status=status)
                return None

            email_message = email.message_from_bytes(msg_data[0][1])

            subject = self._decode_header(email_message["subject"])
            sender = self._decode_header(email_message["from"])
            try:
                date = parsedate_to_datetime(email_message["date"])
            except (TypeError, ValueError):
                date = datetime.now()

            body_text, body_html = self._extract_body(email_message)
            if not body_text.strip() and body_html:
                body_text = BeautifulSoup(body_html, "html.parser").get_text("\n", strip=True)

            return EmailData(
                email_id=email_id,
                subject=subject,
                sender=sender,
                date=date,
                body_text=body_text,
                body_html=body_html,
                folder=self.folder,
            )
        except Exception as e:
            self.logger.error("Error fetching email", email_id=email_id, error=str(e))
            return None

    def fetch_emails(self, criteria: Optional[str] = None, limit: Optional[int] = None) -> List[EmailData]:
        """Fetch all messages matching the search criteria."""
        emails = []
        for eid in self.search_emails(criteria, limit):
            email_data = self.fetch_email(eid)
            if email_data:
                emails.append(email_data)

        self.logger.info("Fetched emails", count=len(emails))
        return emails

    def mark_as_read(self, email_id: str) -> bool:
        """Mark an email as read."""
        if not self.connected:
            return False

        try:
            self.connection.store(email_id, "+FLAGS", "\\Seen")
            self.logger.debug("Marked email as read", email_id=email_id)
            return True
        except Exception as e:
            self.logger.error("Error marking email as read", email_id=email_id, error=str(e))
            return False

    def _decode_header(self, header: str) -> str:
        """Decode email header safely."""
        if not header:
            return ""

        try:
            decoded_string = ""
            for part, encoding in decode_header(header):
                if isinstance(part, bytes):
                    decoded_string += part.decode(encoding or "utf-8", errors="ignore")
                else:
                    decoded_string += str(part)
            return decoded_string
        except (LookupError, UnicodeDecodeError):
            return str(header)

    def _extract_body(self, email_message) -> tuple[str, str]:
        """Extract text and HTML body from email."""
        body_text = ""
        body_html = ""

        parts = email_message.walk() if email_message.is_multipart() else [email_message]
        for part in parts:
            if part.is_multipart():
                continue
            if "attachment" in str(part.get("Content-Disposition")):
                continue

            payload = part.get_payload(decode=True)
            if payload is None:
                continue
            body = payload.decode(part.get_content_charset() or "utf-8", errors="replace")

            content_type = part.get_content_type()
            if content_type == "text/html":
                body_html += body
            elif content_type == "text/plain" or not email_message.is_multipart():
                body_text += body

        return body_text, body_html

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()

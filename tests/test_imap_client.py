"""
Unit tests for the IMAP mailbox client.
"""
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from unittest.mock import Mock, patch

import pytest

from src.email_reader.imap_client import ImapMailboxClient


def _raw_message(subject="Reservation update", text=None, html=None) -> bytes:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = "Jane Doe <jane@example.com>"
    msg["Date"] = "Sat, 01 Jun 2024 10:00:00 +0000"
    if text is not None:
        msg.attach(MIMEText(text, "plain", "utf-8"))
    if html is not None:
        msg.attach(MIMEText(html, "html", "utf-8"))
    return msg.as_bytes()


@pytest.fixture
def imap_connection():
    with patch("src.email_reader.imap_client.imaplib.IMAP4_SSL") as mock_ssl:
        connection = Mock()
        mock_ssl.return_value = connection
        connection.search.return_value = ("OK", [b"1 2"])
        yield mock_ssl, connection


@pytest.fixture
def client(runtime_settings):
    return ImapMailboxClient(runtime_settings, port=993)


class TestConnection:

    def test_connect_logs_in_with_settings(self, client, imap_connection):
        mock_ssl, connection = imap_connection

        assert client.connect() is True
        mock_ssl.assert_called_once_with("imap.example.com", 993)
        connection.login.assert_called_once_with("host@example.com", "secret")

    def test_login_failure(self, client, imap_connection):
        _, connection = imap_connection
        connection.login.side_effect = Exception("AUTHENTICATIONFAILED")

        assert client.connect() is False
        assert client.connected is False

    def test_context_manager_logs_out(self, client, imap_connection):
        _, connection = imap_connection

        with client:
            assert client.connected

        connection.logout.assert_called_once()


class TestFetching:

    def test_search_unseen(self, client, imap_connection):
        _, connection = imap_connection
        client.connect()

        assert client.search_emails() == ["1", "2"]
        connection.select.assert_called_once_with("INBOX")
        connection.search.assert_called_once_with(None, "UNSEEN")

    def test_search_requires_connection(self, client):
        assert client.search_emails() == []

    def test_fetch_peeks_and_parses(self, client, imap_connection):
        _, connection = imap_connection
        connection.fetch.return_value = ("OK", [(b"1 (BODY[] {100}", _raw_message(text="Guest: Jane Doe"))])
        client.connect()

        email_data = client.fetch_email("1")

        connection.fetch.assert_called_once_with("1", "(BODY.PEEK[])")
        assert email_data.subject == "Reservation update"
        assert email_data.sender == "Jane Doe <jane@example.com>"
        assert "Guest: Jane Doe" in email_data.body_text
        assert email_data.date.year == 2024

    def test_html_only_body_converted_to_text(self, client, imap_connection):
        _, connection = imap_connection
        raw = _raw_message(html="<html><body><p>Guest: Jane Doe</p><p>Guests: 4</p></body></html>")
        connection.fetch.return_value = ("OK", [(b"1 (BODY[] {100}", raw)])
        client.connect()

        email_data = client.fetch_email("1")

        assert email_data.body_text == "Guest: Jane Doe\nGuests: 4"
        assert "<p>" in email_data.body_html

    def test_mark_as_read(self, client, imap_connection):
        _, connection = imap_connection
        client.connect()

        assert client.mark_as_read("2") is True
        connection.store.assert_called_once_with("2", "+FLAGS", "\\Seen")

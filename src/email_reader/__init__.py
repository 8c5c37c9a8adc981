"""
Mailbox reading.
"""

from .imap_client import ImapMailboxClient

__all__ = ['ImapMailboxClient']

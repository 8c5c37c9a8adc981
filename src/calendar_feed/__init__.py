"""
Calendar feed ingestion.
"""

from .ical_client import ICalFeedClient, extract_guest_name

__all__ = ['ICalFeedClient', 'extract_guest_name']

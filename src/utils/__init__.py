"""
Utility modules for the rental reservation reconciler.
"""

from .models import (
    Property, Reservation, Note, SpecialRequest, RequestStatus, RuntimeSettings,
    EmailData, CalendarEvent, RequestItem, ExtractedReservationData,
    UpsertOutcome, ReconcileOutcome, NotificationStatus, NotificationResult,
    CycleReport, UNKNOWN_GUEST
)
from .logger import setup_logger, get_logger, ReconciliationLogger

__all__ = [
    'Property', 'Reservation', 'Note', 'SpecialRequest', 'RequestStatus',
    'RuntimeSettings', 'EmailData', 'CalendarEvent', 'RequestItem',
    'ExtractedReservationData', 'UpsertOutcome', 'ReconcileOutcome',
    'NotificationStatus', 'NotificationResult', 'CycleReport', 'UNKNOWN_GUEST',
    'setup_logger', 'get_logger', 'ReconciliationLogger'
]

"""
Reservation reconciliation.
"""

from .engine import ReconciliationEngine, merge_extracted, select_match

__all__ = ['ReconciliationEngine', 'merge_extracted', 'select_match']

"""
Reservation storage.
"""

from .base import ReservationStore
from .supabase_store import SupabaseStore

__all__ = ['ReservationStore', 'SupabaseStore']

"""
Rental Reservation Reconciler.

Reconciles short-term rental reservations from per-property calendar feeds
and guest emails, and keeps the cleaning team informed over Telegram.
"""

__version__ = "1.0.0"
__author__ = "Rental Operations Team"
__description__ = "Reservation reconciliation from calendar feeds and guest emails"

"""
Staff notifications.
"""

from .telegram_client import TelegramClient
from .notifier import Notifier
from .checkout_digest import CheckoutDigest

__all__ = ['TelegramClient', 'Notifier', 'CheckoutDigest']

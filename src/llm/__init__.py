"""
LLM-backed extraction of reservation details from guest emails.
"""

from .extractor import (
    ExtractionProvider,
    OpenAIExtractionProvider,
    ReservationExtractor,
    derive_safebox_password,
    find_balanced_object,
    parse_provider_output
)

__all__ = [
    'ExtractionProvider',
    'OpenAIExtractionProvider',
    'ReservationExtractor',
    'derive_safebox_password',
    'find_balanced_object',
    'parse_provider_output'
]

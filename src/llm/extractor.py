"""
Reservation field extraction from guest email text.
"""
import json
import re
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import requests

from ..utils.logger import get_logger
from ..utils.models import ExtractedReservationData, RequestItem
from config.settings import app_config

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"

SYSTEM_PROMPT = """
You are an assistant that extracts reservation information from emails.
Extract the following information in JSON format:
- guest_name: The name of the guest
- guest_count: Number of guests
- contact_phone: Phone number with country code
- wellness_fee: The amount in EUR that will be paid for wellness
- arrival_time: Expected arrival time in 24h format (HH:MM)
- special_requests: Array of objects with {type, description}

If you can't find a specific field, return null for that field.
Return only the JSON object without any additional text.
""".strip()

DATE_PATTERN = re.compile(r'(\d{1,2}[-/. ]\d{1,2}[-/. ]\d{2,4})')
NAME_PATTERN = re.compile(
    r'(?:guest|name|jméno|host)[ \t]*:[ \t]*([^\W\d_]+(?:[ \t]+[^\W\d_]+)*)',
    re.IGNORECASE,
)
TIME_PATTERN = re.compile(r'^\s*(\d{1,2})[:.](\d{2})')
NUMBER_PATTERN = re.compile(r'\d+(?:[.,]\d+)?')


class ExtractionProvider(ABC):
    """Abstract base class for text extraction providers."""

    @abstractmethod
    def extract(self, text: str, api_key: str) -> str:
        """Return the provider's raw output for the email text. Raises on failure."""
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        pass


class OpenAIExtractionProvider(ExtractionProvider):
    """OpenAI chat completions provider."""

    def __init__(self, model_name: Optional[str] = None, timeout: Optional[int] = None):
        self.model_name = model_name or app_config.openai_model
        self.timeout = timeout or app_config.http_timeout_seconds
        self.logger = get_logger("openai_extractor")

    def extract(self, text: str, api_key: str) -> str:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json"
        }
        payload = {
            "model": self.model_name,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": text},
            ],
            "temperature": 0.1,
            "max_tokens": 1000
        }

        response = requests.post(OPENAI_CHAT_URL, json=payload, headers=headers, timeout=self.timeout)
        self.logger.info("OpenAI API request", status_code=response.status_code, model=self.model_name)
        response.raise_for_status()

        return response.json()["choices"][0]["message"]["content"]

    def get_provider_name(self) -> str:
        return "openai"


def find_balanced_object(text: str) -> Optional[str]:
    """Return the first balanced {...} substring, ignoring braces inside strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:index + 1]
        start = text.find("{", start + 1)
    return None


def parse_provider_output(raw: str) -> Optional[Dict[str, Any]]:
    """Parse the provider output as a JSON object, falling back to the first embedded object."""
    candidates = [raw]
    embedded = find_balanced_object(raw or "")
    if embedded and embedded != raw:
        candidates.append(embedded)

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except (TypeError, ValueError):
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def derive_safebox_password(phone: Optional[str]) -> Optional[str]:
    """Last four digits of the contact phone."""
    if not phone:
        return None
    digits = re.sub(r'\D', '', phone)
    return digits[-4:] or None


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _coerce_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    match = re.search(r'\d+', str(value))
    return int(match.group(0)) if match else None


def _coerce_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    match = NUMBER_PATTERN.search(str(value))
    if not match:
        return None
    try:
        return Decimal(match.group(0).replace(",", "."))
    except InvalidOperation:
        return None


def _coerce_time(value: Any) -> Optional[str]:
    match = TIME_PATTERN.match(str(value)) if value is not None else None
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return f"{hours:02d}:{minutes:02d}"


def _coerce_requests(value: Any) -> List[RequestItem]:
    if not isinstance(value, list):
        return []
    items = []
    for entry in value:
        if isinstance(entry, str):
            entry = {"description": entry}
        if not isinstance(entry, dict):
            continue
        description = _clean_str(entry.get("description"))
        if not description:
            continue
        items.append(RequestItem(type=_clean_str(entry.get("type")) or "Other", description=description))
    return items


class ReservationExtractor:
    """Turns one email's text into a partial reservation field set."""

    def __init__(self, provider: Optional[ExtractionProvider] = None):
        self.provider = provider or OpenAIExtractionProvider()
        self.logger = get_logger("reservation_extractor")

    def prescan(self, text: str) -> Dict[str, Any]:
        """Cheap local pass for date-like substrings and a labelled guest name."""
        name_match = NAME_PATTERN.search(text or "")
        return {
            "candidate_dates": DATE_PATTERN.findall(text or ""),
            "guest_name": name_match.group(1).strip() if name_match else None,
        }

    def extract(self, text: str, api_key: str) -> ExtractedReservationData:
        """
        Extract reservation fields from email text.

        Provider errors and unparseable output yield an empty result with
        ``extraction_failed`` set; this method never raises for them.
        """
        local = self.prescan(text)

        try:
            raw = self.provider.extract(text, api_key)
        except Exception as e:
            self.logger.error("Extraction provider error",
                              provider=self.provider.get_provider_name(), error=str(e))
            return ExtractedReservationData.empty()

        fields = parse_provider_output(raw)
        if fields is None:
            self.logger.warning("Could not parse extraction output", output=(raw or "")[:200])
            return ExtractedReservationData.empty()

        contact_phone = _clean_str(fields.get("contact_phone"))
        return ExtractedReservationData(
            guest_name=_clean_str(fields.get("guest_name")) or local["guest_name"],
            guest_count=_coerce_int(fields.get("guest_count")),
            contact_phone=contact_phone,
            wellness_fee=_coerce_decimal(fields.get("wellness_fee")),
            arrival_time=_coerce_time(fields.get("arrival_time")),
            safebox_password=derive_safebox_password(contact_phone),
            special_requests=_coerce_requests(fields.get("special_requests")),
            candidate_dates=local["candidate_dates"],
        )

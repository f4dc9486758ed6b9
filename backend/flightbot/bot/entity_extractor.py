"""
Entity extractor - independent regex scans that pull structured fields out
of a chat message, plus the date-phrase parser used before searching.
"""

import logging
import re
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from ..core.reference_data import AIRPORTS, CITY_TO_AIRPORT
from ..models.chat import Entities, PriceRange

logger = logging.getLogger(__name__)

# Airport codes are only recognised when typed in capitals
AIRPORT_CODE_RE = re.compile(r'\b[A-Z]{3}\b')
# ...unless the whole message is a single known code ("lax")
LONE_CODE_RE = re.compile(r'^[a-z]{3}$', re.I)

MONTHS = ('january|february|march|april|may|june|july|august|'
          'september|october|november|december')

# Tried in order; the first pattern with any match supplies the dates
DATE_PATTERNS = [
    re.compile(r'\b(today|tomorrow|next week|next month)\b'),
    re.compile(rf'\b(?:{MONTHS})\s+\d{{1,2}}(?:st|nd|rd|th)?\b'),
    re.compile(r'\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b'),
    re.compile(r'\b\d{4}-\d{2}-\d{2}\b'),
]

OTHER_DATES_RE = re.compile(r'^(?:try\s+)?(different dates|other dates|change date|show more options)$')
PASSENGERS_RE = re.compile(r'(\d+)\s*(passenger|person|people|adult|traveler)')
CLASS_RE = re.compile(r'(economy|business|first|premium)')
BOOKING_REFERENCE_RE = re.compile(r'\b(?=[A-Z0-9]*[A-Z])(?=[A-Z0-9]*[0-9])[A-Z0-9]{6}\b')
FLIGHT_NUMBER_RE = re.compile(r'\b([A-Z]{2})(\d{1,4})\b')
PRICE_RE = re.compile(r'\$(\d+)(?:\s*to\s*\$(\d+)|\s*-\s*\$(\d+))?|under\s*\$(\d+)|below\s*\$(\d+)')

AIRLINE_NAMES = {
    'american': 'American Airlines',
    'delta': 'Delta Air Lines',
    'united': 'United Airlines',
    'lufthansa': 'Lufthansa',
    'emirates': 'Emirates',
    'british airways': 'British Airways',
    'air france': 'Air France',
    'klm': 'KLM',
    'southwest': 'Southwest Airlines',
}
AIRLINE_RE = re.compile(r'\b(' + '|'.join(AIRLINE_NAMES) + r')\b')

CITY_RE = re.compile(r'\b(' + '|'.join(sorted(CITY_TO_AIRPORT, key=len, reverse=True)) + r')\b')

YEAR_RE = re.compile(r'\b\d{4}\b|\d{1,2}[/-]\d{1,2}[/-]\d{2,4}')


def _find_dates(text: str) -> List[str]:
    for pattern in DATE_PATTERNS:
        found = [m.group(0) for m in pattern.finditer(text)]
        if found:
            return found
    return []


def _cities_in_order(text: str) -> List[str]:
    return [CITY_TO_AIRPORT[m.group(1)] for m in CITY_RE.finditer(text)]


def _price(text: str) -> Tuple[Optional[int], Optional[PriceRange]]:
    match = PRICE_RE.search(text)
    if not match:
        return None, None
    numbers = [int(n) for n in match.groups() if n is not None]
    if len(numbers) == 1:
        return numbers[0], None
    return None, PriceRange(min=numbers[0], max=numbers[1])


def extract_entities(message: str) -> Entities:
    """
    Pull every recognisable entity out of a raw message.

    Args:
        message: The message as typed (case matters for airport codes)

    Returns:
        Entities: only the fields that were found are set
    """
    text = message.strip()
    lowered = text.lower()
    upper = text.upper()
    entities = Entities()

    codes = AIRPORT_CODE_RE.findall(text)
    if not codes and LONE_CODE_RE.match(text) and upper in AIRPORTS:
        codes = [upper]
    if codes:
        entities.origin = codes[0]
    if len(codes) > 1:
        entities.destination = codes[1]

    dates = _find_dates(lowered)
    if dates:
        entities.departure_date = dates[0]
    if len(dates) > 1:
        entities.return_date = dates[1]

    if OTHER_DATES_RE.match(lowered):
        entities.requested_other_dates = True

    passengers = PASSENGERS_RE.search(lowered)
    if passengers:
        entities.passengers = int(passengers.group(1))

    class_type = CLASS_RE.search(lowered)
    if class_type:
        entities.class_type = class_type.group(1)

    reference = BOOKING_REFERENCE_RE.search(upper)
    if reference:
        entities.booking_reference = reference.group(0)

    flight_number = FLIGHT_NUMBER_RE.search(upper)
    if flight_number:
        entities.flight_number = flight_number.group(1) + flight_number.group(2)

    airline = AIRLINE_RE.search(lowered)
    if airline:
        entities.airline = AIRLINE_NAMES[airline.group(1)]

    for code in _cities_in_order(lowered):
        if entities.origin is None:
            entities.origin = code
        elif entities.destination is None:
            entities.destination = code

    entities.max_price, entities.price_range = _price(lowered)

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Extracted entities: {entities.present()}")

    return entities


def parse_date(text: str, today: Optional[date] = None) -> str:
    """
    Turn a date phrase into ``YYYY-MM-DD``.

    Relative words are resolved against ``today``; a month and day given
    without a year that has already passed this year means next year.
    Unparseable text is returned unchanged.
    """
    today = today or date.today()
    phrase = text.strip().lower()

    relative = {
        'today': today,
        'tomorrow': today + timedelta(days=1),
        'next week': today + timedelta(days=7),
        'next month': today + relativedelta(months=1),
    }
    if phrase in relative:
        return relative[phrase].isoformat()

    try:
        parsed = date_parser.parse(phrase, default=datetime(today.year, today.month, today.day)).date()
    except (ValueError, OverflowError):
        logger.debug(f"Could not parse date phrase: {text}")
        return text

    if not YEAR_RE.search(phrase) and parsed < today:
        parsed = parsed + relativedelta(years=1)

    return parsed.isoformat()

"""Deterministic intent classification for inbound chat text."""

import re
from enum import Enum
from typing import List, Optional


class Intent(str, Enum):
    FIRST_MESSAGE = "first_message"
    BOOK_APPOINTMENT = "book_appointment"
    CHECK_AVAILABILITY = "check_availability"
    LIST_SERVICES = "list_services"
    LIST_BARBERS = "list_barbers"
    CANCEL_BOOKING = "cancel_booking"
    RESCHEDULE = "reschedule"
    GENERAL_INQUIRY = "general_inquiry"
    SELECT_SERVICE = "select_service"
    SELECT_BARBER = "select_barber"
    SELECT_TIME_PERIOD = "select_time_period"
    SELECT_SPECIFIC_TIME = "select_specific_time"
    BOOKING_CONFIRMED = "booking_confirmed"


SERVICE_PREFIX = "service_"
BARBER_PREFIX = "barber_"
TIME_PREFIX = "time_"
SLOT_PREFIX = "slot_"

MORE_SERVICES = "more_services"
MORE_BARBERS = "more_barbers"
MORE_SLOTS = "more_slots"

PREFIX_INTENTS = (
    (SERVICE_PREFIX, Intent.SELECT_SERVICE),
    (BARBER_PREFIX, Intent.SELECT_BARBER),
    (TIME_PREFIX, Intent.SELECT_TIME_PERIOD),
    (SLOT_PREFIX, Intent.SELECT_SPECIFIC_TIME),
)

CONTINUATION_INTENTS = {
    MORE_SERVICES: Intent.LIST_SERVICES,
    MORE_BARBERS: Intent.LIST_BARBERS,
    MORE_SLOTS: Intent.CHECK_AVAILABILITY,
}

# Phase -> intent for a bare menu number
NUMERIC_PHASE_INTENTS = {
    "welcome": Intent.SELECT_SERVICE,
    "service_selection": Intent.SELECT_SERVICE,
    "barber_selection": Intent.SELECT_BARBER,
    "time_selection": Intent.SELECT_TIME_PERIOD,
}

MAX_MENU_NUMBER = 20

# Declared order matters: exact and substring passes both walk it top to bottom.
INTENT_KEYWORDS = (
    (
        Intent.BOOK_APPOINTMENT,
        (
            "book",
            "appointment",
            "schedule",
            "reserve",
            "booking",
            "book me",
            "i want to book",
            "can i book",
            "book a slot",
            "make appointment",
            "set appointment",
            "book now",
        ),
    ),
    (
        Intent.CHECK_AVAILABILITY,
        (
            "available",
            "availability",
            "free slots",
            "open slots",
            "when are you free",
            "what time",
            "check time",
            "available time",
            "free time",
            "slots available",
        ),
    ),
    (
        Intent.LIST_SERVICES,
        (
            "services",
            "what services",
            "service list",
            "what do you offer",
            "services available",
            "menu",
            "price list",
            "rates",
            "pricing",
            "what can you do",
        ),
    ),
    (
        Intent.LIST_BARBERS,
        (
            "barbers",
            "barber",
            "stylist",
            "who cuts hair",
            "barber list",
            "available barbers",
            "who is working",
            "staff",
            "team",
            "barbers available",
        ),
    ),
    (
        Intent.CANCEL_BOOKING,
        (
            "cancel",
            "cancellation",
            "cancel booking",
            "cancel appointment",
            "i want to cancel",
            "cancel my booking",
            "remove booking",
            "delete appointment",
        ),
    ),
    (
        Intent.RESCHEDULE,
        (
            "reschedule",
            "change time",
            "change date",
            "move appointment",
            "change booking",
            "postpone",
            "different time",
            "another time",
            "reschedule appointment",
        ),
    ),
    (
        Intent.GENERAL_INQUIRY,
        (
            "hello",
            "hi",
            "hey",
            "help",
            "information",
            "info",
            "contact",
            "phone",
            "address",
            "location",
            "hours",
            "timing",
            "open",
            "closed",
            "when do you open",
            "when do you close",
        ),
    ),
)

NUMERIC_RE = re.compile(r"^\d+$")
BOOKING_CODE_RE = re.compile(r"\b([A-HJKMNP-Z2-9]{6})\b", re.IGNORECASE)


def normalize_text(text: Optional[str]) -> str:
    return (text or "").strip().lower()


def classify_intent(text: Optional[str], phase: Optional[str]) -> Intent:
    """Map message text plus the current phase to an intent. First rule that matches wins."""
    message = normalize_text(text)
    if not message:
        return Intent.GENERAL_INQUIRY

    for prefix, intent in PREFIX_INTENTS:
        if message.startswith(prefix):
            return intent

    continuation = CONTINUATION_INTENTS.get(message)
    if continuation is not None:
        return continuation

    if NUMERIC_RE.match(message) and 1 <= int(message) <= MAX_MENU_NUMBER:
        numeric_intent = NUMERIC_PHASE_INTENTS.get(phase or "")
        if numeric_intent is not None:
            return numeric_intent

    for intent, keywords in INTENT_KEYWORDS:
        if message in keywords:
            return intent

    for intent, keywords in INTENT_KEYWORDS:
        for keyword in keywords:
            if keyword in message:
                return intent

    return Intent.GENERAL_INQUIRY


def extract_selection_key(text: Optional[str], prefix: str) -> Optional[str]:
    """'service_Haircut' -> 'haircut'. None when the prefix is absent or nothing follows it."""
    message = normalize_text(text)
    if not message.startswith(prefix):
        return None
    key = message[len(prefix) :].strip()
    return key or None


def extract_ordinal(text: Optional[str]) -> Optional[int]:
    message = normalize_text(text)
    if not NUMERIC_RE.match(message):
        return None
    value = int(message)
    if not 1 <= value <= MAX_MENU_NUMBER:
        return None
    return value


def extract_booking_codes(text: Optional[str]) -> List[str]:
    """Every code-shaped token, upper-cased, in message order.

    Plain words such as "change" are code-shaped too, so callers look each
    candidate up rather than trusting the first one.
    """
    if not text:
        return []
    return [match.upper() for match in BOOKING_CODE_RE.findall(text)]


def _looks_like_code(token: str) -> bool:
    return token.isupper() or any(ch.isdigit() for ch in token)


def extract_booking_code(text: Optional[str]) -> Optional[str]:
    """First token the user evidently meant as a code: typed upper-case or containing a digit."""
    if not text:
        return None
    for token in BOOKING_CODE_RE.findall(text):
        if _looks_like_code(token):
            return token.upper()
    return None

import re
from datetime import time

PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")
HHMM_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")


def validate_phone(field: str, value):
    if value is None:
        return value
    if not PHONE_PATTERN.match(value):
        raise ValueError(f"{field} must be in international format, got {value!r}")
    return value


def validate_hhmm(field: str, value):
    if value is None:
        return value
    if not isinstance(value, str) or not HHMM_PATTERN.match(value):
        raise ValueError(f"{field} must be in HH:MM format, got {value!r}")
    return value


def parse_hhmm(value: str) -> int:
    """'09:30' -> 570 minutes since midnight."""
    match = HHMM_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Invalid HH:MM value: {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_12h(minutes: int) -> str:
    """570 -> '9:30 AM'."""
    return time(minutes // 60, minutes % 60).strftime("%I:%M %p").lstrip("0")

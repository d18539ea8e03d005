"""Slot availability for a barber on a given day.

All times are minutes since shop-local midnight. Intervals are half-open:
a slot ``[start, end)`` and a booking ``[b_start, b_end)`` collide when
``start < b_end and b_start < end``.
"""

from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from quickbarber.logging_config import get_logger
from quickbarber.models import Barber, Booking, BookingStatus, ShopSettings
from quickbarber.models.validators import format_12h, format_hhmm, parse_hhmm

logger = get_logger("availability_service")

IMMEDIATE_BUFFER_MIN = 15
IMMEDIATE_WINDOW_MIN = 120

PERIOD_IMMEDIATE = "immediate"
PERIOD_EVENING = "evening"
PERIOD_LATER_TODAY = "later_today"
PERIOD_ORDER = (PERIOD_IMMEDIATE, PERIOD_EVENING, PERIOD_LATER_TODAY)

PERIOD_TITLES = {
    PERIOD_IMMEDIATE: "Immediate",
    PERIOD_EVENING: "This evening",
    PERIOD_LATER_TODAY: "Later today",
}

PERIOD_DESCRIPTIONS = {
    PERIOD_IMMEDIATE: "immediate slots (next 2 hours)",
    PERIOD_EVENING: "this evening",
    PERIOD_LATER_TODAY: "later today",
}


@dataclass(frozen=True)
class Slot:
    start: int
    end: int

    @property
    def start_time(self) -> str:
        return format_hhmm(self.start)

    @property
    def end_time(self) -> str:
        return format_hhmm(self.end)

    @property
    def title(self) -> str:
        return format_12h(self.start)

    @property
    def key(self) -> str:
        """Button id, e.g. ``slot_0930``."""
        return f"slot_{self.start_time.replace(':', '')}"


def parse_slot_key(value: Optional[str]) -> Optional[int]:
    """'slot_0930' / 'slot_09:30' / '0930' -> 570."""
    if not value:
        return None
    raw = value.strip().lower()
    if raw.startswith("slot_"):
        raw = raw[len("slot_") :]
    if ":" not in raw and len(raw) == 4 and raw.isdigit():
        raw = f"{raw[:2]}:{raw[2:]}"
    try:
        return parse_hhmm(raw)
    except ValueError:
        return None


def _overlaps(start: int, end: int, other_start: int, other_end: int) -> bool:
    return start < other_end and other_start < end


def _barber_window(hours: Optional[dict], open_min: int, close_min: int) -> Optional[Tuple[int, int]]:
    """Intersect the barber's day with shop hours. None means not working."""
    if hours is None:
        return open_min, close_min
    if not hours.get("is_working", True):
        return None
    start = parse_hhmm(hours["start"]) if hours.get("start") else open_min
    end = parse_hhmm(hours["end"]) if hours.get("end") else close_min
    start = max(start, open_min)
    end = min(end, close_min)
    if start >= end:
        return None
    return start, end


def compute_slots(
    *,
    open_time: str,
    close_time: str,
    interval_min: int,
    duration_min: int,
    lunch: Optional[Tuple[str, str]] = None,
    barber_hours: Optional[dict] = None,
    booked: Iterable[Tuple[str, str]] = (),
) -> List[Slot]:
    """Enumerate free slots for one barber-day. Pure; no clock, no database."""
    open_min = parse_hhmm(open_time)
    close_min = parse_hhmm(close_time)
    window = _barber_window(barber_hours, open_min, close_min)
    if window is None or interval_min <= 0 or duration_min <= 0:
        return []
    work_start, work_end = window

    lunch_range = None
    if lunch and lunch[0] and lunch[1]:
        lunch_range = (parse_hhmm(lunch[0]), parse_hhmm(lunch[1]))

    busy = [(parse_hhmm(start), parse_hhmm(end)) for start, end in booked]

    slots = []
    for start in range(open_min, close_min, interval_min):
        end = start + duration_min
        if start < work_start or end > work_end:
            continue
        if lunch_range and _overlaps(start, end, *lunch_range):
            continue
        if any(_overlaps(start, end, b_start, b_end) for b_start, b_end in busy):
            continue
        slots.append(Slot(start, end))
    return slots


def booked_ranges(db: Session, shop_id: str, barber_id: str, day: date) -> List[Tuple[str, str]]:
    rows = (
        db.query(Booking.start_time, Booking.end_time)
        .filter(
            Booking.shop_id == shop_id,
            Booking.barber_id == barber_id,
            Booking.date == day,
            Booking.status != BookingStatus.CANCELLED.value,
        )
        .all()
    )
    return [(row.start_time, row.end_time) for row in rows]


def available_slots(
    db: Session,
    shop: ShopSettings,
    barber: Barber,
    day: date,
    duration_min: int,
) -> List[Slot]:
    lunch = (shop.lunch_start, shop.lunch_end) if shop.lunch_start and shop.lunch_end else None
    slots = compute_slots(
        open_time=shop.start_time,
        close_time=shop.close_time,
        interval_min=shop.slot_interval_min,
        duration_min=duration_min,
        lunch=lunch,
        barber_hours=barber.hours_for(day.weekday()),
        booked=booked_ranges(db, shop.shop_id, barber.barber_id, day),
    )
    logger.debug(
        "Computed availability",
        extra={
            "context": {
                "shop_id": shop.shop_id,
                "barber_id": barber.barber_id,
                "date": day.isoformat(),
                "slots": len(slots),
            }
        },
    )
    return slots


def bucket_periods(
    slots: Sequence[Slot],
    now_minutes: int,
    evening_start: Optional[str] = None,
) -> Dict[str, List[Slot]]:
    """Group today's remaining slots into coarse periods, in offer order, non-empty only."""
    evening_min = parse_hhmm(evening_start) if evening_start else None
    earliest = now_minutes + IMMEDIATE_BUFFER_MIN
    immediate_until = now_minutes + IMMEDIATE_WINDOW_MIN

    buckets: Dict[str, List[Slot]] = {key: [] for key in PERIOD_ORDER}
    for slot in slots:
        if slot.start < earliest:
            continue
        if slot.start < immediate_until:
            buckets[PERIOD_IMMEDIATE].append(slot)
        elif evening_min is not None and slot.start >= evening_min:
            buckets[PERIOD_EVENING].append(slot)
        else:
            buckets[PERIOD_LATER_TODAY].append(slot)
    return {key: buckets[key] for key in PERIOD_ORDER if buckets[key]}

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from quickbarber.database import insert_if_absent
from quickbarber.logging_config import get_logger
from quickbarber.models import Booking, BookingStatus
from quickbarber.models.booking import NON_CANCELLED_WHERE, UPCOMING_STATUSES, new_booking_id
from quickbarber.services.booking_code_service import BookingCodeAssigner
from quickbarber.services.state_machine import InvalidTransitionError

logger = get_logger("booking_service")

VALID_TRANSITIONS = {
    BookingStatus.PENDING: [
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
        BookingStatus.RESCHEDULED,
        BookingStatus.NO_SHOW,
    ],
    BookingStatus.CONFIRMED: [
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
        BookingStatus.RESCHEDULED,
        BookingStatus.NO_SHOW,
    ],
    BookingStatus.COMPLETED: [],
    BookingStatus.CANCELLED: [],
    BookingStatus.NO_SHOW: [],
    BookingStatus.RESCHEDULED: [],
}

SLOT_INDEX_ELEMENTS = ["shop_id", "barber_id", "date", "start_time"]


class SlotUnavailableError(Exception):
    def __init__(self, barber_id: str, day: date, start_time: str):
        self.barber_id = barber_id
        self.day = day
        self.start_time = start_time
        super().__init__(f"Slot {day.isoformat()} {start_time} is already booked for barber {barber_id}")


def can_transition(from_status: BookingStatus, to_status: BookingStatus) -> bool:
    return to_status in VALID_TRANSITIONS.get(from_status, [])


def update_booking_status(db: Session, booking: Booking, new_status: BookingStatus) -> Booking:
    """Move a booking along the status table. Raises InvalidTransitionError if not allowed."""
    current = BookingStatus(booking.status)
    if not can_transition(current, new_status):
        raise InvalidTransitionError(current, new_status)
    booking.status = new_status.value
    booking.updated_at = datetime.now(timezone.utc)
    db.flush()
    logger.info(
        "Booking status changed",
        extra={
            "context": {
                "booking_id": booking.booking_id,
                "from": current.value,
                "to": new_status.value,
            }
        },
    )
    return booking


def create_booking(
    db: Session,
    *,
    shop_id: str,
    day: date,
    start_time: str,
    end_time: str,
    service_key: str,
    barber_id: str,
    customer_phone: str,
    price: Optional[Decimal] = None,
    code_assigner: Optional[BookingCodeAssigner] = None,
    status: BookingStatus = BookingStatus.CONFIRMED,
) -> Booking:
    """Insert a booking unless a non-cancelled one already holds the same barber slot.

    Raises SlotUnavailableError when the slot is taken and CodeAllocationExhausted
    when no unused booking code could be drawn.
    """
    assigner = code_assigner or BookingCodeAssigner()
    record = Booking(
        booking_id=new_booking_id(),
        booking_code=assigner.assign(db),
        shop_id=shop_id,
        date=day,
        start_time=start_time,
        end_time=end_time,
        service_key=service_key,
        barber_id=barber_id,
        customer_phone=customer_phone,
        price=price,
        status=status.value,
    )
    inserted = insert_if_absent(
        db,
        record,
        index_elements=SLOT_INDEX_ELEMENTS,
        index_where=NON_CANCELLED_WHERE,
    )
    if not inserted:
        logger.info(
            "Slot already booked",
            extra={"context": {"shop_id": shop_id, "barber_id": barber_id, "date": day.isoformat(), "start": start_time}},
        )
        raise SlotUnavailableError(barber_id, day, start_time)

    booking = db.query(Booking).filter(Booking.booking_id == record.booking_id).one()
    logger.info(
        "Booking created",
        extra={
            "context": {
                "booking_id": booking.booking_id,
                "booking_code": booking.booking_code,
                "shop_id": shop_id,
                "barber_id": barber_id,
            }
        },
    )
    return booking


def get_booking_by_code(db: Session, shop_id: str, customer_phone: str, code: str) -> Optional[Booking]:
    return (
        db.query(Booking)
        .filter(
            Booking.shop_id == shop_id,
            Booking.customer_phone == customer_phone,
            Booking.booking_code == code.upper(),
        )
        .first()
    )


def find_upcoming_booking(
    db: Session,
    shop_id: str,
    customer_phone: str,
    today: date,
    now_time: str,
    *,
    same_day_only: bool = False,
) -> Optional[Booking]:
    """Nearest pending/confirmed booking of this customer at this shop that has not started yet."""
    later_today = and_(Booking.date == today, Booking.start_time >= now_time)
    query = db.query(Booking).filter(
        Booking.shop_id == shop_id,
        Booking.customer_phone == customer_phone,
        Booking.status.in_(UPCOMING_STATUSES),
        later_today if same_day_only else or_(Booking.date > today, later_today),
    )
    return query.order_by(Booking.date, Booking.start_time).first()


def cancel_booking(db: Session, booking: Booking) -> Booking:
    return update_booking_status(db, booking, BookingStatus.CANCELLED)


def mark_rescheduled(db: Session, booking_id: str) -> Optional[Booking]:
    booking = db.query(Booking).filter(Booking.booking_id == booking_id).first()
    if booking is None or not can_transition(BookingStatus(booking.status), BookingStatus.RESCHEDULED):
        return None
    return update_booking_status(db, booking, BookingStatus.RESCHEDULED)

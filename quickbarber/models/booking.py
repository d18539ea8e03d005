import uuid
from enum import Enum

from sqlalchemy import Column, Date, DateTime, Index, Numeric, Text, text
from sqlalchemy.orm import validates
from sqlalchemy.sql import func

from quickbarber.database import Base
from quickbarber.models.validators import validate_hhmm, validate_phone


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    RESCHEDULED = "rescheduled"


UPCOMING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)

NON_CANCELLED_WHERE = text("status <> 'cancelled'")


def new_booking_id() -> str:
    return uuid.uuid4().hex


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        # one non-cancelled booking per barber slot start
        Index(
            "uq_bookings_slot",
            "shop_id",
            "barber_id",
            "date",
            "start_time",
            unique=True,
            postgresql_where=NON_CANCELLED_WHERE,
            sqlite_where=NON_CANCELLED_WHERE,
        ),
        Index("ix_bookings_barber_date_status", "barber_id", "date", "status"),
        Index("ix_bookings_customer_status", "customer_phone", "status"),
    )

    booking_id = Column(Text, primary_key=True, default=new_booking_id)
    booking_code = Column(Text, nullable=False, unique=True)
    shop_id = Column(Text, nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Text, nullable=False)
    end_time = Column(Text, nullable=False)
    service_key = Column(Text, nullable=False)
    barber_id = Column(Text, nullable=False)
    customer_phone = Column(Text, nullable=False)
    customer_name = Column(Text)
    price = Column(Numeric(10, 2))
    status = Column(Text, nullable=False, default=BookingStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    @validates("start_time", "end_time")
    def _validate_times(self, key, value):
        return validate_hhmm(key, value)

    @validates("customer_phone")
    def _validate_customer_phone(self, key, value):
        return validate_phone(key, value)

    @validates("status")
    def _validate_status(self, key, value):
        return BookingStatus(value).value

    @validates("booking_code")
    def _validate_booking_code(self, key, value):
        if not value:
            raise ValueError("booking_code is required")
        return value

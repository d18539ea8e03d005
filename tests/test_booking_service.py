from datetime import date
from decimal import Decimal

import pytest

from quickbarber.models import Booking, BookingStatus
from quickbarber.services import booking_service
from quickbarber.services.booking_code_service import BookingCodeAssigner
from quickbarber.services.booking_service import (
    SlotUnavailableError,
    can_transition,
    cancel_booking,
    create_booking,
    find_upcoming_booking,
    get_booking_by_code,
    mark_rescheduled,
    update_booking_status,
)
from quickbarber.services.state_machine import InvalidTransitionError
from tests.conftest import CUSTOMER, SHOP_ID, SequenceCodes

DAY = date(2026, 3, 10)


def _create(db, start="10:30", end="11:00", code="ABC234", barber_id="ravi", day=DAY):
    return create_booking(
        db,
        shop_id=SHOP_ID,
        day=day,
        start_time=start,
        end_time=end,
        service_key="haircut",
        barber_id=barber_id,
        customer_phone=CUSTOMER,
        price=Decimal("300"),
        code_assigner=BookingCodeAssigner(generator=SequenceCodes(code)),
    )


class TestCreateBooking:
    def test_creates_confirmed_booking(self, db):
        booking = _create(db)

        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.booking_code == "ABC234"
        assert booking.date == DAY
        assert db.query(Booking).count() == 1

    def test_same_slot_twice_raises(self, db):
        _create(db, code="ABC234")

        with pytest.raises(SlotUnavailableError):
            _create(db, code="XYZ789")

        assert db.query(Booking).count() == 1

    def test_same_start_other_barber_is_fine(self, db):
        _create(db, code="ABC234")
        _create(db, code="XYZ789", barber_id="arjun")

        assert db.query(Booking).count() == 2

    def test_cancelled_slot_can_be_rebooked(self, db):
        first = _create(db, code="ABC234")
        cancel_booking(db, first)

        second = _create(db, code="XYZ789")

        assert second.status == BookingStatus.CONFIRMED.value
        assert db.query(Booking).count() == 2

    def test_invalid_time_rejected(self, db):
        with pytest.raises(ValueError):
            _create(db, start="25:00")


class TestStatusTransitions:
    @pytest.mark.parametrize(
        "from_status,to_status,allowed",
        [
            (BookingStatus.PENDING, BookingStatus.CONFIRMED, True),
            (BookingStatus.CONFIRMED, BookingStatus.COMPLETED, True),
            (BookingStatus.CONFIRMED, BookingStatus.RESCHEDULED, True),
            (BookingStatus.CONFIRMED, BookingStatus.PENDING, False),
            (BookingStatus.COMPLETED, BookingStatus.CANCELLED, False),
            (BookingStatus.CANCELLED, BookingStatus.CONFIRMED, False),
            (BookingStatus.NO_SHOW, BookingStatus.COMPLETED, False),
        ],
    )
    def test_table(self, from_status, to_status, allowed):
        assert can_transition(from_status, to_status) is allowed

    def test_update_applies_valid_transition(self, db):
        booking = _create(db)
        update_booking_status(db, booking, BookingStatus.COMPLETED)
        assert booking.status == BookingStatus.COMPLETED.value

    def test_update_rejects_invalid_transition(self, db):
        booking = _create(db)
        cancel_booking(db, booking)

        with pytest.raises(InvalidTransitionError):
            update_booking_status(db, booking, BookingStatus.CONFIRMED)

    def test_error_is_reexported(self):
        assert booking_service.InvalidTransitionError is InvalidTransitionError

    def test_mark_rescheduled(self, db):
        booking = _create(db)
        assert mark_rescheduled(db, booking.booking_id).status == BookingStatus.RESCHEDULED.value
        assert mark_rescheduled(db, booking.booking_id) is None


class TestLookups:
    def test_find_upcoming_returns_nearest(self, db):
        _create(db, start="16:00", end="16:30", code="ABC234")
        _create(db, start="11:00", end="11:30", code="XYZ789")

        booking = find_upcoming_booking(db, SHOP_ID, CUSTOMER, DAY, "10:00")

        assert booking.booking_code == "XYZ789"

    def test_find_upcoming_skips_started_and_cancelled(self, db):
        _create(db, start="09:30", end="10:00", code="ABC234")
        later = _create(db, start="15:00", end="15:30", code="XYZ789")
        cancel_booking(db, later)

        assert find_upcoming_booking(db, SHOP_ID, CUSTOMER, DAY, "10:00") is None

    def test_find_upcoming_includes_future_days(self, db):
        _create(db, start="09:00", end="09:30", code="ABC234", day=date(2026, 3, 11))

        booking = find_upcoming_booking(db, SHOP_ID, CUSTOMER, DAY, "17:00")

        assert booking.date == date(2026, 3, 11)

    def test_find_upcoming_same_day_only(self, db):
        _create(db, start="09:00", end="09:30", code="ABC234", day=date(2026, 3, 11))

        assert find_upcoming_booking(db, SHOP_ID, CUSTOMER, DAY, "10:00", same_day_only=True) is None

        _create(db, start="16:00", end="16:30", code="XYZ789")
        booking = find_upcoming_booking(db, SHOP_ID, CUSTOMER, DAY, "10:00", same_day_only=True)

        assert booking.booking_code == "XYZ789"

    def test_get_by_code_is_scoped_to_customer(self, db):
        _create(db, code="ABC234")

        assert get_booking_by_code(db, SHOP_ID, CUSTOMER, "abc234") is not None
        assert get_booking_by_code(db, SHOP_ID, "919800000001", "ABC234") is None

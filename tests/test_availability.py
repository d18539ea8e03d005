from datetime import date

from quickbarber.models import Barber, Booking, BookingStatus
from quickbarber.services.availability_service import (
    PERIOD_EVENING,
    PERIOD_IMMEDIATE,
    PERIOD_LATER_TODAY,
    Slot,
    available_slots,
    bucket_periods,
    compute_slots,
    parse_slot_key,
)
from tests.conftest import SHOP_ID

TUESDAY = date(2026, 3, 10)


def _starts(slots):
    return [slot.start_time for slot in slots]


class TestComputeSlots:
    def test_lunch_and_existing_booking_are_excluded(self):
        slots = compute_slots(
            open_time="09:00",
            close_time="18:00",
            interval_min=30,
            duration_min=30,
            lunch=("13:00", "14:00"),
            booked=[("10:00", "10:30")],
        )

        starts = _starts(slots)
        assert starts[:3] == ["09:00", "09:30", "10:30"]
        assert "10:00" not in starts
        assert "13:00" not in starts and "13:30" not in starts
        assert "12:30" in starts
        assert "14:00" in starts
        assert starts[-1] == "17:30"
        assert len(starts) == 15

    def test_slot_must_fit_before_close(self):
        slots = compute_slots(open_time="09:00", close_time="10:00", interval_min=15, duration_min=45)
        assert _starts(slots) == ["09:00", "09:15"]

    def test_long_service_cannot_span_lunch(self):
        slots = compute_slots(
            open_time="12:00",
            close_time="15:00",
            interval_min=30,
            duration_min=60,
            lunch=("13:00", "14:00"),
        )
        assert _starts(slots) == ["12:00", "14:00"]

    def test_barber_hours_narrow_the_day(self):
        slots = compute_slots(
            open_time="09:00",
            close_time="18:00",
            interval_min=60,
            duration_min=60,
            barber_hours={"start": "15:00", "end": "20:00", "is_working": True},
        )
        assert _starts(slots) == ["15:00", "16:00", "17:00"]

    def test_barber_day_off(self):
        slots = compute_slots(
            open_time="09:00",
            close_time="18:00",
            interval_min=30,
            duration_min=30,
            barber_hours={"start": "09:00", "end": "18:00", "is_working": False},
        )
        assert slots == []

    def test_overlap_is_half_open(self):
        slots = compute_slots(
            open_time="09:00",
            close_time="11:00",
            interval_min=30,
            duration_min=30,
            booked=[("09:30", "10:00")],
        )
        assert _starts(slots) == ["09:00", "10:00", "10:30"]


class TestAvailableSlots:
    def test_uses_stored_bookings_and_ignores_cancelled(self, db, shop):
        barber = db.query(Barber).filter(Barber.barber_id == "ravi").one()
        db.add_all(
            [
                Booking(
                    booking_code="AAAAAA",
                    shop_id=SHOP_ID,
                    date=TUESDAY,
                    start_time="10:00",
                    end_time="10:30",
                    service_key="haircut",
                    barber_id="ravi",
                    customer_phone="919811122233",
                    status=BookingStatus.CONFIRMED.value,
                ),
                Booking(
                    booking_code="BBBBBB",
                    shop_id=SHOP_ID,
                    date=TUESDAY,
                    start_time="11:00",
                    end_time="11:30",
                    service_key="haircut",
                    barber_id="ravi",
                    customer_phone="919811122233",
                    status=BookingStatus.CANCELLED.value,
                ),
            ]
        )
        db.flush()

        starts = _starts(available_slots(db, shop.settings, barber, TUESDAY, 30))

        assert "10:00" not in starts
        assert "11:00" in starts

    def test_other_barber_unaffected(self, db, shop):
        db.add(
            Booking(
                booking_code="CCCCCC",
                shop_id=SHOP_ID,
                date=TUESDAY,
                start_time="10:00",
                end_time="10:30",
                service_key="haircut",
                barber_id="ravi",
                customer_phone="919811122233",
                status=BookingStatus.CONFIRMED.value,
            )
        )
        db.flush()
        arjun = db.query(Barber).filter(Barber.barber_id == "arjun").one()

        assert "10:00" in _starts(available_slots(db, shop.settings, arjun, TUESDAY, 30))

    def test_missing_weekday_means_full_hours(self, db, shop):
        barber = db.query(Barber).filter(Barber.barber_id == "ravi").one()
        barber.working_hours = {"monday": {"start": "12:00", "end": "14:00", "is_working": True}}
        db.flush()

        starts = _starts(available_slots(db, shop.settings, barber, TUESDAY, 30))

        assert starts[0] == "09:00"


class TestBucketPeriods:
    def test_periods_in_offer_order(self):
        slots = [Slot(m, m + 30) for m in range(9 * 60, 18 * 60, 30)]

        periods = bucket_periods(slots, now_minutes=10 * 60, evening_start="17:00")

        assert list(periods) == [PERIOD_IMMEDIATE, PERIOD_EVENING, PERIOD_LATER_TODAY]
        assert _starts(periods[PERIOD_IMMEDIATE]) == ["10:30", "11:00", "11:30"]
        assert _starts(periods[PERIOD_EVENING]) == ["17:00", "17:30"]
        assert _starts(periods[PERIOD_LATER_TODAY])[0] == "12:00"

    def test_empty_periods_are_omitted(self):
        slots = [Slot(11 * 60, 11 * 60 + 30)]

        periods = bucket_periods(slots, now_minutes=10 * 60, evening_start="17:00")

        assert list(periods) == [PERIOD_IMMEDIATE]

    def test_slots_too_soon_are_dropped(self):
        slots = [Slot(10 * 60 + 10, 10 * 60 + 40)]
        assert bucket_periods(slots, now_minutes=10 * 60) == {}

    def test_without_evening_start_everything_is_later_today(self):
        slots = [Slot(17 * 60, 17 * 60 + 30)]
        assert list(bucket_periods(slots, now_minutes=9 * 60)) == [PERIOD_LATER_TODAY]


class TestSlot:
    def test_labels(self):
        slot = Slot(14 * 60 + 30, 15 * 60)
        assert slot.start_time == "14:30"
        assert slot.end_time == "15:00"
        assert slot.title == "2:30 PM"
        assert slot.key == "slot_1430"

    def test_parse_slot_key(self):
        assert parse_slot_key("slot_0930") == 570
        assert parse_slot_key("slot_09:30") == 570
        assert parse_slot_key("slot_2560") is None
        assert parse_slot_key(None) is None

from datetime import date

import pytest

from quickbarber.models import Barber, Booking, ChatSession, ServiceCatalog, ShopSettings, WabaNumber
from quickbarber.models.validators import format_12h, parse_hhmm


class TestValidators:
    def test_hhmm_helpers(self):
        assert parse_hhmm("09:30") == 570
        assert parse_hhmm("9:05") == 545
        assert format_12h(0) == "12:00 AM"
        assert format_12h(13 * 60 + 5) == "1:05 PM"
        with pytest.raises(ValueError):
            parse_hhmm("24:00")

    def test_session_phone_format(self):
        ChatSession(user_phone="+919811122233", shop_id="s")
        with pytest.raises(ValueError):
            ChatSession(user_phone="0123", shop_id="s")

    def test_session_phase_must_be_known(self):
        with pytest.raises(ValueError):
            ChatSession(user_phone="919811122233", shop_id="s", phase="lobby")

    def test_booking_status_must_be_known(self):
        with pytest.raises(ValueError):
            Booking(booking_code="ABC234", date=date(2026, 3, 10), status="maybe")

    def test_booking_times(self):
        with pytest.raises(ValueError):
            Booking(booking_code="ABC234", start_time="9.30")

    def test_settings_slot_interval_range(self):
        ShopSettings(shop_id="s", shop_name="S", start_time="09:00", close_time="18:00", slot_interval_min=5)
        with pytest.raises(ValueError):
            ShopSettings(shop_id="s", shop_name="S", start_time="09:00", close_time="18:00", slot_interval_min=90)

    def test_blank_evening_start_is_none(self):
        settings = ShopSettings(shop_id="s", shop_name="S", start_time="09:00", close_time="18:00", evening_start=" ")
        assert settings.evening_start is None

    def test_service_duration_range(self):
        with pytest.raises(ValueError):
            ServiceCatalog(service_key="x", label="X", duration_min=600)

    def test_barber_working_hours(self):
        barber = Barber(
            barber_id="b",
            shop_id="s",
            name="B",
            working_hours={"friday": {"start": "10:00", "end": "16:00", "is_working": True}},
        )
        assert barber.hours_for(4)["start"] == "10:00"
        assert barber.hours_for(0) is None
        with pytest.raises(ValueError):
            Barber(barber_id="b", shop_id="s", name="B", working_hours={"funday": {}})

    def test_waba_display_number(self):
        with pytest.raises(ValueError):
            WabaNumber(phone_number_id="1", display_phone_number="call me", shop_id="s")

from sqlalchemy import Column, Integer, Text
from sqlalchemy.orm import validates

from quickbarber.database import Base
from quickbarber.models.validators import validate_hhmm


class ShopSettings(Base):
    __tablename__ = "settings"

    shop_id = Column(Text, primary_key=True)
    shop_name = Column(Text, nullable=False)
    time_zone = Column(Text, nullable=False, default="Asia/Kolkata")
    start_time = Column(Text, nullable=False)
    close_time = Column(Text, nullable=False)
    lunch_start = Column(Text)
    lunch_end = Column(Text)
    evening_start = Column(Text)
    slot_interval_min = Column(Integer, nullable=False, default=15)

    @validates("start_time", "close_time", "lunch_start", "lunch_end")
    def _validate_times(self, key, value):
        return validate_hhmm(key, value)

    @validates("evening_start")
    def _validate_evening_start(self, key, value):
        if value is not None and not value.strip():
            return None
        return validate_hhmm(key, value)

    @validates("slot_interval_min")
    def _validate_slot_interval(self, key, value):
        if value is None or not 5 <= int(value) <= 60:
            raise ValueError(f"slot_interval_min must be between 5 and 60, got {value!r}")
        return int(value)

from sqlalchemy import Boolean, Column, Index, Integer, Text
from sqlalchemy.orm import validates

from quickbarber.database import Base, JSONType
from quickbarber.models.validators import validate_hhmm

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class Barber(Base):
    __tablename__ = "barbers"
    __table_args__ = (Index("ix_barbers_shop_active_order", "shop_id", "active", "sort_order"),)

    barber_id = Column(Text, primary_key=True)
    shop_id = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    # {"monday": {"start": "09:00", "end": "18:00", "is_working": true}, ...}
    working_hours = Column(JSONType, nullable=False, default=dict)
    sort_order = Column(Integer, nullable=False, default=0)

    @validates("working_hours")
    def _validate_working_hours(self, key, value):
        value = value or {}
        for day, hours in value.items():
            if day not in WEEKDAYS:
                raise ValueError(f"Unknown weekday in working_hours: {day!r}")
            if hours.get("start") is not None:
                validate_hhmm(f"{day}.start", hours["start"])
            if hours.get("end") is not None:
                validate_hhmm(f"{day}.end", hours["end"])
        return value

    def hours_for(self, weekday: int):
        """Working hours for a ``date.weekday()`` index, or None when unspecified."""
        return (self.working_hours or {}).get(WEEKDAYS[weekday])

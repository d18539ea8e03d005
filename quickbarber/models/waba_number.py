from sqlalchemy import Boolean, Column, Text
from sqlalchemy.orm import validates

from quickbarber.database import Base
from quickbarber.models.validators import validate_phone


class WabaNumber(Base):
    """WhatsApp Business number registry: routes inbound messages to a shop."""

    __tablename__ = "waba_numbers"

    phone_number_id = Column(Text, primary_key=True)
    display_phone_number = Column(Text, nullable=False)
    shop_id = Column(Text, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    @validates("display_phone_number")
    def _validate_display_phone_number(self, key, value):
        return validate_phone(key, value)

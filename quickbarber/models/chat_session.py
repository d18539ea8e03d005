import uuid

from sqlalchemy import Boolean, Column, DateTime, Index, Text, Uuid, text
from sqlalchemy.orm import validates
from sqlalchemy.sql import func

from quickbarber.database import Base, JSONType
from quickbarber.models.validators import validate_phone
from quickbarber.services.intent_service import Intent
from quickbarber.services.state_machine import Phase

ACTIVE_SESSION_WHERE = text("is_active")


class ChatSession(Base):
    """One user's in-progress booking conversation with one shop."""

    __tablename__ = "sessions"
    __table_args__ = (
        # at most one active session per (user, shop)
        Index(
            "uq_sessions_active_user_shop",
            "user_phone",
            "shop_id",
            unique=True,
            postgresql_where=ACTIVE_SESSION_WHERE,
            sqlite_where=ACTIVE_SESSION_WHERE,
        ),
        Index("ix_sessions_user_shop", "user_phone", "shop_id"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_phone = Column(Text, nullable=False)
    shop_id = Column(Text, nullable=False)
    phone_number_id = Column(Text)
    phase = Column(Text, nullable=False, default=Phase.WELCOME.value)
    intent = Column(Text)
    selected_service = Column(Text)
    selected_barber_id = Column(Text)
    selected_barber_name = Column(Text)
    time_period_key = Column(Text)
    booking_id = Column(Text)
    booking_code = Column(Text)
    context = Column(JSONType, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    last_activity = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    @validates("user_phone")
    def _validate_user_phone(self, key, value):
        return validate_phone(key, value)

    @validates("phase")
    def _validate_phase(self, key, value):
        return Phase(value).value

    @validates("intent")
    def _validate_intent(self, key, value):
        return Intent(value).value if value is not None else None

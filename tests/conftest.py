from datetime import datetime, timezone
from decimal import Decimal

import pytest

from quickbarber.database import Database
from quickbarber.models import Barber, ServiceCatalog, ShopSettings, WabaNumber
from quickbarber.services.booking_code_service import BookingCodeAssigner
from quickbarber.services.catalog_service import resolve_shop
from quickbarber.services.conversation_engine import ConversationEngine
from quickbarber.services.messaging import MessageSender

SHOP_ID = "shop-1"
PHONE_NUMBER_ID = "109876543210"
CUSTOMER = "919811122233"

# Tuesday 10:00 in Asia/Kolkata
FIXED_NOW = datetime(2026, 3, 10, 4, 30, tzinfo=timezone.utc)


class FakeSender(MessageSender):
    def __init__(self):
        self.sent = []
        self.read = []

    def send_text(self, to, body):
        self.sent.append({"kind": "text", "to": to, "body": body, "options": []})
        return {}

    def send_buttons(self, to, body, options):
        self.sent.append({"kind": "buttons", "to": to, "body": body, "options": [o.id for o in options]})
        return {}

    def mark_as_read(self, message_id):
        self.read.append(message_id)

    @property
    def last(self):
        return self.sent[-1]


class SequenceCodes:
    """Deterministic booking codes for assertions."""

    def __init__(self, *codes):
        self.codes = list(codes)

    def __call__(self):
        return self.codes.pop(0)


def seed_shop(db):
    db.add(
        ShopSettings(
            shop_id=SHOP_ID,
            shop_name="Fade Factory",
            time_zone="Asia/Kolkata",
            start_time="09:00",
            close_time="18:00",
            lunch_start="13:00",
            lunch_end="14:00",
            evening_start="17:00",
            slot_interval_min=30,
        )
    )
    db.add(WabaNumber(phone_number_id=PHONE_NUMBER_ID, display_phone_number="+919800000000", shop_id=SHOP_ID))
    db.add_all(
        [
            ServiceCatalog(service_key="haircut", label="Haircut", duration_min=30, default_price=Decimal("300"), sort_order=1),
            ServiceCatalog(service_key="beard_trim", label="Beard Trim", duration_min=15, default_price=Decimal("150"), sort_order=2),
            ServiceCatalog(service_key="haircut_beard", label="Haircut + Beard", duration_min=45, default_price=Decimal("400"), sort_order=3),
            ServiceCatalog(service_key="hair_color", label="Hair Colour", duration_min=60, default_price=Decimal("800"), sort_order=4),
        ]
    )
    db.add_all(
        [
            Barber(barber_id="ravi", shop_id=SHOP_ID, name="Ravi", sort_order=1),
            Barber(barber_id="arjun", shop_id=SHOP_ID, name="Arjun", sort_order=2),
        ]
    )
    db.flush()


@pytest.fixture
def database():
    database = Database("sqlite://").open()
    database.create_all()
    yield database
    database.close()


@pytest.fixture
def db(database):
    session = database.new_session()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def shop(db):
    seed_shop(db)
    return resolve_shop(db, PHONE_NUMBER_ID)


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def engine(sender):
    return ConversationEngine(
        sender,
        clock=lambda: FIXED_NOW,
        code_assigner=BookingCodeAssigner(generator=SequenceCodes("ABC234", "XYZ789", "KMN456")),
    )

"""Load a demo shop so a fresh database can take bookings.

    python -m quickbarber.seed <phone_number_id> <display_phone_number>
"""

import sys
from decimal import Decimal

from sqlalchemy.orm import Session

from quickbarber.config import settings
from quickbarber.database import Database
from quickbarber.logging_config import get_logger, setup_logging
from quickbarber.models import Barber, ServiceCatalog, ShopSettings, WabaNumber

logger = get_logger("seed")

DEMO_SHOP_ID = "demo-shop"

DEMO_SERVICES = [
    ("haircut", "Hair Cut", 30, "500"),
    ("beard_trim", "Beard Trim", 20, "300"),
    ("cut_beard", "Cut + Beard", 45, "700"),
    ("hair_wash", "Hair Wash", 15, "200"),
]

DEMO_BARBERS = [
    ("demo-rahul", "Rahul"),
    ("demo-amit", "Amit"),
    ("demo-vikram", "Vikram"),
]


def seed_demo_shop(db: Session, phone_number_id: str, display_phone_number: str, shop_id: str = DEMO_SHOP_ID) -> None:
    """Idempotent: re-running updates rows in place."""
    db.merge(
        ShopSettings(
            shop_id=shop_id,
            shop_name="QuickBarber Demo",
            time_zone="Asia/Kolkata",
            start_time="09:00",
            close_time="21:00",
            lunch_start="13:00",
            lunch_end="14:00",
            evening_start="18:00",
            slot_interval_min=15,
        )
    )
    db.merge(
        WabaNumber(
            phone_number_id=phone_number_id,
            display_phone_number=display_phone_number,
            shop_id=shop_id,
            is_active=True,
        )
    )
    for order, (key, label, duration, price) in enumerate(DEMO_SERVICES, start=1):
        db.merge(
            ServiceCatalog(
                service_key=key,
                label=label,
                duration_min=duration,
                default_price=Decimal(price),
                is_active=True,
                sort_order=order,
            )
        )
    for order, (barber_id, name) in enumerate(DEMO_BARBERS, start=1):
        db.merge(
            Barber(
                barber_id=barber_id,
                shop_id=shop_id,
                name=name,
                active=True,
                working_hours={"sunday": {"start": "10:00", "end": "16:00", "is_working": True}},
                sort_order=order,
            )
        )
    db.flush()
    logger.info(
        "Demo shop seeded",
        extra={"context": {"shop_id": shop_id, "phone_number_id": phone_number_id}},
    )


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 2:
        print(__doc__.strip())
        return 2
    setup_logging(settings.log_level)
    database = Database(settings.database_url).open()
    try:
        database.create_all()
        with database.session() as db:
            seed_demo_shop(db, args[0], args[1])
    finally:
        database.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())

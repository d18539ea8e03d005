"""Shop-scoped views of the service catalog and barber roster."""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from quickbarber.models import Barber, ServiceCatalog, ShopServiceOverride, ShopSettings, WabaNumber


@dataclass(frozen=True)
class ShopService:
    service_key: str
    label: str
    duration_min: int
    price: Decimal
    description: Optional[str] = None


@dataclass(frozen=True)
class ShopContext:
    shop_id: str
    phone_number_id: str
    settings: ShopSettings

    @property
    def shop_name(self) -> str:
        return self.settings.shop_name

    @property
    def time_zone(self) -> str:
        return self.settings.time_zone


def resolve_shop(db: Session, phone_number_id: str) -> Optional[ShopContext]:
    """Map the receiving WhatsApp number to its shop. None when unknown or inactive."""
    number = (
        db.query(WabaNumber)
        .filter(WabaNumber.phone_number_id == phone_number_id, WabaNumber.is_active.is_(True))
        .first()
    )
    if number is None:
        return None
    settings = db.query(ShopSettings).filter(ShopSettings.shop_id == number.shop_id).first()
    if settings is None:
        return None
    return ShopContext(shop_id=number.shop_id, phone_number_id=phone_number_id, settings=settings)


def _merge(entry: ServiceCatalog, override: Optional[ShopServiceOverride]) -> ShopService:
    label = entry.label
    duration = entry.duration_min
    price = Decimal(entry.default_price or 0)
    if override is not None:
        label = override.custom_label or label
        duration = override.custom_duration_min or duration
        if override.custom_price is not None:
            price = Decimal(override.custom_price)
    return ShopService(
        service_key=entry.service_key,
        label=label,
        duration_min=duration,
        price=price,
        description=entry.description,
    )


def list_services(db: Session, shop_id: str) -> List[ShopService]:
    """Active catalog entries for a shop, overrides applied, in display order."""
    entries = (
        db.query(ServiceCatalog)
        .filter(ServiceCatalog.is_active.is_(True))
        .order_by(ServiceCatalog.sort_order, ServiceCatalog.service_key)
        .all()
    )
    overrides = {
        row.service_key: row
        for row in db.query(ShopServiceOverride).filter(ShopServiceOverride.shop_id == shop_id).all()
    }

    services = []
    for entry in entries:
        override = overrides.get(entry.service_key)
        if override is not None and not override.is_available:
            continue
        services.append(_merge(entry, override))
    return services


def get_service(db: Session, shop_id: str, service_key: str) -> Optional[ShopService]:
    key = (service_key or "").strip().lower()
    for service in list_services(db, shop_id):
        if service.service_key.lower() == key:
            return service
    return None


def list_barbers(db: Session, shop_id: str) -> List[Barber]:
    return (
        db.query(Barber)
        .filter(Barber.shop_id == shop_id, Barber.active.is_(True))
        .order_by(Barber.sort_order, Barber.name)
        .all()
    )


def get_barber(db: Session, shop_id: str, barber_id: str) -> Optional[Barber]:
    key = (barber_id or "").strip().lower()
    for barber in list_barbers(db, shop_id):
        if barber.barber_id.lower() == key:
            return barber
    return None

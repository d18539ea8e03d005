from sqlalchemy import Boolean, Column, Index, Integer, Numeric, Text, UniqueConstraint
from sqlalchemy.orm import validates

from quickbarber.database import Base


class ServiceCatalog(Base):
    __tablename__ = "service_catalog"
    __table_args__ = (Index("ix_service_catalog_active_order", "is_active", "sort_order"),)

    service_key = Column(Text, primary_key=True)
    label = Column(Text, nullable=False)
    duration_min = Column(Integer, nullable=False)
    default_price = Column(Numeric(10, 2), nullable=False, default=0)
    description = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)

    @validates("duration_min")
    def _validate_duration(self, key, value):
        if value is None or not 5 <= int(value) <= 480:
            raise ValueError(f"duration_min must be between 5 and 480, got {value!r}")
        return int(value)

    @validates("default_price")
    def _validate_price(self, key, value):
        if value is not None and value < 0:
            raise ValueError("default_price must be >= 0")
        return value


class ShopServiceOverride(Base):
    """Per-shop replacement of catalog label, price, duration or availability."""

    __tablename__ = "shop_service_overrides"
    __table_args__ = (UniqueConstraint("shop_id", "service_key", name="uq_shop_service_override"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop_id = Column(Text, nullable=False)
    service_key = Column(Text, nullable=False)
    custom_label = Column(Text)
    custom_price = Column(Numeric(10, 2))
    custom_duration_min = Column(Integer)
    is_available = Column(Boolean, nullable=False, default=True)

    @validates("custom_duration_min")
    def _validate_duration(self, key, value):
        if value is not None and not 5 <= int(value) <= 480:
            raise ValueError(f"custom_duration_min must be between 5 and 480, got {value!r}")
        return value

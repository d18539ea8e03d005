from quickbarber.models.barber import Barber
from quickbarber.models.booking import Booking, BookingStatus
from quickbarber.models.chat_session import ChatSession
from quickbarber.models.processed_message import ProcessedMessage
from quickbarber.models.service_catalog import ServiceCatalog, ShopServiceOverride
from quickbarber.models.shop_settings import ShopSettings
from quickbarber.models.waba_number import WabaNumber

__all__ = [
    "Barber",
    "Booking",
    "BookingStatus",
    "ChatSession",
    "ProcessedMessage",
    "ServiceCatalog",
    "ShopServiceOverride",
    "ShopSettings",
    "WabaNumber",
]

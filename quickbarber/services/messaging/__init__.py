from quickbarber.services.messaging.base import ButtonOption, MessageSender, MessageSendError
from quickbarber.services.messaging.whatsapp_client import WhatsAppClient

__all__ = ["ButtonOption", "MessageSender", "MessageSendError", "WhatsAppClient"]

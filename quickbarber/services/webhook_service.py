"""Background handling of WhatsApp webhook deliveries.

The HTTP layer only verifies and acknowledges. Everything here runs after the
response went out, so failures are logged and never reach the caller.
"""

import asyncio
import hashlib
import hmac
import json
from typing import Callable, Iterator, Optional, Tuple

from pydantic import ValidationError

from quickbarber.config import Settings
from quickbarber.database import Database, insert_if_absent
from quickbarber.logging_config import ContextLogger, get_logger
from quickbarber.models import ProcessedMessage
from quickbarber.schemas.webhook import InboundMessage, WebhookPayload
from quickbarber.services.catalog_service import resolve_shop
from quickbarber.services.conversation_engine import ConversationEngine
from quickbarber.services.messaging import MessageSender, MessageSendError, WhatsAppClient

logger = get_logger("webhook_service")

WHATSAPP_OBJECT = "whatsapp_business_account"
SIGNATURE_PREFIX = "sha256="

SenderFactory = Callable[[str], MessageSender]
EngineFactory = Callable[[MessageSender], ConversationEngine]


def compute_signature(secret: str, raw_body: bytes) -> str:
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(secret: Optional[str], raw_body: bytes, header: Optional[str]) -> bool:
    """Check X-Hub-Signature-256. Without a configured secret every body passes."""
    if not secret:
        return True
    if not header or not header.startswith(SIGNATURE_PREFIX):
        return False
    expected = compute_signature(secret, raw_body).encode("utf-8")
    return hmac.compare_digest(expected, header.strip().encode("utf-8"))


def verify_subscription(
    mode: Optional[str], token: Optional[str], challenge: Optional[str], expected_token: str
) -> Optional[str]:
    """Return the challenge to echo back, or None when verification fails."""
    if not expected_token or mode != "subscribe" or token is None:
        return None
    if not hmac.compare_digest(token.encode("utf-8"), expected_token.encode("utf-8")):
        return None
    return challenge or ""


def whatsapp_sender_factory(settings: Settings) -> SenderFactory:
    def factory(phone_number_id: str) -> MessageSender:
        return WhatsAppClient(
            phone_number_id,
            settings.whatsapp_access_token,
            api_version=settings.whatsapp_api_version,
            base_url=settings.whatsapp_api_base_url,
            timeout=settings.whatsapp_timeout_seconds,
        )

    return factory


def parse_payload(raw_body: bytes) -> Optional[WebhookPayload]:
    try:
        data = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as e:
        logger.warning("Webhook body is not valid JSON", extra={"context": {"error": str(e)}})
        return None
    try:
        return WebhookPayload.model_validate(data)
    except ValidationError as e:
        logger.warning(
            "Webhook payload has unexpected shape",
            extra={"context": {"errors": e.errors(include_url=False)[:5]}},
        )
        return None


def iter_messages(payload: WebhookPayload) -> Iterator[Tuple[str, InboundMessage]]:
    """Yield (phone_number_id, message) for every customer message in a delivery."""
    if payload.object != WHATSAPP_OBJECT:
        logger.info("Ignoring non-WhatsApp webhook", extra={"context": {"object": payload.object}})
        return
    for entry in payload.entry:
        for change in entry.changes:
            if change.field != "messages":
                continue
            value = change.value
            if value.statuses and not value.messages:
                continue
            if value.metadata is None:
                logger.warning("Webhook change without metadata", extra={"context": {"entry_id": entry.id}})
                continue
            for message in value.messages:
                if message.type == "status":
                    continue
                yield value.metadata.phone_number_id, message


class WebhookProcessor:
    def __init__(
        self,
        database: Database,
        sender_factory: SenderFactory,
        engine_factory: Optional[EngineFactory] = None,
    ):
        self.database = database
        self.sender_factory = sender_factory
        self.engine_factory = engine_factory or ConversationEngine

    async def process_payload(self, raw_body: bytes) -> int:
        """Handle one webhook delivery. Returns how many messages reached the engine."""
        payload = parse_payload(raw_body)
        if payload is None:
            return 0
        handled = 0
        for phone_number_id, message in iter_messages(payload):
            if await asyncio.to_thread(self.process_message, phone_number_id, message):
                handled += 1
        return handled

    def process_message(self, phone_number_id: str, message: InboundMessage) -> bool:
        log = ContextLogger(
            logger,
            {"message_id": message.id, "phone_number_id": phone_number_id, "type": message.type},
        )
        content = message.content()
        if content is None:
            log.info("Ignoring message without content")
            return False

        sender = self.sender_factory(phone_number_id)
        try:
            with self.database.session() as db:
                first_delivery = insert_if_absent(
                    db,
                    ProcessedMessage(message_id=message.id, phone_number_id=phone_number_id),
                    index_elements=["message_id"],
                )
                if not first_delivery:
                    log.info("Duplicate message skipped")
                    return False

                shop = resolve_shop(db, phone_number_id)
                if shop is None:
                    log.info("No shop for phone number, dropping message")
                    return False

                log = log.bind(shop_id=shop.shop_id)
                engine = self.engine_factory(sender)
                state = engine.handle_message(db, shop, message.from_, content)
                log = log.bind(phase=state.phase.value)
        except Exception:
            log.error("Failed to process message", exc_info=True)
            return False

        try:
            sender.mark_as_read(message.id)
        except MessageSendError as e:
            log.warning("Failed to mark message as read", extra={"context": {"error": str(e)}})

        log.info("Message processed")
        return True

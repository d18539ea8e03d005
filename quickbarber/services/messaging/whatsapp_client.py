from typing import List, Optional

import httpx

from quickbarber.logging_config import get_logger
from quickbarber.services.messaging.base import ButtonOption, MessageSender, MessageSendError

logger = get_logger("whatsapp_client")

MAX_REPLY_BUTTONS = 3
MAX_BUTTON_TITLE = 20
MAX_ROW_TITLE = 24
MAX_ROW_DESCRIPTION = 72
MAX_LIST_ROWS = 10
LIST_BUTTON_TEXT = "View options"


def _truncate(value: str, limit: int) -> str:
    value = value or ""
    if len(value) <= limit:
        return value
    return value[: limit - 1].rstrip() + "…"


class WhatsAppClient(MessageSender):
    """WhatsApp Cloud API sender bound to one business phone number."""

    def __init__(
        self,
        phone_number_id: str,
        access_token: str,
        *,
        api_version: str = "v20.0",
        base_url: str = "https://graph.facebook.com",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.phone_number_id = phone_number_id
        self.access_token = access_token
        self.url = f"{base_url.rstrip('/')}/{api_version}/{phone_number_id}/messages"
        self.timeout = timeout
        self.transport = transport

    def _post(self, payload: dict) -> dict:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise MessageSendError(f"WhatsApp request failed: {exc}") from exc

        if response.status_code >= 300:
            raise MessageSendError(
                f"WhatsApp API returned {response.status_code}",
                status_code=response.status_code,
                response_body=response.text[:500],
            )
        try:
            return response.json()
        except ValueError:
            return {}

    def send_text(self, to: str, body: str) -> dict:
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": body},
        }
        result = self._post(payload)
        logger.info("WhatsApp text sent", extra={"context": {"to": to}})
        return result

    def send_buttons(self, to: str, body: str, options: List[ButtonOption]) -> dict:
        """Up to three options go out as reply buttons, longer menus as a single-section list."""
        if not options:
            return self.send_text(to, body)

        if len(options) <= MAX_REPLY_BUTTONS:
            interactive = {
                "type": "button",
                "body": {"text": body},
                "action": {
                    "buttons": [
                        {
                            "type": "reply",
                            "reply": {"id": option.id, "title": _truncate(option.title, MAX_BUTTON_TITLE)},
                        }
                        for option in options
                    ]
                },
            }
        else:
            rows = []
            for option in options[:MAX_LIST_ROWS]:
                row = {"id": option.id, "title": _truncate(option.title, MAX_ROW_TITLE)}
                if option.description:
                    row["description"] = _truncate(option.description, MAX_ROW_DESCRIPTION)
                rows.append(row)
            interactive = {
                "type": "list",
                "body": {"text": body},
                "action": {
                    "button": LIST_BUTTON_TEXT,
                    "sections": [{"title": "Options", "rows": rows}],
                },
            }

        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "interactive",
            "interactive": interactive,
        }
        result = self._post(payload)
        logger.info(
            "WhatsApp interactive sent",
            extra={"context": {"to": to, "kind": interactive["type"], "options": len(options)}},
        )
        return result

    def mark_as_read(self, message_id: str) -> None:
        self._post({"messaging_product": "whatsapp", "status": "read", "message_id": message_id})

from typing import List, Optional

from pydantic import BaseModel, Field


class TextContent(BaseModel):
    body: str = ""


class ReplyOption(BaseModel):
    id: str
    title: Optional[str] = None
    description: Optional[str] = None


class InteractiveContent(BaseModel):
    type: Optional[str] = None
    button_reply: Optional[ReplyOption] = None
    list_reply: Optional[ReplyOption] = None


class ButtonContent(BaseModel):
    text: Optional[str] = None
    payload: Optional[str] = None


class InboundMessage(BaseModel):
    id: str
    from_: str = Field(alias="from")
    type: str
    timestamp: Optional[str] = None
    text: Optional[TextContent] = None
    interactive: Optional[InteractiveContent] = None
    button: Optional[ButtonContent] = None

    def content(self) -> Optional[str]:
        """Text, tapped reply id or quick-reply button text. None for media and other types."""
        if self.type == "text" and self.text is not None:
            return self.text.body.strip() or None
        if self.type == "interactive" and self.interactive is not None:
            reply = self.interactive.button_reply or self.interactive.list_reply
            return reply.id if reply is not None else None
        if self.type == "button" and self.button is not None:
            return self.button.text or self.button.payload
        return None


class ChangeMetadata(BaseModel):
    phone_number_id: str
    display_phone_number: Optional[str] = None


class ChangeValue(BaseModel):
    messaging_product: Optional[str] = None
    metadata: Optional[ChangeMetadata] = None
    messages: List[InboundMessage] = []
    statuses: List[dict] = []


class Change(BaseModel):
    field: str
    value: ChangeValue


class Entry(BaseModel):
    id: Optional[str] = None
    changes: List[Change] = []


class WebhookPayload(BaseModel):
    object: str
    entry: List[Entry] = []


class WebhookAck(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None

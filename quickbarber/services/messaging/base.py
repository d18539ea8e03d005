from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class ButtonOption:
    id: str
    title: str
    description: Optional[str] = None


class MessageSendError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, response_body: Optional[str] = None):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


class MessageSender(ABC):
    """Outbound channel to the customer."""

    @abstractmethod
    def send_text(self, to: str, body: str) -> dict:
        """Send a plain text message."""
        pass

    @abstractmethod
    def send_buttons(self, to: str, body: str, options: List[ButtonOption]) -> dict:
        """Send a message with tappable reply options."""
        pass

    def mark_as_read(self, message_id: str) -> None:
        """Acknowledge an inbound message. Optional for senders without read receipts."""
        return None

import secrets
from typing import Callable, Optional

from sqlalchemy.orm import Session

from quickbarber.logging_config import get_logger
from quickbarber.models import Booking

logger = get_logger("booking_code_service")

# No 0/O, 1/I/L: codes get read out loud and typed back.
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6
MAX_ATTEMPTS = 5


class CodeAllocationExhausted(Exception):
    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"No free booking code after {attempts} attempts")


def generate_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


class BookingCodeAssigner:
    """Draws random codes until one is unused in the booking table."""

    def __init__(
        self,
        generator: Optional[Callable[[], str]] = None,
        max_attempts: int = MAX_ATTEMPTS,
    ):
        self.generator = generator or generate_code
        self.max_attempts = max_attempts

    def assign(self, db: Session) -> str:
        for attempt in range(1, self.max_attempts + 1):
            code = self.generator()
            taken = db.query(Booking.booking_id).filter(Booking.booking_code == code).first()
            if taken is None:
                return code
            logger.info(
                "Booking code collision",
                extra={"context": {"attempt": attempt, "code": code}},
            )
        raise CodeAllocationExhausted(self.max_attempts)

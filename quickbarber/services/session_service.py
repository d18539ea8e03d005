import uuid
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from quickbarber.database import insert_if_absent
from quickbarber.logging_config import get_logger
from quickbarber.models import ChatSession
from quickbarber.models.chat_session import ACTIVE_SESSION_WHERE
from quickbarber.services.intent_service import Intent
from quickbarber.services.state_machine import (
    ChoosingBarber,
    ChoosingService,
    ChoosingTime,
    Completed,
    Confirming,
    ConversationState,
    Phase,
    Welcome,
)

logger = get_logger("session_service")


def get_active_session(db: Session, user_phone: str, shop_id: str) -> Optional[ChatSession]:
    return (
        db.query(ChatSession)
        .filter(
            ChatSession.user_phone == user_phone,
            ChatSession.shop_id == shop_id,
            ChatSession.is_active.is_(True),
        )
        .first()
    )


def get_or_create_session(
    db: Session,
    user_phone: str,
    shop_id: str,
    phone_number_id: Optional[str] = None,
) -> Tuple[ChatSession, bool]:
    """Return the active session for (user, shop), creating it if needed.

    Creation is an insert guarded by the partial unique index on active rows,
    so concurrent first messages converge on a single active session.
    """
    existing = get_active_session(db, user_phone, shop_id)
    if existing is not None:
        return existing, False

    record = ChatSession(
        id=uuid.uuid4(),
        user_phone=user_phone,
        shop_id=shop_id,
        phone_number_id=phone_number_id,
        phase=Phase.WELCOME.value,
        intent=Intent.FIRST_MESSAGE.value,
        context={},
        is_active=True,
    )
    created = insert_if_absent(
        db,
        record,
        index_elements=["user_phone", "shop_id"],
        index_where=ACTIVE_SESSION_WHERE,
    )
    session = get_active_session(db, user_phone, shop_id)
    if session is None:
        raise RuntimeError(f"Active session for {user_phone}@{shop_id} vanished after insert")
    if created:
        logger.info(
            "Session created",
            extra={"context": {"session_id": str(session.id), "shop_id": shop_id}},
        )
    return session, created


def load_state(session: ChatSession) -> ConversationState:
    """Rebuild the typed conversation state from a session row.

    Rows whose selections do not support their phase fall back to the nearest
    earlier phase that they do support.
    """
    phase = Phase(session.phase)
    context = session.context or {}

    if phase == Phase.COMPLETED and session.booking_id and session.booking_code:
        return Completed(session.booking_id, session.booking_code)
    if phase == Phase.WELCOME:
        return Welcome()

    service_key = session.selected_service
    barber_id = session.selected_barber_id
    if phase in (Phase.TIME_SELECTION, Phase.CONFIRMATION) and service_key and barber_id:
        barber_name = session.selected_barber_name or barber_id
        slot_start = context.get("slot_start")
        if phase == Phase.CONFIRMATION and slot_start:
            return Confirming(service_key, barber_id, barber_name, session.time_period_key, slot_start)
        return ChoosingTime(service_key, barber_id, barber_name, session.time_period_key)
    if phase != Phase.SERVICE_SELECTION and service_key:
        return ChoosingBarber(service_key)
    return ChoosingService()


def save_state(session: ChatSession, state: ConversationState, intent: Optional[Intent] = None) -> None:
    session.phase = state.phase.value
    session.selected_service = getattr(state, "service_key", None)
    session.selected_barber_id = getattr(state, "barber_id", None)
    session.selected_barber_name = getattr(state, "barber_name", None)
    session.time_period_key = getattr(state, "period_key", None)
    if isinstance(state, Completed):
        session.booking_id = state.booking_id
        session.booking_code = state.booking_code
    update_context(session, slot_start=getattr(state, "slot_start", None))
    if intent is not None:
        session.intent = intent.value
    touch(session)


def update_context(session: ChatSession, **values) -> dict:
    """Merge values into the JSON context. ``None`` removes a key."""
    context = dict(session.context or {})
    for key, value in values.items():
        if value is None:
            context.pop(key, None)
        else:
            context[key] = value
    # reassign so the ORM sees the change
    session.context = context
    return context


def touch(session: ChatSession) -> None:
    now = datetime.now(timezone.utc)
    session.last_activity = now
    session.updated_at = now


def retire_session(db: Session, session: ChatSession) -> None:
    session.is_active = False
    touch(session)
    db.flush()
    logger.info(
        "Session retired",
        extra={"context": {"session_id": str(session.id), "phase": session.phase}},
    )

"""Per-message driver of the booking conversation.

``handle_message`` loads the session, turns the raw text into a resolved
event, asks ``decide`` for the next state and then executes the effects:
sending menus, creating or cancelling bookings, retiring the session.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from quickbarber.logging_config import get_logger
from quickbarber.models import Booking, ChatSession
from quickbarber.models.validators import format_12h, format_hhmm, parse_hhmm
from quickbarber.services import booking_service, catalog_service, session_service
from quickbarber.services.availability_service import (
    IMMEDIATE_BUFFER_MIN,
    PERIOD_DESCRIPTIONS,
    PERIOD_TITLES,
    Slot,
    available_slots,
    bucket_periods,
    parse_slot_key,
)
from quickbarber.services.booking_code_service import BookingCodeAssigner, CodeAllocationExhausted
from quickbarber.services.catalog_service import ShopContext
from quickbarber.services.intent_service import (
    BARBER_PREFIX,
    SERVICE_PREFIX,
    TIME_PREFIX,
    Intent,
    classify_intent,
    extract_booking_code,
    extract_booking_codes,
    extract_ordinal,
    extract_selection_key,
)
from quickbarber.services.messaging import ButtonOption, MessageSender
from quickbarber.services.state_machine import (
    BarberChosen,
    BarberRejected,
    BookingCreated,
    BookingFailed,
    CancelBooking,
    CancelRequested,
    ChoosingService,
    ChoosingTime,
    ConversationState,
    CreateBooking,
    Decision,
    Event,
    MenuRequested,
    Notice,
    OffScript,
    Opened,
    PeriodChosen,
    PeriodExhausted,
    PeriodRejected,
    RememberReschedule,
    RescheduleRequested,
    RescheduleUnavailable,
    RestartRequested,
    RetireSession,
    SendConfirmation,
    ServiceChosen,
    ServiceRejected,
    ShowBarbers,
    ShowPeriods,
    ShowServices,
    ShowSlots,
    SlotChosen,
    SlotRejected,
    Welcome,
    decide,
)

logger = get_logger("conversation_engine")

PAGE_SIZE = 3
MAX_FOLLOW_UPS = 4
DEFAULT_TIME_ZONE = "Asia/Kolkata"

HELP_TEXT = "I can help you book an appointment. Tap an option below or reply with its number. Send 'cancel' to cancel a booking."
NOTICE_TEXT = {
    Notice.UNKNOWN_SERVICE: "Sorry, I couldn't find that service. Please select from the available options.",
    Notice.UNKNOWN_BARBER: "Sorry, I couldn't find that barber. Please select from the available options.",
    Notice.UNKNOWN_PERIOD: "Sorry, that time period is not available. Please choose another time period.",
    Notice.PERIOD_EMPTY: "Sorry, no time slots are available for the selected period. Please choose another time period.",
    Notice.UNKNOWN_SLOT: "Sorry, that time is not available. Please pick one of the times below.",
    Notice.SLOT_TAKEN: "Sorry, that time was just booked by someone else. Here are the latest available times.",
    Notice.NO_UPCOMING_BOOKING: "You don't have a booking later today to reschedule. Let's make a new one.",
    Notice.RESCHEDULE: "Let's find a new time for your booking.",
    Notice.HELP: HELP_TEXT,
}
NO_SLOTS_TODAY = "Sorry, no time slots are available today. Please try again tomorrow."
NO_SERVICES = "Sorry, no services are available right now. Please try again later."
NO_BARBERS = "Sorry, no barbers are available right now. Please try again later."


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Turn:
    """Everything one inbound message needs while its effects run."""

    db: Session
    shop: ShopContext
    session: ChatSession
    user_phone: str
    now: datetime
    retire: bool = False
    booking: Optional[Booking] = None
    sent: List[str] = field(default_factory=list)

    @property
    def now_minutes(self) -> int:
        return self.now.hour * 60 + self.now.minute

    @property
    def context(self) -> dict:
        return self.session.context or {}


class ConversationEngine:
    def __init__(
        self,
        sender: MessageSender,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        code_assigner: Optional[BookingCodeAssigner] = None,
    ):
        self.sender = sender
        self.clock = clock or utc_now
        self.code_assigner = code_assigner or BookingCodeAssigner()

    def local_now(self, shop: ShopContext) -> datetime:
        try:
            tz = ZoneInfo(shop.time_zone or DEFAULT_TIME_ZONE)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(
                "Unknown shop time zone, using default",
                extra={"context": {"shop_id": shop.shop_id, "time_zone": shop.time_zone}},
            )
            tz = ZoneInfo(DEFAULT_TIME_ZONE)
        return self.clock().astimezone(tz)

    def handle_message(self, db: Session, shop: ShopContext, user_phone: str, text: str) -> ConversationState:
        """Advance the user's conversation with this shop by one inbound message."""
        session, created = session_service.get_or_create_session(db, user_phone, shop.shop_id, shop.phone_number_id)
        turn = Turn(db=db, shop=shop, session=session, user_phone=user_phone, now=self.local_now(shop))

        if created:
            state = Welcome()
            intent = Intent.FIRST_MESSAGE
            event: Event = Opened()
        else:
            state = session_service.load_state(session)
            intent = classify_intent(text, session.phase)
            event = self.resolve_event(turn, state, intent, text)

        logger.info(
            "Handling message",
            extra={
                "context": {
                    "shop_id": shop.shop_id,
                    "session_id": str(session.id),
                    "phase": state.phase.value,
                    "intent": intent.value,
                    "event": type(event).__name__,
                }
            },
        )

        state = self._run(turn, state, event)

        # a newly picked service starts a fresh booking
        if isinstance(state, (Welcome, ChoosingService)) or isinstance(event, ServiceChosen):
            session_service.update_context(session, reschedule_booking_id=None)
        session_service.save_state(session, state, intent)
        if turn.retire:
            session_service.retire_session(db, session)
        db.flush()
        return state

    def _run(self, turn: Turn, state: ConversationState, event: Event) -> ConversationState:
        pending: Optional[Event] = event
        for _ in range(MAX_FOLLOW_UPS):
            if pending is None:
                break
            decision: Decision = decide(state, pending)
            state = decision.state
            pending = None
            for effect in decision.effects:
                follow_up = self._execute(turn, state, effect)
                if follow_up is not None:
                    pending = follow_up
                    break
        return state

    # --- input resolution ---

    def resolve_event(self, turn: Turn, state: ConversationState, intent: Intent, text: str) -> Event:
        if intent == Intent.SELECT_SERVICE:
            return self._resolve_service(turn, text)
        if intent == Intent.SELECT_BARBER:
            return self._resolve_barber(turn, text)
        if intent == Intent.SELECT_TIME_PERIOD:
            return self._resolve_period(turn, state, text)
        if intent == Intent.SELECT_SPECIFIC_TIME:
            return self._resolve_slot(turn, state, parse_slot_key(text))
        if intent == Intent.LIST_SERVICES:
            return MenuRequested("services")
        if intent == Intent.LIST_BARBERS:
            return MenuRequested("barbers")
        if intent == Intent.CHECK_AVAILABILITY:
            return MenuRequested("slots")
        if intent == Intent.BOOK_APPOINTMENT:
            return RestartRequested()
        if intent == Intent.CANCEL_BOOKING:
            return self._resolve_cancel(turn, text)
        if intent == Intent.RESCHEDULE:
            return self._resolve_reschedule(turn)
        return OffScript()

    def _resolve_service(self, turn: Turn, text: str) -> Event:
        services = catalog_service.list_services(turn.db, turn.shop.shop_id)
        key = extract_selection_key(text, SERVICE_PREFIX)
        if key is not None:
            for service in services:
                if service.service_key.lower() == key:
                    return ServiceChosen(service.service_key)
            return ServiceRejected()
        ordinal = extract_ordinal(text)
        if ordinal is not None and ordinal <= len(services):
            return ServiceChosen(services[ordinal - 1].service_key)
        return ServiceRejected()

    def _resolve_barber(self, turn: Turn, text: str) -> Event:
        barbers = catalog_service.list_barbers(turn.db, turn.shop.shop_id)
        key = extract_selection_key(text, BARBER_PREFIX)
        chosen = None
        if key is not None:
            chosen = next((b for b in barbers if b.barber_id.lower() == key), None)
        else:
            ordinal = extract_ordinal(text)
            if ordinal is not None and ordinal <= len(barbers):
                chosen = barbers[ordinal - 1]
        if chosen is None:
            return BarberRejected()
        return BarberChosen(chosen.barber_id, chosen.name)

    def _resolve_period(self, turn: Turn, state: ConversationState, text: str) -> Event:
        if not isinstance(state, ChoosingTime):
            return OffScript()

        ordinal = extract_ordinal(text)
        if ordinal is not None and state.period_key is not None:
            offered = turn.context.get("offered_slots") or []
            if ordinal > len(offered):
                return SlotRejected()
            return self._resolve_slot(turn, state, parse_hhmm(offered[ordinal - 1]))

        periods = self.periods_for(turn, state)
        key = extract_selection_key(text, TIME_PREFIX)
        if key is None and ordinal is not None:
            offered = turn.context.get("offered_periods") or []
            if ordinal <= len(offered):
                key = offered[ordinal - 1]
        if key is None or key not in periods:
            return PeriodRejected()
        return PeriodChosen(key)

    def _resolve_slot(self, turn: Turn, state: ConversationState, start: Optional[int]) -> Event:
        if not isinstance(state, ChoosingTime):
            return OffScript()
        if start is None:
            return SlotRejected()
        if all(slot.start != start for slot in self.remaining_slots(turn, state)):
            return SlotRejected()
        return SlotChosen(format_hhmm(start))

    def _resolve_cancel(self, turn: Turn, text: str) -> Event:
        for code in extract_booking_codes(text):
            if booking_service.get_booking_by_code(turn.db, turn.shop.shop_id, turn.user_phone, code) is not None:
                return CancelRequested(code)
        # None falls back to the nearest upcoming booking
        return CancelRequested(extract_booking_code(text))

    def _resolve_reschedule(self, turn: Turn) -> Event:
        # bookings are only ever made for today
        booking = booking_service.find_upcoming_booking(
            turn.db,
            turn.shop.shop_id,
            turn.user_phone,
            turn.now.date(),
            format_hhmm(turn.now_minutes),
            same_day_only=True,
        )
        if booking is None:
            return RescheduleUnavailable()
        barber = catalog_service.get_barber(turn.db, turn.shop.shop_id, booking.barber_id)
        service = catalog_service.get_service(turn.db, turn.shop.shop_id, booking.service_key)
        if barber is None or service is None:
            return RescheduleUnavailable()
        return RescheduleRequested(booking.booking_id, service.service_key, barber.barber_id, barber.name)

    # --- availability ---

    def remaining_slots(self, turn: Turn, state: ChoosingTime) -> List[Slot]:
        """Today's free slots for the chosen barber and service that can still be reached."""
        service = catalog_service.get_service(turn.db, turn.shop.shop_id, state.service_key)
        barber = catalog_service.get_barber(turn.db, turn.shop.shop_id, state.barber_id)
        if service is None or barber is None:
            return []
        slots = available_slots(turn.db, turn.shop.settings, barber, turn.now.date(), service.duration_min)
        earliest = turn.now_minutes + IMMEDIATE_BUFFER_MIN
        return [slot for slot in slots if slot.start >= earliest]

    def periods_for(self, turn: Turn, state: ChoosingTime) -> Dict[str, List[Slot]]:
        return bucket_periods(
            self.remaining_slots(turn, state),
            turn.now_minutes,
            turn.shop.settings.evening_start,
        )

    # --- effects ---

    def _execute(self, turn: Turn, state: ConversationState, effect) -> Optional[Event]:
        if isinstance(effect, ShowServices):
            self._show_services(turn, effect)
        elif isinstance(effect, ShowBarbers):
            self._show_barbers(turn, state, effect)
        elif isinstance(effect, ShowPeriods):
            self._show_periods(turn, state, effect)
        elif isinstance(effect, ShowSlots):
            return self._show_slots(turn, state, effect)
        elif isinstance(effect, CreateBooking):
            return self._create_booking(turn, effect)
        elif isinstance(effect, SendConfirmation):
            self._send_confirmation(turn, effect)
        elif isinstance(effect, CancelBooking):
            self._cancel_booking(turn, effect)
        elif isinstance(effect, RememberReschedule):
            session_service.update_context(turn.session, reschedule_booking_id=effect.booking_id)
        elif isinstance(effect, RetireSession):
            turn.retire = True
        return None

    def _say(self, turn: Turn, body: str, options: Optional[List[ButtonOption]] = None) -> None:
        if options:
            self.sender.send_buttons(turn.user_phone, body, options)
        else:
            self.sender.send_text(turn.user_phone, body)
        turn.sent.append(body)

    def _page(self, turn: Turn, counter: str, total: int, more: bool) -> int:
        page = turn.context.get(counter, 0) + 1 if more else 0
        if page * PAGE_SIZE >= total:
            page = 0
        session_service.update_context(turn.session, **{counter: page})
        return page

    def _with_notice(self, notice: Optional[Notice], prompt: str) -> str:
        if notice is None:
            return prompt
        return f"{NOTICE_TEXT[notice]}\n\n{prompt}"

    def _show_services(self, turn: Turn, effect: ShowServices) -> None:
        services = catalog_service.list_services(turn.db, turn.shop.shop_id)
        if not services:
            self._say(turn, NO_SERVICES)
            return

        page = self._page(turn, "service_page", len(services), effect.more)
        chunk = services[page * PAGE_SIZE : (page + 1) * PAGE_SIZE]
        options = [
            ButtonOption(f"{SERVICE_PREFIX}{s.service_key}", s.label, f"{s.duration_min} min · {s.price}") for s in chunk
        ]
        if (page + 1) * PAGE_SIZE < len(services):
            options.append(ButtonOption("more_services", "More Services"))

        if effect.notice == Notice.WELCOME:
            body = f"Welcome to {turn.shop.shop_name}! 💈\n\nPlease select a service:"
        else:
            body = self._with_notice(effect.notice, "Please select a service:")
        self._say(turn, body, options)

    def _show_barbers(self, turn: Turn, state: ConversationState, effect: ShowBarbers) -> None:
        barbers = catalog_service.list_barbers(turn.db, turn.shop.shop_id)
        if not barbers:
            self._say(turn, NO_BARBERS)
            return

        page = self._page(turn, "barber_page", len(barbers), effect.more)
        chunk = barbers[page * PAGE_SIZE : (page + 1) * PAGE_SIZE]
        options = [ButtonOption(f"{BARBER_PREFIX}{b.barber_id}", b.name) for b in chunk]
        if (page + 1) * PAGE_SIZE < len(barbers):
            options.append(ButtonOption("more_barbers", "More Barbers"))

        service_key = getattr(state, "service_key", None)
        service = catalog_service.get_service(turn.db, turn.shop.shop_id, service_key) if service_key else None
        if effect.notice is None and not effect.more and service is not None:
            body = f"Great choice! You selected: {service.label}\n\nNow, please select your preferred barber:"
        else:
            body = self._with_notice(effect.notice, "Please select your preferred barber:")
        self._say(turn, body, options)

    def _show_periods(self, turn: Turn, state: ConversationState, effect: ShowPeriods) -> None:
        if not isinstance(state, ChoosingTime):
            return
        periods = self.periods_for(turn, state)
        session_service.update_context(turn.session, offered_periods=list(periods), offered_slots=None)
        if not periods:
            self._say(turn, NO_SLOTS_TODAY)
            return

        options = [ButtonOption(f"{TIME_PREFIX}{key}", PERIOD_TITLES[key]) for key in periods]
        if effect.notice is None:
            body = f"Perfect! You selected {state.barber_name}.\n\nWhen would you like to book your appointment?"
        else:
            body = self._with_notice(effect.notice, "When would you like to book your appointment?")
        self._say(turn, body, options)

    def _show_slots(self, turn: Turn, state: ConversationState, effect: ShowSlots) -> Optional[Event]:
        if not isinstance(state, ChoosingTime) or state.period_key is None:
            return None
        slots = self.periods_for(turn, state).get(state.period_key, [])
        if not slots:
            return PeriodExhausted()

        page = self._page(turn, "slot_page", len(slots), effect.more)
        session_service.update_context(turn.session, offered_slots=[slot.start_time for slot in slots])
        chunk = slots[page * PAGE_SIZE : (page + 1) * PAGE_SIZE]
        options = [ButtonOption(slot.key, slot.title) for slot in chunk]
        if (page + 1) * PAGE_SIZE < len(slots):
            options.append(ButtonOption("more_slots", "More Slots"))

        prompt = f"Here are the available times for {PERIOD_DESCRIPTIONS[state.period_key]}:"
        self._say(turn, self._with_notice(effect.notice, prompt), options)
        return None

    def _create_booking(self, turn: Turn, effect: CreateBooking) -> Event:
        service = catalog_service.get_service(turn.db, turn.shop.shop_id, effect.service_key)
        if service is None:
            return BookingFailed()
        start = parse_hhmm(effect.slot_start)
        try:
            booking = booking_service.create_booking(
                turn.db,
                shop_id=turn.shop.shop_id,
                day=turn.now.date(),
                start_time=effect.slot_start,
                end_time=format_hhmm(start + service.duration_min),
                service_key=service.service_key,
                barber_id=effect.barber_id,
                customer_phone=turn.user_phone,
                price=service.price,
                code_assigner=self.code_assigner,
            )
        except (booking_service.SlotUnavailableError, CodeAllocationExhausted) as e:
            logger.info(
                "Booking attempt failed",
                extra={"context": {"shop_id": turn.shop.shop_id, "slot": effect.slot_start, "reason": str(e)}},
            )
            return BookingFailed()

        reschedule_id = turn.context.get("reschedule_booking_id")
        if reschedule_id:
            booking_service.mark_rescheduled(turn.db, reschedule_id)
            session_service.update_context(turn.session, reschedule_booking_id=None)
        turn.booking = booking
        return BookingCreated(booking.booking_id, booking.booking_code)

    def _send_confirmation(self, turn: Turn, effect: SendConfirmation) -> None:
        booking = turn.booking
        if booking is None or booking.booking_id != effect.booking_id:
            booking = turn.db.query(Booking).filter(Booking.booking_id == effect.booking_id).one()
        service = catalog_service.get_service(turn.db, turn.shop.shop_id, booking.service_key)
        barber = catalog_service.get_barber(turn.db, turn.shop.shop_id, booking.barber_id)
        lines = [
            "✅ Your appointment is confirmed!",
            "",
            f"Booking code: {booking.booking_code}",
            f"Service: {service.label if service else booking.service_key}",
            f"Barber: {barber.name if barber else booking.barber_id}",
            f"Date: {booking.date.strftime('%d %b %Y')}",
            f"Time: {format_12h(parse_hhmm(booking.start_time))}",
            "",
            "Please show this code at the shop. Send 'cancel' if you can't make it.",
        ]
        self._say(turn, "\n".join(lines))

    def _cancel_booking(self, turn: Turn, effect: CancelBooking) -> None:
        shop_id = turn.shop.shop_id
        if effect.booking_code:
            booking = booking_service.get_booking_by_code(turn.db, shop_id, turn.user_phone, effect.booking_code)
            if booking is None:
                self._say(turn, f"Sorry, I couldn't find a booking with code {effect.booking_code}.")
                return
        else:
            booking = booking_service.find_upcoming_booking(
                turn.db, shop_id, turn.user_phone, turn.now.date(), format_hhmm(turn.now_minutes)
            )
            if booking is None:
                self._say(turn, "You don't have any upcoming bookings to cancel.")
                return

        try:
            booking_service.cancel_booking(turn.db, booking)
        except booking_service.InvalidTransitionError:
            self._say(turn, f"Booking {booking.booking_code} can no longer be cancelled.")
            return
        when = f"{booking.date.strftime('%d %b %Y')} at {format_12h(parse_hhmm(booking.start_time))}"
        self._say(turn, f"Your booking {booking.booking_code} on {when} has been cancelled.")

"""Booking conversation phases and the pure transition function.

Each phase is a frozen dataclass carrying only the selections that are valid
in that phase. ``decide`` maps (state, event) to the next state plus the
effects the engine must execute; it never touches I/O.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple, Union


class Phase(str, Enum):
    WELCOME = "welcome"
    SERVICE_SELECTION = "service_selection"
    BARBER_SELECTION = "barber_selection"
    TIME_SELECTION = "time_selection"
    CONFIRMATION = "confirmation"
    COMPLETED = "completed"


class InvalidTransitionError(Exception):
    def __init__(self, from_state: Enum, to_state: Enum):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


class Notice(str, Enum):
    WELCOME = "welcome"
    UNKNOWN_SERVICE = "unknown_service"
    UNKNOWN_BARBER = "unknown_barber"
    UNKNOWN_PERIOD = "unknown_period"
    UNKNOWN_SLOT = "unknown_slot"
    SLOT_TAKEN = "slot_taken"
    HELP = "help"
    PERIOD_EMPTY = "period_empty"
    NO_UPCOMING_BOOKING = "no_upcoming_booking"
    RESCHEDULE = "reschedule"


# --- states ---


@dataclass(frozen=True)
class Welcome:
    phase = Phase.WELCOME


@dataclass(frozen=True)
class ChoosingService:
    phase = Phase.SERVICE_SELECTION


@dataclass(frozen=True)
class ChoosingBarber:
    service_key: str
    phase = Phase.BARBER_SELECTION


@dataclass(frozen=True)
class ChoosingTime:
    service_key: str
    barber_id: str
    barber_name: str
    period_key: Optional[str] = None
    phase = Phase.TIME_SELECTION


@dataclass(frozen=True)
class Confirming:
    service_key: str
    barber_id: str
    barber_name: str
    period_key: Optional[str]
    slot_start: str
    phase = Phase.CONFIRMATION


@dataclass(frozen=True)
class Completed:
    booking_id: str
    booking_code: str
    phase = Phase.COMPLETED


ConversationState = Union[Welcome, ChoosingService, ChoosingBarber, ChoosingTime, Confirming, Completed]


# --- events (raw input already resolved against the catalog by the engine) ---


@dataclass(frozen=True)
class Opened:
    pass


@dataclass(frozen=True)
class RestartRequested:
    pass


@dataclass(frozen=True)
class ServiceChosen:
    service_key: str


@dataclass(frozen=True)
class ServiceRejected:
    pass


@dataclass(frozen=True)
class BarberChosen:
    barber_id: str
    barber_name: str


@dataclass(frozen=True)
class BarberRejected:
    pass


@dataclass(frozen=True)
class PeriodChosen:
    period_key: str


@dataclass(frozen=True)
class PeriodRejected:
    pass


@dataclass(frozen=True)
class PeriodExhausted:
    pass


@dataclass(frozen=True)
class SlotChosen:
    slot_start: str


@dataclass(frozen=True)
class SlotRejected:
    pass


@dataclass(frozen=True)
class BookingCreated:
    booking_id: str
    booking_code: str


@dataclass(frozen=True)
class BookingFailed:
    pass


@dataclass(frozen=True)
class MenuRequested:
    menu: str  # "services" | "barbers" | "slots"


@dataclass(frozen=True)
class CancelRequested:
    booking_code: Optional[str] = None


@dataclass(frozen=True)
class RescheduleRequested:
    booking_id: str
    service_key: str
    barber_id: str
    barber_name: str


@dataclass(frozen=True)
class RescheduleUnavailable:
    pass


@dataclass(frozen=True)
class OffScript:
    pass


Event = Union[
    Opened,
    RestartRequested,
    ServiceChosen,
    ServiceRejected,
    BarberChosen,
    BarberRejected,
    PeriodChosen,
    PeriodRejected,
    PeriodExhausted,
    SlotChosen,
    SlotRejected,
    BookingCreated,
    BookingFailed,
    MenuRequested,
    CancelRequested,
    RescheduleRequested,
    RescheduleUnavailable,
    OffScript,
]


# --- effects ---


@dataclass(frozen=True)
class ShowServices:
    more: bool = False
    notice: Optional[Notice] = None


@dataclass(frozen=True)
class ShowBarbers:
    more: bool = False
    notice: Optional[Notice] = None


@dataclass(frozen=True)
class ShowPeriods:
    notice: Optional[Notice] = None


@dataclass(frozen=True)
class ShowSlots:
    more: bool = False
    notice: Optional[Notice] = None


@dataclass(frozen=True)
class CreateBooking:
    service_key: str
    barber_id: str
    slot_start: str


@dataclass(frozen=True)
class SendConfirmation:
    booking_id: str
    booking_code: str


@dataclass(frozen=True)
class CancelBooking:
    booking_code: Optional[str] = None


@dataclass(frozen=True)
class RememberReschedule:
    booking_id: str


@dataclass(frozen=True)
class RetireSession:
    pass


Effect = Union[
    ShowServices,
    ShowBarbers,
    ShowPeriods,
    ShowSlots,
    CreateBooking,
    SendConfirmation,
    CancelBooking,
    RememberReschedule,
    RetireSession,
]


@dataclass(frozen=True)
class Decision:
    state: ConversationState
    effects: Tuple[Effect, ...] = ()


def reprompt(state: ConversationState, notice: Optional[Notice] = None) -> Decision:
    """Re-present the current step without changing any selection."""
    if isinstance(state, (Welcome, ChoosingService)):
        return Decision(state, (ShowServices(notice=notice),))
    if isinstance(state, ChoosingBarber):
        return Decision(state, (ShowBarbers(notice=notice),))
    if isinstance(state, ChoosingTime):
        if state.period_key is None:
            return Decision(state, (ShowPeriods(notice=notice),))
        return Decision(state, (ShowSlots(notice=notice),))
    if isinstance(state, Confirming):
        back = ChoosingTime(state.service_key, state.barber_id, state.barber_name, state.period_key)
        return Decision(back, (ShowSlots(notice=notice),))
    return Decision(Welcome(), (ShowServices(notice=Notice.WELCOME),))


def _service_key(state: ConversationState) -> Optional[str]:
    return getattr(state, "service_key", None)


def decide(state: ConversationState, event: Event) -> Decision:
    """Pure transition: (state, event) -> Decision(next_state, effects)."""
    if isinstance(state, Completed) or isinstance(event, Opened):
        return Decision(Welcome(), (ShowServices(notice=Notice.WELCOME),))

    if isinstance(event, CancelRequested):
        return Decision(Welcome(), (CancelBooking(event.booking_code), RetireSession()))

    if isinstance(event, RescheduleRequested):
        target = ChoosingTime(event.service_key, event.barber_id, event.barber_name)
        return Decision(target, (RememberReschedule(event.booking_id), ShowPeriods(notice=Notice.RESCHEDULE)))

    if isinstance(event, RescheduleUnavailable):
        return Decision(ChoosingService(), (ShowServices(notice=Notice.NO_UPCOMING_BOOKING),))

    if isinstance(event, RestartRequested):
        return Decision(ChoosingService(), (ShowServices(),))

    if isinstance(event, ServiceChosen):
        return Decision(ChoosingBarber(event.service_key), (ShowBarbers(),))

    if isinstance(event, ServiceRejected):
        return reprompt(state, Notice.UNKNOWN_SERVICE)

    if isinstance(event, BarberChosen):
        service_key = _service_key(state)
        if service_key is None:
            return reprompt(state, Notice.HELP)
        return Decision(ChoosingTime(service_key, event.barber_id, event.barber_name), (ShowPeriods(),))

    if isinstance(event, BarberRejected):
        return reprompt(state, Notice.UNKNOWN_BARBER)

    if isinstance(event, PeriodChosen):
        if not isinstance(state, (ChoosingTime, Confirming)):
            return reprompt(state, Notice.HELP)
        target = ChoosingTime(state.service_key, state.barber_id, state.barber_name, event.period_key)
        return Decision(target, (ShowSlots(),))

    if isinstance(event, PeriodRejected):
        if isinstance(state, ChoosingTime):
            return Decision(replace(state, period_key=None), (ShowPeriods(notice=Notice.UNKNOWN_PERIOD),))
        return reprompt(state, Notice.UNKNOWN_PERIOD)

    if isinstance(event, PeriodExhausted):
        if isinstance(state, ChoosingTime):
            return Decision(replace(state, period_key=None), (ShowPeriods(notice=Notice.PERIOD_EMPTY),))
        return reprompt(state, Notice.PERIOD_EMPTY)

    if isinstance(event, SlotChosen):
        if not isinstance(state, ChoosingTime):
            return reprompt(state, Notice.HELP)
        target = Confirming(
            state.service_key,
            state.barber_id,
            state.barber_name,
            state.period_key,
            event.slot_start,
        )
        return Decision(target, (CreateBooking(state.service_key, state.barber_id, event.slot_start),))

    if isinstance(event, SlotRejected):
        return reprompt(state, Notice.UNKNOWN_SLOT)

    if isinstance(event, BookingCreated):
        if not isinstance(state, Confirming):
            raise InvalidTransitionError(state.phase, Phase.COMPLETED)
        return Decision(
            Completed(event.booking_id, event.booking_code),
            (SendConfirmation(event.booking_id, event.booking_code), RetireSession()),
        )

    if isinstance(event, BookingFailed):
        if not isinstance(state, Confirming):
            raise InvalidTransitionError(state.phase, Phase.TIME_SELECTION)
        back = ChoosingTime(state.service_key, state.barber_id, state.barber_name, state.period_key)
        return Decision(back, (ShowSlots(notice=Notice.SLOT_TAKEN),))

    if isinstance(event, MenuRequested):
        return _page_menu(state, event.menu)

    return reprompt(state, Notice.HELP)


def _page_menu(state: ConversationState, menu: str) -> Decision:
    if menu == "services":
        if isinstance(state, (Welcome, ChoosingService)):
            return Decision(state, (ShowServices(more=True),))
        return Decision(ChoosingService(), (ShowServices(),))

    if menu == "barbers":
        if isinstance(state, ChoosingBarber):
            return Decision(state, (ShowBarbers(more=True),))
        service_key = _service_key(state)
        if service_key is None:
            return reprompt(state, Notice.HELP)
        return Decision(ChoosingBarber(service_key), (ShowBarbers(),))

    if menu == "slots":
        if isinstance(state, ChoosingTime):
            if state.period_key is None:
                return Decision(state, (ShowPeriods(),))
            return Decision(state, (ShowSlots(more=True),))
        return reprompt(state, Notice.HELP)

    return reprompt(state, Notice.HELP)

from quickbarber.services.intent_service import Intent, classify_intent
from quickbarber.services.state_machine import (
    ConversationState,
    Decision,
    InvalidTransitionError,
    Phase,
    decide,
)

__all__ = [
    "ConversationState",
    "Decision",
    "Intent",
    "InvalidTransitionError",
    "Phase",
    "classify_intent",
    "decide",
]

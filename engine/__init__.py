"""
Call-turn engine - prompt builder, urgency classifier and state machine.
"""
from .prompt import build_system_prompt
from .urgency import (
    DEFAULT_URGENCY_LEXICON,
    build_lexicon,
    classify,
    matched_keywords,
)
from .turns import (
    CallEvent,
    Fail,
    GenerationResult,
    Greet,
    Reprompt,
    Respond,
    TurnDecision,
    TurnState,
    decide_listen,
    decide_response,
    enter_state,
    next_state,
)

__all__ = [
    "build_system_prompt",
    "DEFAULT_URGENCY_LEXICON",
    "build_lexicon",
    "classify",
    "matched_keywords",
    "CallEvent",
    "Fail",
    "GenerationResult",
    "Greet",
    "Reprompt",
    "Respond",
    "TurnDecision",
    "TurnState",
    "decide_listen",
    "decide_response",
    "enter_state",
    "next_state",
]

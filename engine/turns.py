"""
Deterministic call-turn state machine.

This module decides, for one webhook invocation, which call-control state
to enter and what the turn produces:

    INIT        no utterance yet -> greet and listen, redirect back to INIT
    EMPTY       blank utterance  -> re-prompt, back to INIT
    HEARD       utterance        -> classify + generate -> RESPONDING
    RESPONDING  reply ready      -> speak reply (+ escalation) -> END
    END         terminal, no further listening

NO LLM calls and NO I/O are made in this module. The controller
(app/call_controller.py) runs the I/O and feeds results back in.

Nothing here carries state across turns: each turn is fully determined by
its CallEvent.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union


# =============================================================================
# CALLER-FACING PHRASES
# =============================================================================

GREETING = (
    "Bonjour, vous êtes bien au standard du cabinet. "
    "Dites-moi en quelques mots ce dont vous avez besoin."
)
REPROMPT = "Je n'ai pas bien saisi. Pouvez-vous répéter, s'il vous plaît ?"
FALLBACK_REPLY = "Je transmets votre demande à un collègue et nous vous recontactons très vite."
ESCALATION_NOTICE = "Je vous transfère immédiatement."
CLOSING = "Merci pour votre appel. Bonne journée."
TECHNICAL_FAILURE = (
    "Désolé, un souci technique est survenu. "
    "Je vous propose de rappeler dans quelques instants."
)


class TurnState(str, Enum):
    """States of a single call turn."""
    INIT = "INIT"
    HEARD = "HEARD"
    EMPTY = "EMPTY"
    RESPONDING = "RESPONDING"
    END = "END"


@dataclass(frozen=True)
class CallEvent:
    """
    One inbound webhook invocation.

    utterance is None on turn-start (no speech requested yet) and a string,
    possibly blank, on turn-continue.
    """
    call_sid: str
    utterance: Optional[str] = None
    caller_meta: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of one language-model call."""
    text: str
    ok: bool = True
    error: Optional[str] = None
    latency_ms: Optional[int] = None


# =============================================================================
# TURN DECISIONS
# =============================================================================

@dataclass(frozen=True)
class Greet:
    """Speak the greeting inside a speech Gather."""


@dataclass(frozen=True)
class Reprompt:
    """Ask the caller to repeat, then go back to the greeting."""


@dataclass(frozen=True)
class Respond:
    """Speak a reply, optionally followed by an escalation notice."""
    reply_text: str
    escalate: bool = False
    generation: Optional[GenerationResult] = None


@dataclass(frozen=True)
class Fail:
    """Orchestration broke; apologise and end the call."""
    reason: str


TurnDecision = Union[Greet, Reprompt, Respond, Fail]


# =============================================================================
# TRANSITIONS
# =============================================================================

def enter_state(event: CallEvent) -> TurnState:
    """Get the state a fresh webhook invocation starts in."""
    if event.utterance is None:
        return TurnState.INIT
    if not event.utterance.strip():
        return TurnState.EMPTY
    return TurnState.HEARD


def decide_listen(state: TurnState) -> TurnDecision:
    """
    Get the decision for states that do not need a reply.

    Raises:
        ValueError: If the state needs a generated reply (HEARD, RESPONDING)
            or is terminal.
    """
    if state == TurnState.INIT:
        return Greet()
    if state == TurnState.EMPTY:
        return Reprompt()
    raise ValueError(f"State {state.value} has no listen decision")


def decide_response(
    reply_text: Optional[str],
    escalate: bool,
    generation: Optional[GenerationResult] = None,
) -> Respond:
    """
    Build the Respond decision for a HEARD turn.

    A blank reply is replaced by the fallback phrase so the caller always
    hears something.
    """
    text = (reply_text or "").strip() or FALLBACK_REPLY
    return Respond(reply_text=text, escalate=escalate, generation=generation)


def next_state(state: TurnState, decision: TurnDecision) -> TurnState:
    """
    Get the state after a decision has been rendered.

    Every (state, decision) pair has an answer: a Fail always ends the turn,
    and an unexpected pairing ends it too rather than listening again.
    """
    if isinstance(decision, Fail):
        return TurnState.END
    if state == TurnState.INIT and isinstance(decision, Greet):
        return TurnState.INIT
    if state == TurnState.EMPTY and isinstance(decision, Reprompt):
        return TurnState.INIT
    if state == TurnState.HEARD and isinstance(decision, Respond):
        return TurnState.RESPONDING
    return TurnState.END

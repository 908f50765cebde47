"""
Call Turn Controller - orchestrates one webhook invocation.

For every inbound Twilio webhook:
1. enter_state() picks INIT / EMPTY / HEARD from the CallEvent
2. INIT and EMPTY are answered without any I/O
3. HEARD runs Classify -> Generate (strictly in that order)
4. RESPONDING renders the reply speech, the escalation notice when the
   utterance was urgent, and the closing line -> END

GUARANTEE: handle() ALWAYS returns a well-formed TwiML document. Model
failures degrade to the fallback phrase; anything else degrades to the
technical-failure apology.

Python 3.9 compatible - uses typing.Optional, typing.Tuple
"""

import logging
from typing import Optional, Tuple

from engine.prompt import build_system_prompt
from engine.turns import (
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
from engine.urgency import matched_keywords
from knowledge.base import KnowledgeBase

from .config import Settings
from .openai_service import ResponseGenerator
from .speech_service import SpeechRenderer
from .twilio_service import TURN_CONTINUE_PATH, TURN_START_PATH, TwimlBuilder

logger = logging.getLogger(__name__)


class TurnObserver:
    """Receives the outcome of every turn.

    The default implementation logs; replace it to ship turns and model
    failures to another collector.
    """

    def record_generation_failure(self, event: CallEvent, result: GenerationResult) -> None:
        logger.error(
            f"[{event.call_sid}] model failure, fallback phrase used: {result.error} "
            f"(latency_ms={result.latency_ms})"
        )

    def record_turn(
        self,
        event: CallEvent,
        state: TurnState,
        decision: TurnDecision,
        final_state: TurnState,
    ) -> None:
        if isinstance(decision, Respond):
            logger.info(
                f"[{event.call_sid}] {state.value} -> {final_state.value}: "
                f"Respond(escalate={decision.escalate}, chars={len(decision.reply_text)})"
            )
        elif isinstance(decision, Fail):
            logger.error(f"[{event.call_sid}] {state.value} -> {final_state.value}: Fail({decision.reason})")
        else:
            logger.info(f"[{event.call_sid}] {state.value} -> {final_state.value}: {type(decision).__name__}")


class CallTurnController:
    """Drives the call-turn state machine for each webhook."""

    def __init__(
        self,
        settings: Settings,
        knowledge_base: KnowledgeBase,
        generator: ResponseGenerator,
        speech: SpeechRenderer,
        twiml: TwimlBuilder,
        observer: Optional[TurnObserver] = None,
    ):
        self.settings = settings
        self.system_prompt = build_system_prompt(knowledge_base)
        self.generator = generator
        self.speech = speech
        self.twiml = twiml
        self.observer = observer or TurnObserver()

    def _public_base(self, request_base_url: str) -> str:
        return (self.settings.webhook_base_url or request_base_url).rstrip("/")

    async def decide(self, event: CallEvent) -> Tuple[TurnState, TurnDecision]:
        """Run the non-rendering part of a turn.

        Returns:
            (entry state, decision)
        """
        state = enter_state(event)
        if state != TurnState.HEARD:
            return state, decide_listen(state)

        utterance = event.utterance.strip()

        keywords = matched_keywords(utterance, self.settings.urgency_lexicon)
        escalate = bool(keywords)
        if escalate:
            logger.info(f"[{event.call_sid}] urgency keywords matched: {keywords}")

        generation = await self.generator.generate_reply(self.system_prompt, utterance)
        if not generation.ok:
            self.observer.record_generation_failure(event, generation)

        return state, decide_response(generation.text, escalate, generation)

    def render(self, decision: TurnDecision, request_base_url: str) -> str:
        """Build the TwiML document for a decision."""
        base = self._public_base(request_base_url)
        start_url = f"{base}{TURN_START_PATH}"
        continue_url = f"{base}{TURN_CONTINUE_PATH}"

        if isinstance(decision, Greet):
            return self.twiml.greeting(continue_url=continue_url, start_url=start_url)
        if isinstance(decision, Reprompt):
            return self.twiml.reprompt(start_url=start_url)
        if isinstance(decision, Fail):
            return self.twiml.failure(decision.reason)

        # RESPONDING -> END: no Gather, the call ends after playback
        response = self.twiml.new_response()
        self.speech.render(response, decision.reply_text, base)
        if decision.escalate:
            self.twiml.escalation(response)
        self.twiml.closing(response)
        return str(response)

    async def handle(self, event: CallEvent, request_base_url: str) -> str:
        """Process one webhook and return its TwiML."""
        state = enter_state(event)
        try:
            state, decision = await self.decide(event)
            document = self.render(decision, request_base_url)
        except Exception as e:
            logger.exception(f"[{event.call_sid}] turn orchestration failed")
            decision = Fail(reason=f"{type(e).__name__}: {e}")
            document = self.twiml.failure(decision.reason)

        final_state = next_state(state, decision)
        if final_state == TurnState.RESPONDING:
            final_state = next_state(final_state, decision)

        self.observer.record_turn(event, state, decision, final_state)
        return document

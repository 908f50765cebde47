"""
Voice Receptionist - FastAPI Application

Twilio webhooks for an inbound business line:
- POST /voice  turn-start: greeting + speech Gather
- POST /ai     turn-continue: grounded reply, escalation, closing
- GET  /tts    ElevenLabs audio for <Play>
- GET  /, GET /health

Every webhook answers with TwiML, whatever fails behind it.

Python 3.9 compatible.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

import httpx
from fastapi import FastAPI, Form, Query, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from engine.turns import CallEvent
from knowledge.base import KnowledgeBase

from .call_controller import CallTurnController, TurnObserver
from .config import Settings, load_environment, mask_key
from .elevenlabs_service import ElevenLabsService
from .models import StatusResponse
from .openai_service import ResponseGenerator
from .speech_service import build_speech_renderer
from .twilio_service import TwimlBuilder

VERSION = "1.0.0"

TWIML_MEDIA_TYPE = "text/xml"

logger = logging.getLogger(__name__)


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _caller_meta(form: Any) -> dict:
    """Twilio form fields minus the utterance."""
    return {k: v for k, v in form.items() if k != "SpeechResult" and isinstance(v, str)}


def _request_base_url(request: Request) -> str:
    return str(request.base_url).rstrip("/")


def create_app(
    settings: Optional[Settings] = None,
    *,
    knowledge_base: Optional[KnowledgeBase] = None,
    openai_client: Optional[Any] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    observer: Optional[TurnObserver] = None,
) -> FastAPI:
    """Build the application and its services.

    Services are constructed here, not in the lifespan, so an app built in
    tests is usable without running startup events.

    Raises:
        ConfigurationError: If a configured value is invalid.
    """
    if settings is None:
        settings = Settings.from_env()
    if knowledge_base is None:
        knowledge_base = settings.load_knowledge_base()

    twiml = TwimlBuilder(settings)
    generator = ResponseGenerator(settings, client=openai_client)
    speech = build_speech_renderer(settings, twiml)
    elevenlabs = ElevenLabsService(settings, http_client=http_client)
    controller = CallTurnController(
        settings=settings,
        knowledge_base=knowledge_base,
        generator=generator,
        speech=speech,
        twiml=twiml,
        observer=observer,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan - log configuration, close clients."""
        logger.info("=" * 60)
        logger.info(f"Initializing Voice Receptionist for {knowledge_base.name}")
        logger.info("=" * 60)
        logger.info(f"OPENAI_API_KEY present: {settings.llm_configured} ({mask_key(settings.openai_api_key)})")
        logger.info(f"OPENAI_MODEL: {settings.openai_model}")
        logger.info(f"ELEVENLABS_API_KEY present: {settings.tts_configured} ({mask_key(settings.elevenlabs_api_key)})")
        logger.info(f"Speech strategy: {speech.strategy}")
        logger.info(f"Transfer number: {settings.transfer_number or '(not set)'}")
        logger.info("=" * 60)

        yield

        await elevenlabs.close()
        if openai_client is None and generator.client is not None:
            await generator.client.close()
        logger.info("Shutting down Voice Receptionist")

    app = FastAPI(
        title="Voice Receptionist",
        description="Inbound call assistant grounded on a fixed knowledge base",
        version=VERSION,
        lifespan=lifespan,
    )

    @app.get("/", response_class=PlainTextResponse)
    async def index():
        return "Assistant vocal en ligne ✅"

    @app.get("/health", response_model=StatusResponse)
    async def health_check() -> StatusResponse:
        """Health check endpoint."""
        return StatusResponse(
            status="up",
            version=VERSION,
            speechStrategy=speech.strategy,
            llmConfigured=generator.is_configured,
            ttsConfigured=elevenlabs.is_configured,
            transferConfigured=bool(settings.transfer_number),
            model=settings.openai_model,
        )

    # ============================================================
    # Twilio Webhooks
    # ============================================================

    @app.post("/voice")
    async def twilio_voice(request: Request, CallSid: str = Form("")):
        """Turn-start webhook: greet the caller and listen."""
        form = await request.form()
        event = CallEvent(call_sid=CallSid, utterance=None, caller_meta=_caller_meta(form))
        logger.info(f"/voice received for call {CallSid}")

        twiml = await controller.handle(event, _request_base_url(request))
        return Response(content=twiml, media_type=TWIML_MEDIA_TYPE)

    @app.post("/ai")
    async def twilio_ai(
        request: Request,
        CallSid: str = Form(""),
        SpeechResult: str = Form(""),
    ):
        """Turn-continue webhook: answer what the caller said."""
        form = await request.form()
        event = CallEvent(call_sid=CallSid, utterance=SpeechResult, caller_meta=_caller_meta(form))
        logger.info(f"/ai received for call {CallSid}: speech='{SpeechResult[:50]}'")

        twiml = await controller.handle(event, _request_base_url(request))
        return Response(content=twiml, media_type=TWIML_MEDIA_TYPE)

    # ============================================================
    # TTS resource
    # ============================================================

    @app.get("/tts")
    async def tts(text: str = Query("")):
        """Stream ElevenLabs audio for a reply (fetched by Twilio's <Play>)."""
        result = await elevenlabs.open_stream(elevenlabs.build_request(text))
        if not result.ok:
            return PlainTextResponse(result.detail, status_code=result.status_code)

        return StreamingResponse(
            result.audio,
            media_type=result.content_type,
            headers={"Cache-Control": "no-store"},
            background=BackgroundTask(result.aclose),
        )

    return app


def run() -> None:
    """Load .env, then serve the app with uvicorn on HOST:PORT."""
    import uvicorn

    load_environment()
    settings = Settings.from_env()
    configure_logging(settings.debug)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)

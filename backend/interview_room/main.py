from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
import asyncio
import logging
import os

from core.config import QA_MODE, SESSION_CLEANUP_INTERVAL_SEC, TTS_VOICE
from core.logger import configure_logging, log_event
from interview_room.conversation import ConversationEngine, SessionRepository
from interview_room.errors import InterviewError, InvalidInput
from interview_room.gateways import (
    OpenAIGenerationGateway,
    OpenAISpeechGateway,
    SpeechSynthesisGateway,
    build_transcription_gateway,
)
from interview_room.resume.parser import parse_resume
from interview_room.schemas import (
    AnswerRequest,
    AudioAnswerResponse,
    NextQuestionResponse,
    RepeatResponse,
    SessionCreatedResponse,
    SpeechRequest,
)
from interview_room.system_metrics import get_metrics_snapshot, increment_metric, set_metric

configure_logging()
logger = logging.getLogger("interview_room.main")

ALLOWED_AUDIO_TYPES = {
    "audio/webm",
    "audio/ogg",
    "audio/mpeg",
    "audio/mp4",
    "audio/wav",
    "audio/x-wav",
    "audio/wave",
}

app = FastAPI(title="Interview Room – voice interview backend")


def _get_allowed_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if not raw:
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    return [item.strip() for item in raw.split(",") if item.strip()]


_allowed_origins = _get_allowed_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

session_repository = SessionRepository()
_conversation_engine: ConversationEngine | None = None
_speech_gateway: SpeechSynthesisGateway | None = None
_session_cleanup_task: asyncio.Task | None = None


def get_engine() -> ConversationEngine:
    global _conversation_engine
    if _conversation_engine is None:
        _conversation_engine = ConversationEngine(
            repository=session_repository,
            generator=OpenAIGenerationGateway(),
            transcriber=build_transcription_gateway(),
        )
    return _conversation_engine


def get_speech_gateway() -> SpeechSynthesisGateway:
    global _speech_gateway
    if _speech_gateway is None:
        _speech_gateway = OpenAISpeechGateway()
    return _speech_gateway


@app.exception_handler(InterviewError)
async def interview_error_handler(request: Request, exc: InterviewError):
    if exc.status_code >= 500:
        logger.warning("%s %s failed | %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.on_event("startup")
async def startup_banner():
    global _session_cleanup_task
    if QA_MODE:
        logger.info("[SYSTEM] QA_MODE ENABLED")
    logger.info("[SYSTEM] CORS allow_origins=%s", _allowed_origins)

    async def _session_cleanup_loop():
        while True:
            await asyncio.sleep(SESSION_CLEANUP_INTERVAL_SEC)
            removed = session_repository.evict_expired()
            set_metric("sessions_active", float(len(session_repository)))
            if removed > 0:
                increment_metric("sessions_evicted", float(removed))
                logger.info("[SYSTEM] evicted expired sessions=%s", removed)

    _session_cleanup_task = asyncio.create_task(_session_cleanup_loop())


@app.on_event("shutdown")
async def shutdown_handler():
    global _session_cleanup_task
    if _session_cleanup_task is not None:
        _session_cleanup_task.cancel()
        try:
            await _session_cleanup_task
        except asyncio.CancelledError:
            pass
        finally:
            _session_cleanup_task = None
    logger.info("[SYSTEM] shutdown complete")


@app.get("/healthz")
async def healthz():
    return {"status": "ok", "service": "interview-room"}


@app.get("/api/metrics")
def metrics():
    snapshot = get_metrics_snapshot()
    snapshot["sessions_active"] = float(len(session_repository))
    return snapshot


router = APIRouter(prefix="/api/interview")


@router.post("/resume", response_model=SessionCreatedResponse)
async def upload_resume(
    resume: UploadFile | None = File(None),
    applicationId: str | None = Form(None),
    engine: ConversationEngine = Depends(get_engine),
):
    if resume is None:
        raise InvalidInput("resume file is required")

    content = await resume.read()
    text = parse_resume(resume.filename or "", content, resume.content_type)
    return await engine.create_session(text, application_id=applicationId)


@router.post("/answer", response_model=NextQuestionResponse)
async def submit_answer(payload: AnswerRequest, engine: ConversationEngine = Depends(get_engine)):
    return await engine.submit_answer(payload.session_id, payload.answer)


@router.post("/answer-audio", response_model=AudioAnswerResponse)
async def submit_audio_answer(
    sessionId: str = Form(""),
    audio: UploadFile | None = File(None),
    engine: ConversationEngine = Depends(get_engine),
):
    if not sessionId:
        raise InvalidInput("sessionId is required")
    if audio is None:
        raise InvalidInput("audio file is required")

    mimetype = str(audio.content_type or "").split(";")[0].strip().lower()
    if mimetype and mimetype not in ALLOWED_AUDIO_TYPES:
        raise InvalidInput("Unsupported audio type. Use webm/ogg/mpeg/mp4/wav.")

    content = await audio.read()
    return await engine.submit_audio_answer(sessionId, content, audio.filename or "audio.webm")


@router.get("/repeat/{session_id}", response_model=RepeatResponse)
def repeat_question(session_id: str, engine: ConversationEngine = Depends(get_engine)):
    return engine.repeat_last(session_id)


@router.get("/session/{session_id}")
def get_session_history(session_id: str, engine: ConversationEngine = Depends(get_engine)):
    return engine.history(session_id)


@router.post("/tts")
async def text_to_speech(payload: SpeechRequest, gateway: SpeechSynthesisGateway = Depends(get_speech_gateway)):
    text = str(payload.text or "").strip()
    if not text:
        raise InvalidInput("No text provided")

    increment_metric("speech_requests")
    audio = await gateway.synthesize_speech(text, payload.voice or TTS_VOICE)
    log_event("speech", "synthesized", "", text=text, bytes=len(audio))
    return Response(content=audio, media_type="audio/wav")


app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 8000))

    uvicorn.run(app, host="0.0.0.0", port=port)

import os
from pathlib import Path
from dotenv import load_dotenv

_BACKEND_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ENV_PATH = _BACKEND_ROOT / ".env"
load_dotenv(dotenv_path=_BACKEND_ENV_PATH, override=False)


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    try:
        return max(minimum, float(os.getenv(name, default)))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    try:
        return max(minimum, int(os.getenv(name, default)))
    except (TypeError, ValueError):
        return default


# ---------- generation / speech gateways ----------

OPENAI_API_KEY = str(os.getenv("OPENAI_API_KEY") or "").strip()
MODEL_NAME = str(os.getenv("MODEL_NAME") or "gpt-4o-mini").strip()
TRANSCRIPTION_MODEL = str(os.getenv("TRANSCRIPTION_MODEL") or "whisper-1").strip()
TTS_MODEL = str(os.getenv("TTS_MODEL") or "tts-1").strip()
TTS_VOICE = str(os.getenv("TTS_VOICE") or "nova").strip()

AZURE_OPENAI_KEY = str(os.getenv("AZURE_OPENAI_KEY") or "").strip()
AZURE_OPENAI_ENDPOINT = str(os.getenv("AZURE_OPENAI_ENDPOINT") or "").strip()
AZURE_OPENAI_API_VERSION = str(os.getenv("AZURE_OPENAI_API_VERSION") or "2024-08-01-preview").strip()

TRANSCRIPTION_BACKEND = str(os.getenv("TRANSCRIPTION_BACKEND") or "openai").strip().lower()
LOCAL_WHISPER_MODEL = str(os.getenv("LOCAL_WHISPER_MODEL") or "base").strip()

# every gateway call is bounded; GATEWAY_RETRIES=0 disables retrying
GATEWAY_TIMEOUT_SEC = _env_float("GATEWAY_TIMEOUT_SEC", 30.0, minimum=1.0)
GATEWAY_RETRIES = _env_int("GATEWAY_RETRIES", 1)

# ---------- conversation ----------

MAX_RESUME_CHARS = _env_int("MAX_RESUME_CHARS", 12000, minimum=500)
SESSION_IDLE_TTL_SEC = _env_float("SESSION_IDLE_TTL_SEC", 3600.0, minimum=60.0)
SESSION_TERMINATED_TTL_SEC = _env_float("SESSION_TERMINATED_TTL_SEC", 600.0, minimum=30.0)
SESSION_CLEANUP_INTERVAL_SEC = _env_float("SESSION_CLEANUP_INTERVAL_SEC", 120.0, minimum=5.0)

# ---------- capture client ----------

INTERVIEW_API_BASE = str(os.getenv("INTERVIEW_API_BASE") or "http://127.0.0.1:8000/api/interview").strip().rstrip("/")
# worst case for one answer on the server: transcription then generation, each
# bounded by call_with_retries (attempts * timeout plus the linear backoff).
# The client waits longer so a slow turn is never retried while still in flight.
SERVER_TURN_BUDGET_SEC = 2 * (
    (GATEWAY_RETRIES + 1) * GATEWAY_TIMEOUT_SEC + sum(0.35 * (attempt + 1) for attempt in range(GATEWAY_RETRIES))
)
CLIENT_REQUEST_TIMEOUT_SEC = _env_float("CLIENT_REQUEST_TIMEOUT_SEC", SERVER_TURN_BUDGET_SEC + 15.0, minimum=1.0)
SILENCE_THRESHOLD_MS = _env_int("SILENCE_THRESHOLD_MS", 10000, minimum=500)
SILENCE_VOLUME_THRESHOLD = _env_float("SILENCE_VOLUME_THRESHOLD", 10.0)
VIDEO_DIR = Path(os.getenv("VIDEO_DIR") or (_BACKEND_ROOT / "uploads" / "videos"))

QA_MODE = os.getenv("QA_MODE", "false").lower() == "true"

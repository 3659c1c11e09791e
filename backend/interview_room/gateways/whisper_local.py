import asyncio
import os
import tempfile
from pathlib import Path

from core.config import GATEWAY_TIMEOUT_SEC, LOCAL_WHISPER_MODEL
from interview_room.gateways.base import call_with_retries


class LocalWhisperTranscriptionGateway:
    def __init__(self, model_name: str = LOCAL_WHISPER_MODEL, timeout_sec: float = GATEWAY_TIMEOUT_SEC):
        self.timeout_sec = timeout_sec
        try:
            import whisper  # type: ignore
        except Exception as exc:
            raise RuntimeError(
                "Whisper is not installed. Install the optional dependency 'openai-whisper' (and FFmpeg) to enable local transcription."
            ) from exc

        self.model = whisper.load_model(model_name)

    def _transcribe_file(self, audio_bytes: bytes, suffix: str) -> str:
        with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as f:
            f.write(audio_bytes)
            path = f.name

        try:
            result = self.model.transcribe(path)
        finally:
            os.unlink(path)
        return str(result.get("text") or "").strip()

    async def transcribe_audio(self, audio_bytes: bytes, filename: str) -> str:
        suffix = Path(filename or "").suffix or ".webm"
        return await call_with_retries(
            "local_transcribe",
            lambda: asyncio.to_thread(self._transcribe_file, audio_bytes, suffix),
            self.timeout_sec,
            retries=0,
        )

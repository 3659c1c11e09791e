from __future__ import annotations

from openai import AsyncAzureOpenAI, AsyncOpenAI

from core.config import (
    AZURE_OPENAI_API_VERSION,
    AZURE_OPENAI_ENDPOINT,
    AZURE_OPENAI_KEY,
    GATEWAY_RETRIES,
    GATEWAY_TIMEOUT_SEC,
    MODEL_NAME,
    OPENAI_API_KEY,
    TRANSCRIPTION_MODEL,
    TTS_MODEL,
    TTS_VOICE,
)
from interview_room.errors import UpstreamFailure
from interview_room.gateways.base import call_with_retries


def build_openai_client():
    if AZURE_OPENAI_KEY and AZURE_OPENAI_ENDPOINT:
        return AsyncAzureOpenAI(
            api_key=AZURE_OPENAI_KEY,
            azure_endpoint=AZURE_OPENAI_ENDPOINT,
            api_version=AZURE_OPENAI_API_VERSION,
        )
    if not OPENAI_API_KEY:
        raise UpstreamFailure("OpenAI is not configured: set OPENAI_API_KEY or the AZURE_OPENAI_* variables")
    return AsyncOpenAI(api_key=OPENAI_API_KEY)


class _OpenAIGateway:
    def __init__(self, client=None, timeout_sec: float = GATEWAY_TIMEOUT_SEC, retries: int = GATEWAY_RETRIES):
        self._client = client
        self.timeout_sec = timeout_sec
        self.retries = retries

    @property
    def client(self):
        if self._client is None:
            self._client = build_openai_client()
        return self._client


class OpenAIGenerationGateway(_OpenAIGateway):
    def __init__(self, client=None, model: str = MODEL_NAME, **kwargs):
        super().__init__(client=client, **kwargs)
        self.model = model

    async def generate_text(self, prompt: str, system_context: str) -> str:
        client = self.client

        async def _create():
            return await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_context},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.4,
            )

        response = await call_with_retries("generate_text", _create, self.timeout_sec, self.retries)
        message = response.choices[0].message.content if response.choices else None
        text = str(message or "").strip()
        if not text:
            raise UpstreamFailure("generate_text returned an empty response")
        return text


class OpenAITranscriptionGateway(_OpenAIGateway):
    def __init__(self, client=None, model: str = TRANSCRIPTION_MODEL, language: str = "en", **kwargs):
        super().__init__(client=client, **kwargs)
        self.model = model
        self.language = language

    async def transcribe_audio(self, audio_bytes: bytes, filename: str) -> str:
        client = self.client

        async def _create():
            return await client.audio.transcriptions.create(
                model=self.model,
                file=(filename or "audio.webm", audio_bytes),
                response_format="text",
                language=self.language,
            )

        result = await call_with_retries("transcribe_audio", _create, self.timeout_sec, self.retries)
        if isinstance(result, str):
            return result.strip()
        return str(getattr(result, "text", "") or "").strip()


class OpenAISpeechGateway(_OpenAIGateway):
    def __init__(self, client=None, model: str = TTS_MODEL, default_voice: str = TTS_VOICE, **kwargs):
        super().__init__(client=client, **kwargs)
        self.model = model
        self.default_voice = default_voice

    async def synthesize_speech(self, text: str, voice_id: str | None = None) -> bytes:
        client = self.client

        async def _create():
            return await client.audio.speech.create(
                model=self.model,
                voice=voice_id or self.default_voice,
                input=text,
                response_format="wav",
                speed=1.0,
            )

        response = await call_with_retries("synthesize_speech", _create, self.timeout_sec, self.retries)
        audio = getattr(response, "content", response)
        if not audio:
            raise UpstreamFailure("synthesize_speech returned no audio")
        return bytes(audio)

from __future__ import annotations

import logging

import httpx

from core.config import CLIENT_REQUEST_TIMEOUT_SEC, INTERVIEW_API_BASE, TTS_VOICE
from interview_room.errors import UpstreamFailure, error_for_status

logger = logging.getLogger("interview_room.capture.api")


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        return str(data.get("detail") or data.get("error") or data)
    return str(data)


class InterviewApiClient:
    """Async wrapper over the interview HTTP endpoints."""

    def __init__(
        self,
        base_url: str = INTERVIEW_API_BASE,
        timeout_sec: float = CLIENT_REQUEST_TIMEOUT_SEC,
        client: httpx.AsyncClient | None = None,
    ):
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout_sec)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "InterviewApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s transport error | %s", method, path, exc)
            raise UpstreamFailure(f"request to {path} failed: {exc}") from exc

        if response.status_code >= 400:
            raise error_for_status(response.status_code, _error_detail(response))
        return response

    async def create_session(
        self,
        resume_bytes: bytes,
        filename: str,
        content_type: str = "application/pdf",
        application_id: str | None = None,
    ) -> dict:
        data = {"applicationId": application_id} if application_id else None
        response = await self._request(
            "POST",
            "/resume",
            files={"resume": (filename, resume_bytes, content_type)},
            data=data,
        )
        return response.json()

    async def submit_answer(self, session_id: str, answer: str) -> dict:
        response = await self._request("POST", "/answer", json={"sessionId": session_id, "answer": answer})
        return response.json()

    async def submit_audio_answer(
        self,
        session_id: str,
        audio_bytes: bytes,
        filename: str = "answer.wav",
        content_type: str = "audio/wav",
    ) -> dict:
        response = await self._request(
            "POST",
            "/answer-audio",
            files={"audio": (filename, audio_bytes, content_type)},
            data={"sessionId": session_id},
        )
        return response.json()

    async def repeat_last(self, session_id: str) -> dict:
        response = await self._request("GET", f"/repeat/{session_id}")
        return response.json()

    async def synthesize_speech(self, text: str, voice: str = TTS_VOICE) -> bytes:
        response = await self._request("POST", "/tts", json={"text": text, "voice": voice})
        return response.content

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Protocol, TypeVar

from core.config import GATEWAY_RETRIES, GATEWAY_TIMEOUT_SEC
from interview_room.errors import InterviewError, UpstreamFailure

logger = logging.getLogger("interview_room.gateways")

T = TypeVar("T")


class GenerationGateway(Protocol):
    async def generate_text(self, prompt: str, system_context: str) -> str:
        ...


class TranscriptionGateway(Protocol):
    async def transcribe_audio(self, audio_bytes: bytes, filename: str) -> str:
        ...


class SpeechSynthesisGateway(Protocol):
    async def synthesize_speech(self, text: str, voice_id: str) -> bytes:
        ...


async def call_with_retries(
    label: str,
    factory: Callable[[], Awaitable[T]],
    timeout_sec: float = GATEWAY_TIMEOUT_SEC,
    retries: int = GATEWAY_RETRIES,
) -> T:
    """
    Runs ``factory()`` under a timeout, retrying with a linear backoff.
    Raises UpstreamFailure once every attempt has failed.
    """
    last_error: Exception | None = None
    for attempt in range(max(1, retries + 1)):
        try:
            return await asyncio.wait_for(factory(), timeout=timeout_sec)
        except asyncio.TimeoutError as exc:
            last_error = exc
            logger.warning("%s timeout | attempt=%s", label, attempt + 1)
        except InterviewError:
            raise
        except Exception as exc:
            last_error = exc
            logger.warning("%s failure | attempt=%s err=%s", label, attempt + 1, exc)

        if attempt < retries:
            await asyncio.sleep(0.35 * (attempt + 1))

    raise UpstreamFailure(f"{label} failed: {last_error or 'unknown error'}") from last_error

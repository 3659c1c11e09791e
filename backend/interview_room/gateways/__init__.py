from core.config import TRANSCRIPTION_BACKEND
from interview_room.gateways.base import (
    GenerationGateway,
    SpeechSynthesisGateway,
    TranscriptionGateway,
    call_with_retries,
)
from interview_room.gateways.openai_gateway import (
    OpenAIGenerationGateway,
    OpenAISpeechGateway,
    OpenAITranscriptionGateway,
)


def build_transcription_gateway(backend: str = TRANSCRIPTION_BACKEND) -> TranscriptionGateway:
    if backend == "local":
        from interview_room.gateways.whisper_local import LocalWhisperTranscriptionGateway

        return LocalWhisperTranscriptionGateway()
    return OpenAITranscriptionGateway()


__all__ = [
    "GenerationGateway",
    "TranscriptionGateway",
    "SpeechSynthesisGateway",
    "OpenAIGenerationGateway",
    "OpenAITranscriptionGateway",
    "OpenAISpeechGateway",
    "build_transcription_gateway",
    "call_with_retries",
]

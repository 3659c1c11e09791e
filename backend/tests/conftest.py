import asyncio
import os
import sys
from pathlib import Path

import numpy as np
import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("QA_MODE", "true")
os.environ.setdefault("OPENAI_API_KEY", "test-key")


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ENV", "development")
    monkeypatch.setenv("QA_MODE", "true")
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")

    from interview_room.system_metrics import reset_metrics

    reset_metrics()


# ---------- conversation fakes ----------


class FakeGenerator:
    """
    Scripted generation gateway. ``questions`` are handed out in order for
    question prompts; summary prompts always get ``summary``.
    """

    def __init__(self, questions=None, summary: str = "Backend engineer, Python and Postgres."):
        self.summary = summary
        self.questions = list(questions or [])
        self.prompts: list[str] = []
        self.fail_next = 0
        self.gate: asyncio.Event | None = None
        self._count = 0

    async def generate_text(self, prompt: str, system_context: str) -> str:
        self.prompts.append(prompt)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_next > 0:
            self.fail_next -= 1
            raise RuntimeError("model unavailable")
        if prompt.startswith("Summarize this resume"):
            return self.summary
        if self.questions:
            return self.questions.pop(0)
        self._count += 1
        return f"Question {self._count}?"


class FakeTranscriber:
    def __init__(self, transcript: str = "I built the billing service."):
        self.transcript = transcript
        self.calls: list[tuple[bytes, str]] = []
        self.fail_next = 0

    async def transcribe_audio(self, audio_bytes: bytes, filename: str) -> str:
        self.calls.append((audio_bytes, filename))
        if self.fail_next > 0:
            self.fail_next -= 1
            raise RuntimeError("transcriber down")
        return self.transcript


class FakeSpeech:
    def __init__(self):
        self.calls: list[tuple[str, str]] = []

    async def synthesize_speech(self, text: str, voice_id: str | None = None) -> bytes:
        self.calls.append((text, voice_id))
        return b"RIFF-fake-wav"


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def repository():
    from interview_room.conversation import SessionRepository

    return SessionRepository()


@pytest.fixture
def engine(repository, generator, transcriber):
    from interview_room.conversation import ConversationEngine

    return ConversationEngine(repository=repository, generator=generator, transcriber=transcriber)


# ---------- capture fakes ----------


class FakeStream:
    def __init__(self, kind: str):
        self.kind = kind
        self.release_calls = 0

    def view(self):
        return self

    def release(self) -> bool:
        self.release_calls += 1
        return self.release_calls == 1


class FakeAnalyser:
    def __init__(self):
        self.volume = 0.0
        self.disconnected = False

    def read_waveform(self):
        return np.full(256, 128 + self.volume, dtype=np.float32)

    def disconnect(self) -> None:
        self.disconnected = True


class FakeAudioRecorder:
    def __init__(self):
        self.is_recording = False
        self.discarded = False

    def start(self) -> None:
        self.is_recording = True

    async def stop(self):
        from interview_room.capture.media import AudioClip

        self.is_recording = False
        return AudioClip(data=b"wav-bytes")

    async def discard(self) -> None:
        self.is_recording = False
        self.discarded = True


class FakeVideoRecorder:
    def __init__(self, path: Path, empty: bool = False):
        self.path = Path(path)
        self.empty = empty
        self.is_recording = False
        self.stop_calls = 0

    def start(self) -> None:
        self.is_recording = True

    async def stop(self) -> Path | None:
        self.stop_calls += 1
        self.is_recording = False
        if self.empty:
            return None
        self.path.write_bytes(b"video")
        return self.path


class FakeDevices:
    def __init__(self, deny_microphone: bool = False):
        from interview_room.errors import MediaPermissionDenied

        self._denied = MediaPermissionDenied
        self.deny_microphone = deny_microphone
        self.microphone_error: Exception | None = None
        self.empty_video = False
        self.cameras: list[FakeStream] = []
        self.microphones: list[FakeStream] = []
        self.analysers: list[FakeAnalyser] = []
        self.audio_recorders: list[FakeAudioRecorder] = []
        self.video_recorders: list[FakeVideoRecorder] = []

    def open_camera(self):
        stream = FakeStream("video")
        self.cameras.append(stream)
        return stream

    def open_microphone(self):
        if self.deny_microphone:
            raise self._denied("Could not access the microphone")
        if self.microphone_error is not None:
            raise self.microphone_error
        stream = FakeStream("audio")
        self.microphones.append(stream)
        return stream

    def analyser(self, view):
        analyser = FakeAnalyser()
        self.analysers.append(analyser)
        return analyser

    def audio_recorder(self, view):
        recorder = FakeAudioRecorder()
        self.audio_recorders.append(recorder)
        return recorder

    def video_recorder(self, view, path):
        recorder = FakeVideoRecorder(path, empty=self.empty_video)
        self.video_recorders.append(recorder)
        return recorder


class FakeApi:
    """In-process stand-in for InterviewApiClient backed by a real engine."""

    def __init__(self, engine):
        self.engine = engine
        self.audio_failures: list[Exception] = []
        self.speech_fails = False
        self.answers: list[str] = []
        self.audio_calls = 0
        self.hold_audio: asyncio.Event | None = None

    async def create_session(self, resume_bytes, filename, content_type="application/pdf", application_id=None):
        return await self.engine.create_session(resume_bytes.decode("utf-8"), application_id=application_id)

    async def submit_answer(self, session_id, answer):
        self.answers.append(answer)
        return await self.engine.submit_answer(session_id, answer)

    async def submit_audio_answer(self, session_id, audio_bytes, filename="answer.wav", content_type="audio/wav"):
        self.audio_calls += 1
        if self.hold_audio is not None:
            await self.hold_audio.wait()
        if self.audio_failures:
            raise self.audio_failures.pop(0)
        return await self.engine.submit_audio_answer(session_id, audio_bytes, filename)

    async def repeat_last(self, session_id):
        return self.engine.repeat_last(session_id)

    async def synthesize_speech(self, text, voice="nova"):
        if self.speech_fails:
            from interview_room.errors import UpstreamFailure

            raise UpstreamFailure("tts down")
        return b"RIFF"


class FakePlayer:
    def __init__(self):
        self.played: list[bytes] = []
        self.cancel_calls = 0

    async def play(self, audio_bytes: bytes) -> None:
        self.played.append(audio_bytes)

    def cancel(self) -> None:
        self.cancel_calls += 1


class FakeVoice:
    def __init__(self):
        self.spoken: list[str] = []
        self.cancel_calls = 0

    async def speak(self, text: str) -> None:
        self.spoken.append(text)

    def cancel(self) -> None:
        self.cancel_calls += 1


class ManualMonitor:
    """SilenceMonitor stand-in driven explicitly by the test."""

    instances: list["ManualMonitor"] = []

    def __init__(self, source, on_silence_detected, on_speech_detected, silence_threshold_ms=10000, volume_threshold=10.0):
        self.source = source
        self.on_silence_detected = on_silence_detected
        self.on_speech_detected = on_speech_detected
        self.silence_threshold_ms = silence_threshold_ms
        self.running = False
        self.stop_calls = 0
        self.reset_calls = 0
        ManualMonitor.instances.append(self)

    def start(self) -> None:
        self.running = True

    def stop(self) -> None:
        self.stop_calls += 1
        if self.running:
            self.running = False
            self.source.disconnect()

    def reset(self) -> None:
        self.reset_calls += 1

    def remaining_seconds(self) -> int:
        return self.silence_threshold_ms // 1000

    def fire_silence(self, duration_ms: float = 10000.0) -> None:
        if self.running:
            self.on_silence_detected(duration_ms)


@pytest.fixture
def devices() -> FakeDevices:
    return FakeDevices()


@pytest.fixture
def fake_api(engine) -> FakeApi:
    return FakeApi(engine)


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def controller(fake_api, devices, tmp_path, events):
    from interview_room.capture.controller import MediaCaptureController
    from interview_room.capture.storage import VideoStorage

    ManualMonitor.instances = []
    return MediaCaptureController(
        fake_api,
        devices,
        FakePlayer(),
        FakeVoice(),
        VideoStorage(tmp_path / "videos"),
        settle_delay_sec=0.0,
        monitor_factory=ManualMonitor,
        on_event=lambda kind, payload: events.append((kind, payload)),
    )

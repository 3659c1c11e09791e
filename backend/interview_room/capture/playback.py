from __future__ import annotations

import asyncio
from io import BytesIO
import logging
import threading

from interview_room.capture.media import require_capture_module

logger = logging.getLogger("interview_room.capture.playback")


class AudioPlayer:
    """Plays synthesized question audio on the default output device."""

    def __init__(self):
        self._sd = require_capture_module("sounddevice")
        self._sf = require_capture_module("soundfile")

    def _play_blocking(self, audio_bytes: bytes) -> None:
        data, sample_rate = self._sf.read(BytesIO(audio_bytes), dtype="float32")
        self._sd.play(data, sample_rate)
        self._sd.wait()

    async def play(self, audio_bytes: bytes) -> None:
        await asyncio.to_thread(self._play_blocking, audio_bytes)

    def cancel(self) -> None:
        self._sd.stop()


class LocalSpeechSynthesizer:
    """On-device text-to-speech used when remote synthesis is unavailable."""

    def __init__(self, rate: int = 150, volume: float = 0.9):
        self._pyttsx3 = require_capture_module("pyttsx3")
        self.rate = rate
        self.volume = volume
        self._engine = None
        self._lock = threading.Lock()

    def _speak_blocking(self, text: str) -> None:
        logger.info("On-device speech | chars=%s", len(text))
        engine = self._pyttsx3.init()
        engine.setProperty("rate", self.rate)
        engine.setProperty("volume", self.volume)
        with self._lock:
            self._engine = engine
        try:
            engine.say(text)
            engine.runAndWait()
        finally:
            with self._lock:
                self._engine = None

    async def speak(self, text: str) -> None:
        await asyncio.to_thread(self._speak_blocking, text)

    def cancel(self) -> None:
        with self._lock:
            engine = self._engine
        if engine is not None:
            engine.stop()

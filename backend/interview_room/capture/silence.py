from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Callable, Protocol

import numpy as np

from core.config import SILENCE_THRESHOLD_MS, SILENCE_VOLUME_THRESHOLD

logger = logging.getLogger("interview_room.capture.silence")

# ~60 Hz, one animation frame
DEFAULT_POLL_INTERVAL_SEC = 1.0 / 60.0


class WaveformSource(Protocol):
    def read_waveform(self) -> np.ndarray:
        """Time-domain bytes on a 0-255 scale, 128 being the midpoint."""
        ...

    def disconnect(self) -> None:
        ...


def measure_volume(waveform) -> float:
    """Mean absolute deviation of the waveform from its 128 midpoint."""
    data = np.asarray(waveform, dtype=np.float32)
    if data.size == 0:
        return 0.0
    return float(np.mean(np.abs(data - 128.0)))


class SilenceMonitor:
    """
    Polls an audio source and reports silence/speech transitions.

    ``on_silence_detected(duration_ms)`` fires once every time the volume has
    stayed below ``volume_threshold`` for ``silence_threshold_ms``;
    ``on_speech_detected()`` fires on the first loud sample after silence.
    Nothing fires once ``stop()`` has returned.
    """

    def __init__(
        self,
        source: WaveformSource,
        on_silence_detected: Callable[[float], None] | None,
        on_speech_detected: Callable[[], None] | None,
        silence_threshold_ms: int = SILENCE_THRESHOLD_MS,
        volume_threshold: float = SILENCE_VOLUME_THRESHOLD,
        poll_interval_sec: float = DEFAULT_POLL_INTERVAL_SEC,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.on_silence_detected = on_silence_detected
        self.on_speech_detected = on_speech_detected
        self.silence_threshold_ms = max(1, int(silence_threshold_ms))
        self.volume_threshold = float(volume_threshold)
        self.poll_interval_sec = max(0.001, float(poll_interval_sec))
        self._clock = clock

        self.is_silent = False
        self.silence_started_at: float | None = None
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def start(self) -> None:
        if self._running:
            return

        self._running = True
        self.is_silent = False
        self.silence_started_at = self._now_ms()
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("SilenceMonitor started | threshold_ms=%s", self.silence_threshold_ms)

    async def _run(self) -> None:
        while self._running:
            await asyncio.sleep(self.poll_interval_sec)
            self.poll_once()

    def stop(self) -> None:
        if not self._running:
            return

        self._running = False

        if self._task is not None:
            self._task.cancel()
            self._task = None

        try:
            self.source.disconnect()
        finally:
            self.silence_started_at = None
            self.is_silent = False

        logger.info("SilenceMonitor stopped")

    def reset(self) -> None:
        self.silence_started_at = self._now_ms()
        self.is_silent = False

    def poll_once(self) -> None:
        if not self._running:
            return
        self.process_volume(measure_volume(self.source.read_waveform()))

    def process_volume(self, volume: float) -> None:
        if not self._running:
            return

        now = self._now_ms()
        if self.silence_started_at is None:
            self.silence_started_at = now

        if volume < self.volume_threshold:
            if not self.is_silent:
                self.is_silent = True
                self.silence_started_at = now
                return

            silence_duration = now - self.silence_started_at
            if silence_duration >= self.silence_threshold_ms:
                # restart the window so the next event needs a full threshold again
                self.silence_started_at = now
                if self.on_silence_detected is not None:
                    self.on_silence_detected(silence_duration)
            return

        if self.is_silent:
            self.is_silent = False
            if self.on_speech_detected is not None:
                self.on_speech_detected()
        self.silence_started_at = now

    def remaining_ms(self) -> float:
        if not self.is_silent or self.silence_started_at is None:
            return float(self.silence_threshold_ms)

        elapsed = self._now_ms() - self.silence_started_at
        return max(0.0, self.silence_threshold_ms - elapsed)

    def remaining_seconds(self) -> int:
        return max(0, math.ceil(self.remaining_ms() / 1000.0))

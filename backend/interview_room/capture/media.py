from __future__ import annotations

import asyncio
from dataclasses import dataclass
from io import BytesIO
import importlib
import logging
from pathlib import Path
import threading
from typing import Callable

import numpy as np

from interview_room.errors import InvalidState, MediaPermissionDenied

logger = logging.getLogger("interview_room.capture.media")

BlockCallback = Callable[[np.ndarray], None]


def require_capture_module(name: str):
    try:
        return importlib.import_module(name)
    except ImportError as exc:
        raise RuntimeError(
            f"'{name}' is not installed. Install the optional 'capture' extra to use local camera and microphone devices."
        ) from exc


@dataclass
class AudioClip:
    data: bytes
    filename: str = "answer.wav"
    content_type: str = "audio/wav"
    duration_sec: float = 0.0


# ---------- ownership ----------


class OwnedStream:
    """
    Single owner of a device stream. Only the owner can release it;
    every consumer receives a read-only ``StreamView``.
    """

    kind = "media"

    def __init__(self):
        self._release_lock = threading.Lock()
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def view(self) -> "StreamView":
        if self._released:
            raise InvalidState(f"{self.kind} stream already released")
        return StreamView(self)

    def release(self) -> bool:
        with self._release_lock:
            if self._released:
                return False
            self._released = True
        self._close()
        logger.info("%s stream released", self.kind)
        return True

    def _read(self):
        return None

    def _subscribe(self, callback: BlockCallback) -> None:
        raise InvalidState(f"{self.kind} stream does not support subscriptions")

    def _unsubscribe(self, callback: BlockCallback) -> None:
        return None

    def _close(self) -> None:
        return None


class StreamView:
    def __init__(self, owner: OwnedStream):
        self._owner = owner

    @property
    def kind(self) -> str:
        return self._owner.kind

    @property
    def released(self) -> bool:
        return self._owner.released

    @property
    def sample_rate(self) -> int:
        return int(getattr(self._owner, "sample_rate", 0))

    @property
    def fps(self) -> float:
        return float(getattr(self._owner, "fps", 0.0))

    def read(self):
        if self._owner.released:
            return None
        return self._owner._read()

    def subscribe(self, callback: BlockCallback) -> None:
        self._owner._subscribe(callback)

    def unsubscribe(self, callback: BlockCallback) -> None:
        self._owner._unsubscribe(callback)


# ---------- devices ----------


class MicrophoneStream(OwnedStream):
    kind = "audio"

    def __init__(self, sample_rate: int = 16000, block_size: int = 1024, history_size: int = 2048):
        super().__init__()
        sd = require_capture_module("sounddevice")

        self.sample_rate = int(sample_rate)
        self._buffer_lock = threading.Lock()
        self._history = np.zeros(int(history_size), dtype=np.float32)
        self._subscribers: list[BlockCallback] = []

        try:
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                blocksize=int(block_size),
                channels=1,
                dtype="float32",
                callback=self._audio_callback,
            )
            self._stream.start()
        except Exception as exc:
            self._released = True
            raise MediaPermissionDenied(f"Could not access the microphone: {exc}") from exc

    def _audio_callback(self, indata, frames, time_info, status):
        if status:
            logger.debug("audio status: %s", status)
        block = np.asarray(indata, dtype=np.float32)[:, 0].copy()
        with self._buffer_lock:
            size = self._history.size
            if block.size >= size:
                self._history = block[-size:].copy()
            else:
                self._history = np.concatenate([self._history[block.size:], block])
            subscribers = list(self._subscribers)
        for callback in subscribers:
            callback(block)

    def _read(self) -> np.ndarray:
        with self._buffer_lock:
            return self._history.copy()

    def _subscribe(self, callback: BlockCallback) -> None:
        with self._buffer_lock:
            self._subscribers.append(callback)

    def _unsubscribe(self, callback: BlockCallback) -> None:
        with self._buffer_lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def _close(self) -> None:
        with self._buffer_lock:
            self._subscribers.clear()
        self._stream.stop()
        self._stream.close()


class CameraStream(OwnedStream):
    kind = "video"

    def __init__(self, camera_index: int = 0):
        super().__init__()
        cv2 = require_capture_module("cv2")

        self._capture_lock = threading.Lock()
        self._capture = cv2.VideoCapture(camera_index)
        if not self._capture.isOpened():
            self._capture.release()
            self._released = True
            raise MediaPermissionDenied("Could not access the camera. Please check permissions.")

        self.fps = float(self._capture.get(cv2.CAP_PROP_FPS) or 0.0) or 20.0

    def _read(self):
        with self._capture_lock:
            if self._released:
                return None
            ok, frame = self._capture.read()
        return frame if ok else None

    def _close(self) -> None:
        with self._capture_lock:
            self._capture.release()


# ---------- consumers ----------


class AudioAnalyser:
    """Byte waveform of the latest microphone samples (the SilenceMonitor's input)."""

    def __init__(self, view: StreamView):
        self._view = view
        self._connected = True

    def read_waveform(self) -> np.ndarray:
        samples = self._view.read() if self._connected else None
        if samples is None:
            return np.full(2048, 128, dtype=np.uint8)
        return np.clip(np.round(128.0 + np.asarray(samples) * 128.0), 0, 255).astype(np.uint8)

    def disconnect(self) -> None:
        self._connected = False


class AudioRecorder:
    """Per-turn answer recorder fed by microphone blocks."""

    def __init__(self, view: StreamView):
        self._view = view
        self._blocks: list[np.ndarray] = []
        self._lock = threading.Lock()
        self.is_recording = False

    def _on_block(self, block: np.ndarray) -> None:
        with self._lock:
            self._blocks.append(block)

    def start(self) -> None:
        if self.is_recording:
            return
        self._blocks = []
        self._view.subscribe(self._on_block)
        self.is_recording = True

    def _detach(self) -> list[np.ndarray]:
        self._view.unsubscribe(self._on_block)
        self.is_recording = False
        with self._lock:
            blocks, self._blocks = self._blocks, []
        return blocks

    async def stop(self) -> AudioClip:
        if not self.is_recording:
            raise InvalidState("AudioRecorder is not recording")

        blocks = self._detach()
        samples = np.concatenate(blocks) if blocks else np.zeros(0, dtype=np.float32)
        sample_rate = self._view.sample_rate or 16000
        data = await asyncio.to_thread(_encode_wav, samples, sample_rate)
        return AudioClip(data=data, duration_sec=round(samples.size / float(sample_rate), 2))

    async def discard(self) -> None:
        if self.is_recording:
            self._detach()


def _encode_wav(samples: np.ndarray, sample_rate: int) -> bytes:
    sf = require_capture_module("soundfile")
    buffer = BytesIO()
    sf.write(buffer, samples, sample_rate, format="WAV", subtype="PCM_16")
    return buffer.getvalue()


class VideoRecorder:
    """Continuous session recording written frame by frame with OpenCV."""

    def __init__(self, view: StreamView, path: Path):
        self._view = view
        self.path = Path(path)
        self._writer = None
        self._task: asyncio.Task | None = None
        self.is_recording = False
        self.frames_written = 0

    def start(self) -> None:
        if self.is_recording:
            logger.warning("VideoRecorder is already recording")
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.is_recording = True
        self._task = asyncio.get_running_loop().create_task(self._record_loop())
        logger.info("VideoRecorder started | path=%s", self.path)

    def _write(self, frame) -> None:
        cv2 = require_capture_module("cv2")
        if self._writer is None:
            height, width = frame.shape[:2]
            fourcc = cv2.VideoWriter_fourcc(*"mp4v")
            self._writer = cv2.VideoWriter(str(self.path), fourcc, self._view.fps or 20.0, (width, height))
        self._writer.write(frame)
        self.frames_written += 1

    async def _record_loop(self) -> None:
        while self.is_recording:
            frame = await asyncio.to_thread(self._view.read)
            if frame is None:
                await asyncio.sleep(0.05)
                continue
            self._write(frame)

    async def stop(self) -> Path | None:
        """Finalizes the file; None when the camera never delivered a frame."""
        if not self.is_recording:
            raise InvalidState("VideoRecorder is not recording")

        self.is_recording = False
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

        if self._writer is not None:
            self._writer.release()
            self._writer = None
        logger.info("VideoRecorder stopped | frames=%s", self.frames_written)
        if self.frames_written == 0:
            return None
        return self.path


class MediaDevices:
    """Opens local devices and builds the consumers that read from them."""

    def __init__(self, camera_index: int = 0, sample_rate: int = 16000):
        self.camera_index = camera_index
        self.sample_rate = sample_rate

    def open_camera(self) -> OwnedStream:
        return CameraStream(self.camera_index)

    def open_microphone(self) -> OwnedStream:
        return MicrophoneStream(sample_rate=self.sample_rate)

    def analyser(self, view: StreamView) -> AudioAnalyser:
        return AudioAnalyser(view)

    def audio_recorder(self, view: StreamView) -> AudioRecorder:
        return AudioRecorder(view)

    def video_recorder(self, view: StreamView, path: Path) -> VideoRecorder:
        return VideoRecorder(view, path)

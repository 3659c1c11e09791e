import asyncio
import json
import logging

import numpy as np
import pytest

from core.logger import log_event
from interview_room.capture.media import AudioAnalyser, OwnedStream, VideoRecorder
from interview_room.capture.storage import VideoStorage
from interview_room.errors import InvalidState


class _CountingStream(OwnedStream):
    kind = "audio"

    def __init__(self, samples):
        super().__init__()
        self.samples = np.asarray(samples, dtype=np.float32)
        self.close_calls = 0
        self.sample_rate = 16000

    def _read(self):
        return self.samples

    def _close(self) -> None:
        self.close_calls += 1


def test_owned_stream_releases_once_and_views_go_dark():
    stream = _CountingStream([0.0, 0.5])
    view = stream.view()

    assert view.read() is not None
    assert view.sample_rate == 16000
    assert stream.release() is True
    assert stream.release() is False
    assert stream.close_calls == 1

    assert view.released is True
    assert view.read() is None
    with pytest.raises(InvalidState):
        stream.view()


def test_stream_view_cannot_release_the_device():
    view = _CountingStream([0.0]).view()
    assert not hasattr(view, "release")


def test_audio_analyser_maps_samples_to_byte_waveform():
    stream = _CountingStream([0.0, 0.5, -0.5, 1.0, -1.0])
    analyser = AudioAnalyser(stream.view())

    waveform = analyser.read_waveform()
    assert waveform.dtype == np.uint8
    assert waveform.tolist() == [128, 192, 64, 255, 0]

    analyser.disconnect()
    assert set(analyser.read_waveform().tolist()) == {128}


@pytest.mark.asyncio
async def test_video_recorder_without_frames_returns_nothing(tmp_path):
    camera = OwnedStream()
    recorder = VideoRecorder(camera.view(), tmp_path / "videos" / "recording.mp4")

    recorder.start()
    await asyncio.sleep(0)
    result = await recorder.stop()

    assert result is None
    assert recorder.frames_written == 0
    assert not recorder.path.exists()


def test_video_storage_persists_with_session_name(tmp_path):
    storage = VideoStorage(tmp_path / "videos")
    recording = storage.recording_path("s-42")
    recording.write_bytes(b"frames")

    final = storage.persist(recording, "s-42")

    assert final.parent == tmp_path / "videos"
    assert final.name.startswith("interview-s-42-")
    assert final.suffix == ".mp4"
    assert final.read_bytes() == b"frames"
    assert not recording.exists()


def test_log_event_redacts_free_text(caplog):
    with caplog.at_level(logging.INFO, logger="interview_room.events"):
        log_event("conversation", "turn_completed", "s-1", answer="secret answer", turn=2)

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload["session_id"] == "s-1"
    assert payload["answer"] == {"redacted": True, "length": 13}
    assert payload["turn"] == 2

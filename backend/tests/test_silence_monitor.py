import numpy as np
import pytest

from interview_room.capture.silence import SilenceMonitor, measure_volume


class _Clock:
    def __init__(self):
        self.now_ms = 0

    def __call__(self) -> float:
        return self.now_ms / 1000.0

    def advance_ms(self, ms: int) -> None:
        self.now_ms += ms


class _Source:
    def __init__(self):
        self.level = 0.0
        self.disconnected = False

    def read_waveform(self):
        return np.full(128, 128 + self.level, dtype=np.float32)

    def disconnect(self) -> None:
        self.disconnected = True


def _monitor(threshold_ms: int, clock: _Clock, source=None):
    fired = {"silence": [], "speech": 0}

    def _on_silence(duration_ms):
        fired["silence"].append(duration_ms)

    def _on_speech():
        fired["speech"] += 1

    monitor = SilenceMonitor(
        source or _Source(),
        _on_silence,
        _on_speech,
        silence_threshold_ms=threshold_ms,
        volume_threshold=10.0,
        poll_interval_sec=3600.0,
        clock=clock,
    )
    return monitor, fired


def test_measure_volume_is_mean_distance_from_midpoint():
    assert measure_volume(np.full(64, 128, dtype=np.uint8)) == 0.0
    assert measure_volume(np.array([0, 255], dtype=np.uint8)) == pytest.approx(127.5)
    assert measure_volume([]) == 0.0


@pytest.mark.asyncio
async def test_silence_fires_once_per_threshold_interval_not_per_tick():
    clock = _Clock()
    monitor, fired = _monitor(1000, clock)
    monitor.start()

    for _ in range(35):
        clock.advance_ms(100)
        monitor.process_volume(0.0)

    monitor.stop()
    assert len(fired["silence"]) == 3
    assert all(duration >= 1000 for duration in fired["silence"])
    assert fired["speech"] == 0


@pytest.mark.asyncio
async def test_speech_resets_countdown_to_full_threshold():
    clock = _Clock()
    monitor, fired = _monitor(10000, clock)
    monitor.start()

    for _ in range(50):
        clock.advance_ms(100)
        monitor.process_volume(2.0)
    assert monitor.is_silent is True
    assert monitor.remaining_seconds() == 6

    clock.advance_ms(100)
    monitor.process_volume(40.0)

    assert fired["speech"] == 1
    assert fired["silence"] == []
    assert monitor.is_silent is False
    assert monitor.remaining_seconds() == 10
    monitor.stop()


@pytest.mark.asyncio
async def test_reset_starts_a_fresh_window():
    clock = _Clock()
    monitor, fired = _monitor(1000, clock)
    monitor.start()

    monitor.process_volume(0.0)
    clock.advance_ms(900)
    monitor.reset()
    clock.advance_ms(200)
    monitor.process_volume(0.0)
    clock.advance_ms(200)
    monitor.process_volume(0.0)

    assert fired["silence"] == []
    monitor.stop()


@pytest.mark.asyncio
async def test_nothing_fires_after_stop_and_source_is_disconnected():
    clock = _Clock()
    source = _Source()
    monitor, fired = _monitor(1000, clock, source)
    monitor.start()
    assert monitor.is_running is True

    monitor.process_volume(0.0)
    monitor.stop()
    monitor.stop()

    clock.advance_ms(5000)
    monitor.process_volume(0.0)
    monitor.poll_once()
    monitor.process_volume(50.0)

    assert monitor.is_running is False
    assert source.disconnected is True
    assert fired == {"silence": [], "speech": 0}
    assert monitor.remaining_seconds() == 1


@pytest.mark.asyncio
async def test_poll_once_reads_the_source():
    clock = _Clock()
    source = _Source()
    monitor, fired = _monitor(1000, clock, source)
    monitor.start()

    monitor.poll_once()
    clock.advance_ms(1000)
    monitor.poll_once()
    assert len(fired["silence"]) == 1

    source.level = 60.0
    clock.advance_ms(10)
    monitor.poll_once()
    assert fired["speech"] == 1
    monitor.stop()

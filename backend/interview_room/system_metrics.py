import threading
import time
from typing import Any


_lock = threading.Lock()
_started_at = time.time()
_metrics: dict[str, float] = {
    "sessions_created": 0.0,
    "sessions_terminated": 0.0,
    "sessions_evicted": 0.0,
    "answers_submitted": 0.0,
    "audio_answers_submitted": 0.0,
    "answers_rejected_conflict": 0.0,
    "upstream_failures": 0.0,
    "speech_requests": 0.0,
    "generation_latency_total_ms": 0.0,
    "generation_latency_samples": 0.0,
}


def increment_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        _metrics[key] = float(_metrics.get(key, 0.0)) + float(amount)


def set_metric(name: str, value: float) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        _metrics[key] = max(0.0, float(value))


def observe_generation_latency_ms(value_ms: float) -> None:
    latency = max(0.0, float(value_ms or 0.0))
    with _lock:
        _metrics["generation_latency_total_ms"] = float(_metrics.get("generation_latency_total_ms", 0.0)) + latency
        _metrics["generation_latency_samples"] = float(_metrics.get("generation_latency_samples", 0.0)) + 1.0


def get_metrics_snapshot() -> dict[str, Any]:
    with _lock:
        snapshot = dict(_metrics)

    samples = snapshot.get("generation_latency_samples", 0.0)
    snapshot["generation_latency_avg_ms"] = (
        round(snapshot.get("generation_latency_total_ms", 0.0) / samples, 2) if samples else 0.0
    )
    snapshot["uptime_sec"] = round(time.time() - _started_at, 2)
    return snapshot


def reset_metrics() -> None:
    with _lock:
        for key in list(_metrics.keys()):
            _metrics[key] = 0.0

"""In-process counters and latency observations.

Metric keys are the metric name plus its sorted labels, e.g.
``api_http_requests_total{method=POST,path=/upload}``.
"""
import logging
import threading
from collections import defaultdict
from typing import Any, Dict

logger = logging.getLogger("api.metrics")

_lock = threading.Lock()
_counters: Dict[str, float] = defaultdict(float)
_latencies: Dict[str, Dict[str, float]] = {}


def _key(name: str, labels: Dict[str, Any]) -> str:
    if not labels:
        return name
    rendered = ",".join(f"{k}={labels[k]}" for k in sorted(labels))
    return f"{name}{{{rendered}}}"


def incr(name: str, amount: float = 1, **labels: Any) -> None:
    key = _key(name, labels)
    with _lock:
        _counters[key] += amount
    logger.debug("metric_incr %s amount=%s", key, amount)


def observe_ms(name: str, value_ms: float, **labels: Any) -> None:
    key = _key(name, labels)
    with _lock:
        stats = _latencies.setdefault(key, {"count": 0, "sum_ms": 0.0, "max_ms": 0.0})
        stats["count"] += 1
        stats["sum_ms"] += float(value_ms)
        stats["max_ms"] = max(stats["max_ms"], float(value_ms))


def snapshot() -> dict:
    with _lock:
        return {
            "counters": dict(_counters),
            "latencies": {k: dict(v) for k, v in _latencies.items()},
        }


def reset() -> None:
    with _lock:
        _counters.clear()
        _latencies.clear()

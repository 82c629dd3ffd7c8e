import json
import logging
from datetime import datetime, timezone
from typing import Any

from utils.request_id import get_request_id

logger = logging.getLogger("api.stage")

STAGE_EVENTS = {"STARTED", "COMPLETED", "FAILED"}


def _norm(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


def log_stage(
    *,
    job_id: str,
    stage: str,
    event: str,
    bitrate: str | None = None,
    filename: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    event = event.upper()
    if event not in STAGE_EVENTS:
        raise ValueError(f"Unknown stage event: {event}")

    payload = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "job_id": job_id,
        "stage": stage,
        "event": event,
    }

    request_id = get_request_id()
    if request_id:
        payload["request_id"] = request_id
    if bitrate:
        payload["bitrate"] = bitrate
    if filename:
        payload["filename"] = filename
    if error:
        payload["error"] = error

    for key, value in extra.items():
        norm = _norm(value)
        if norm is not None:
            payload[key] = norm

    msg = json.dumps(payload, ensure_ascii=False)
    if error or event == "FAILED":
        logger.error("stage_event %s", msg)
    else:
        logger.info("stage_event %s", msg)

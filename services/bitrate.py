# User value: keeps caller-chosen bitrates to a known preset list so ffmpeg never sees arbitrary arguments.
import logging

from fastapi import HTTPException

import config
from utils.metrics import incr

logger = logging.getLogger("api.upload")


def allowed_bitrates() -> list[str]:
    return list(config.ALLOWED_BITRATES)


# User value: rejects a bad bitrate before any upload bytes are read, so mistakes fail fast.
def validate_bitrate(bitrate: str | None) -> str:
    value = bitrate or ""
    allowed = allowed_bitrates()
    if not value:
        incr("api_upload_rejected_total", reason="missing_bitrate")
        logger.warning("upload_validation_failed missing_bitrate")
        raise HTTPException(status_code=400, detail=f"Missing bitrate; expected one of: {', '.join(allowed)}")
    if value not in allowed:
        incr("api_upload_rejected_total", reason="invalid_bitrate")
        logger.warning("upload_validation_failed invalid_bitrate bitrate=%s", value[:32])
        raise HTTPException(status_code=400, detail=f"Invalid bitrate; expected one of: {', '.join(allowed)}")
    logger.info("upload_bitrate_accepted bitrate=%s", value)
    return value

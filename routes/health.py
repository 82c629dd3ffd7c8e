import os
import shutil

from fastapi import APIRouter

import config
from schemas.responses import HealthResponse

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthResponse)
def health():
    writable = os.path.isdir(config.UPLOADS_DIR) and os.access(config.UPLOADS_DIR, os.W_OK)
    ffmpeg = shutil.which(config.FFMPEG_BIN)
    return HealthResponse(
        status="OK" if writable and ffmpeg else "DEGRADED",
        uploads_dir_writable=writable,
        ffmpeg=ffmpeg,
    )

from pydantic import BaseModel
from typing import Literal, Optional


class HealthResponse(BaseModel):
    status: Literal["OK", "DEGRADED"]
    uploads_dir_writable: bool
    ffmpeg: Optional[str] = None

from pydantic import BaseModel, Field


class StoredInput(BaseModel):
    # The uploaded file as persisted under UPLOADS_DIR for one request.
    job_id: str
    path: str
    original_filename: str
    content_type: str | None = None
    size_bytes: int = Field(default=0, ge=0)


class TranscodeJob(BaseModel):
    job_id: str
    input_path: str
    output_path: str
    bitrate: str
    original_filename: str = ""


class TranscodeResult(BaseModel):
    returncode: int
    stderr: str = ""
    duration_ms: float = Field(default=0.0, ge=0.0)

# User value: accepts exactly one media file per request so every upload maps to one transcoded result.
import logging

from fastapi import HTTPException, Request
from starlette.datastructures import UploadFile

from schemas.transcode import StoredInput
from services.temp_storage import StorageError, store_upload
from utils.metrics import incr
from utils.stage_logging import log_stage

logger = logging.getLogger("api.upload")

SINGLE_FILE_MESSAGE = "Only single-file uploads"
NO_FILE_MESSAGE = "No file part in upload"
DEFAULT_FILENAME = "upload"


def _field_length(value: str) -> int:
    return len(value.encode("utf-8", errors="replace"))


# User value: picks the one file part out of the form and ignores plain fields without failing the upload.
def select_single_file(items) -> tuple[str, UploadFile]:
    selected = None
    file_count = 0
    for field_name, value in items:
        if not isinstance(value, UploadFile):
            logger.info("upload_field_discarded field=%s length=%s", field_name, _field_length(value))
            continue

        file_count += 1
        if file_count == 2:
            incr("api_upload_rejected_total", reason="multiple_files")
            logger.warning("upload_validation_failed multiple_files field=%s filename=%s", field_name, value.filename)
            raise HTTPException(status_code=400, detail=SINGLE_FILE_MESSAGE)
        selected = (field_name, value)

    if selected is None:
        incr("api_upload_rejected_total", reason="no_file")
        logger.warning("upload_validation_failed no_file")
        raise HTTPException(status_code=400, detail=NO_FILE_MESSAGE)
    return selected


async def ingest_single_upload(request: Request, *, job_id: str, bitrate: str | None = None) -> StoredInput:
    """Parse the whole multipart body, then persist its single file part.

    Every part is parsed before anything is written, so a request carrying a
    second file is rejected with nothing left behind in the uploads directory.
    """
    form = await request.form()
    try:
        field_name, part = select_single_file(form.multi_items())
        filename = part.filename or DEFAULT_FILENAME

        log_stage(
            job_id=job_id,
            stage="INPUT_STORED",
            event="STARTED",
            bitrate=bitrate,
            filename=filename,
            field=field_name,
            content_type=part.content_type,
        )
        try:
            stored = await store_upload(
                job_id=job_id,
                filename=filename,
                content_type=part.content_type,
                file_obj=part.file,
            )
        except StorageError as exc:
            log_stage(
                job_id=job_id,
                stage="INPUT_STORED",
                event="FAILED",
                bitrate=bitrate,
                filename=filename,
                error=f"{exc.__class__.__name__}: {exc.__cause__ or exc}",
            )
            raise HTTPException(status_code=500, detail=exc.message) from exc
    finally:
        await form.close()

    logger.info(
        "upload_file_received field=%s filename=%s content_type=%s size_bytes=%s",
        field_name,
        stored.original_filename,
        stored.content_type,
        stored.size_bytes,
    )
    log_stage(
        job_id=job_id,
        stage="INPUT_STORED",
        event="COMPLETED",
        bitrate=bitrate,
        filename=stored.original_filename,
        input_size_bytes=stored.size_bytes,
    )
    return stored

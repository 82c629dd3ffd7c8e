import logging
import mimetypes
import os
import re
import unicodedata

from fastapi import HTTPException
from fastapi.responses import Response
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool

import config
from schemas.transcode import TranscodeJob
from services.temp_storage import read_all, remove_file
from utils.stage_logging import log_stage

logger = logging.getLogger("api.upload")

READ_FAILED_MESSAGE = "Could not read transcoded output"


def make_download_filename(original_filename: str, prefix: str | None = None) -> str:
    base = os.path.basename((original_filename or "").replace("\\", "/"))
    base = unicodedata.normalize("NFKC", base)
    base = re.sub(r"[^A-Za-z0-9._-]+", "_", base).strip("._")
    if not base:
        base = "output"
    return f"{prefix if prefix is not None else config.OUTPUT_PREFIX}{base}"


def guess_media_type(path: str) -> str:
    media_type, _ = mimetypes.guess_type(path)
    return media_type or "application/octet-stream"


async def build_result_response(job: TranscodeJob) -> Response:
    """Read the whole ffmpeg output and hand it back as the response body.

    The output file is removed once the body has been sent.
    """
    log_stage(job_id=job.job_id, stage="OUTPUT_READ", event="STARTED", bitrate=job.bitrate, filename=job.original_filename)
    try:
        body = await run_in_threadpool(read_all, job.output_path)
    except OSError as exc:
        log_stage(
            job_id=job.job_id,
            stage="OUTPUT_READ",
            event="FAILED",
            bitrate=job.bitrate,
            filename=job.original_filename,
            error=f"{exc.__class__.__name__}: {exc}",
        )
        remove_file(job.output_path)
        raise HTTPException(status_code=500, detail=READ_FAILED_MESSAGE) from exc

    log_stage(
        job_id=job.job_id,
        stage="OUTPUT_READ",
        event="COMPLETED",
        bitrate=job.bitrate,
        filename=job.original_filename,
        output_size_bytes=len(body),
    )
    download_name = make_download_filename(job.original_filename)
    return Response(
        content=body,
        status_code=200,
        media_type=guess_media_type(job.output_path),
        headers={"Content-Disposition": f'attachment; filename="{download_name}"'},
        background=BackgroundTask(remove_file, job.output_path),
    )

# routes/upload.py
import logging
import time

from fastapi import APIRouter, HTTPException, Query, Request

from schemas.transcode import TranscodeJob
from services.bitrate import validate_bitrate
from services.multipart_ingest import ingest_single_upload
from services.result_streamer import build_result_response
from services.temp_storage import output_path_for, schedule_removal
from services.transcoder import TranscodeError, TranscodeTimeoutError, run_transcode
from utils.metrics import incr, observe_ms
from utils.request_id import new_job_id
from utils.stage_logging import log_stage

router = APIRouter()
logger = logging.getLogger("api.upload")


@router.post("/upload")
async def upload(request: Request, bitrate: str | None = Query(default=None)):
    # Validated before the body is touched.
    bitrate = validate_bitrate(bitrate)
    job_id = new_job_id()

    log_stage(job_id=job_id, stage="UPLOAD_REQUEST", event="STARTED", bitrate=bitrate)
    stored = await ingest_single_upload(request, job_id=job_id, bitrate=bitrate)

    job = TranscodeJob(
        job_id=job_id,
        input_path=stored.path,
        output_path=output_path_for(stored.path),
        bitrate=bitrate,
        original_filename=stored.original_filename,
    )

    log_stage(job_id=job_id, stage="FFMPEG_RUN", event="STARTED", bitrate=bitrate, filename=job.original_filename)
    started = time.perf_counter()
    try:
        result = await run_transcode(job)
    except TranscodeError as exc:
        status_code = 504 if isinstance(exc, TranscodeTimeoutError) else 500
        reason = exc.__class__.__name__
        log_stage(
            job_id=job_id,
            stage="FFMPEG_RUN",
            event="FAILED",
            bitrate=bitrate,
            filename=job.original_filename,
            error=reason,
            status_code=status_code,
        )
        incr("api_transcode_failed_total", reason=reason, bitrate=bitrate)
        # ffmpeg may leave a partial output behind
        schedule_removal(job.output_path)
        raise HTTPException(status_code=status_code, detail=exc.message) from exc
    finally:
        observe_ms("api_transcode_latency_ms", (time.perf_counter() - started) * 1000.0, bitrate=bitrate)
        schedule_removal(stored.path)
        log_stage(job_id=job_id, stage="INPUT_CLEANUP", event="STARTED", filename=job.original_filename)

    log_stage(
        job_id=job_id,
        stage="FFMPEG_RUN",
        event="COMPLETED",
        bitrate=bitrate,
        filename=job.original_filename,
        duration_ms=round(result.duration_ms, 1),
    )

    response = await build_result_response(job)
    incr("api_transcode_completed_total", bitrate=bitrate)
    log_stage(
        job_id=job_id,
        stage="UPLOAD_REQUEST",
        event="COMPLETED",
        bitrate=bitrate,
        filename=job.original_filename,
        input_size_bytes=stored.size_bytes,
    )
    return response

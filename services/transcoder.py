import asyncio
import logging
import time

import config
from schemas.transcode import TranscodeJob, TranscodeResult

logger = logging.getLogger("api.transcoder")

TERMINATE_GRACE_SEC = 5.0
KILL_GRACE_SEC = 1.0


class TranscodeError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TranscodeSpawnError(TranscodeError):
    """ffmpeg could not be started or waited on."""


class TranscodeFailedError(TranscodeError):
    """ffmpeg ran and exited non-zero; ``stderr`` holds its diagnostics."""

    def __init__(self, returncode: int, stderr: str):
        super().__init__(f"Error in `ffmpeg`: {stderr}")
        self.returncode = returncode
        self.stderr = stderr


class TranscodeTimeoutError(TranscodeError):
    def __init__(self, timeout_sec: float):
        super().__init__(f"Error in `ffmpeg`: timed out after {timeout_sec:g} seconds")
        self.timeout_sec = timeout_sec


def build_ffmpeg_args(job: TranscodeJob, *, ffmpeg_bin: str | None = None, audio_bitrate: str | None = None) -> list[str]:
    return [
        ffmpeg_bin or config.FFMPEG_BIN,
        "-y",
        "-threads",
        "0",
        "-i",
        job.input_path,
        "-b:v",
        job.bitrate,
        "-b:a",
        audio_bitrate or config.AUDIO_BITRATE,
        job.output_path,
    ]


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(proc.wait(), timeout=TERMINATE_GRACE_SEC)
    except asyncio.TimeoutError:
        logger.warning("ffmpeg_terminate_ignored pid=%s; killing", proc.pid)
        try:
            proc.kill()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(proc.wait(), timeout=KILL_GRACE_SEC)
        except asyncio.TimeoutError:
            logger.error("ffmpeg_kill_unconfirmed pid=%s", proc.pid)


async def run_transcode(job: TranscodeJob, *, timeout_sec: float | None = None, ffmpeg_bin: str | None = None) -> TranscodeResult:
    """Run ffmpeg for ``job`` and wait for it, bounded by ``timeout_sec``.

    The argument vector goes straight to exec; no shell is involved, so
    nothing in the job can be interpreted as shell syntax.
    """
    timeout = float(timeout_sec if timeout_sec is not None else config.FFMPEG_TIMEOUT_SEC)
    args = build_ffmpeg_args(job, ffmpeg_bin=ffmpeg_bin)
    logger.info("ffmpeg_starting job_id=%s args=%s", job.job_id, args)

    started = time.perf_counter()
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        logger.error("ffmpeg_spawn_failed job_id=%s error=%s: %s", job.job_id, exc.__class__.__name__, exc)
        raise TranscodeSpawnError(f"Error in `ffmpeg`: {exc}") from exc

    try:
        _, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error("ffmpeg_timed_out job_id=%s pid=%s timeout_sec=%s", job.job_id, proc.pid, timeout)
        await _terminate(proc)
        raise TranscodeTimeoutError(timeout)
    except asyncio.CancelledError:
        logger.warning("ffmpeg_cancelled job_id=%s pid=%s", job.job_id, proc.pid)
        await _terminate(proc)
        raise
    except OSError as exc:
        await _terminate(proc)
        raise TranscodeSpawnError(f"Error in `ffmpeg`: {exc}") from exc

    duration_ms = (time.perf_counter() - started) * 1000.0
    stderr_text = (stderr or b"").decode("utf-8", errors="replace")
    if proc.returncode != 0:
        logger.error(
            "ffmpeg_failed job_id=%s returncode=%s duration_ms=%.1f stderr_tail=%s",
            job.job_id,
            proc.returncode,
            duration_ms,
            stderr_text[-500:],
        )
        raise TranscodeFailedError(proc.returncode, stderr_text)

    logger.info("ffmpeg_completed job_id=%s duration_ms=%.1f", job.job_id, duration_ms)
    return TranscodeResult(returncode=proc.returncode, stderr=stderr_text, duration_ms=duration_ms)

import asyncio
import logging
import os
import re
import unicodedata
from typing import BinaryIO

from starlette.concurrency import run_in_threadpool

import config
from schemas.transcode import StoredInput

logger = logging.getLogger("api.storage")

WRITE_BUFFER_BYTES = 64 * 1024
COPY_CHUNK_BYTES = 1024 * 1024
MAX_EXTENSION_CHARS = 16

# strong refs so pending removals are not garbage collected mid-flight
_pending_removals: set = set()


class StorageError(Exception):
    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.message = message
        self.path = path


def safe_extension(filename: str | None) -> str:
    """Extension of ``filename`` reduced to lowercase ASCII alphanumerics.

    ffmpeg picks the container from the extension, so it is the only part of
    the caller's file name that reaches the filesystem.
    """
    base = os.path.basename((filename or "").replace("\\", "/"))
    _, ext = os.path.splitext(base)
    ext = unicodedata.normalize("NFKC", ext).lower()
    ext = re.sub(r"[^a-z0-9]+", "", ext)[:MAX_EXTENSION_CHARS]
    return f".{ext}" if ext else ""


def input_path_for(job_id: str, filename: str | None, uploads_dir: str | None = None) -> str:
    root = uploads_dir or config.UPLOADS_DIR
    return os.path.join(root, f"{job_id}{safe_extension(filename)}")


def output_path_for(input_path: str, prefix: str | None = None) -> str:
    head, tail = os.path.split(input_path)
    return os.path.join(head, f"{prefix if prefix is not None else config.OUTPUT_PREFIX}{tail}")


def _copy_to_path(src: BinaryIO, path: str) -> int:
    src.seek(0)
    written = 0
    with open(path, "wb", buffering=WRITE_BUFFER_BYTES) as out:
        while True:
            chunk = src.read(COPY_CHUNK_BYTES)
            if not chunk:
                break
            out.write(chunk)
            written += len(chunk)
    return written


async def store_upload(
    *,
    job_id: str,
    filename: str,
    content_type: str | None,
    file_obj: BinaryIO,
    uploads_dir: str | None = None,
) -> StoredInput:
    path = input_path_for(job_id, filename, uploads_dir)
    try:
        size_bytes = await run_in_threadpool(_copy_to_path, file_obj, path)
    except OSError as exc:
        logger.error("input_write_failed path=%s error=%s: %s", path, exc.__class__.__name__, exc)
        remove_file(path)
        raise StorageError("Could not save incoming file", path) from exc

    return StoredInput(
        job_id=job_id,
        path=path,
        original_filename=filename,
        content_type=content_type,
        size_bytes=size_bytes,
    )


def read_all(path: str) -> bytes:
    with open(path, "rb") as fh:
        return fh.read()


def remove_file(path: str) -> bool:
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    except OSError as exc:
        logger.warning("file_remove_failed path=%s error=%s: %s", path, exc.__class__.__name__, exc)
        return False
    logger.debug("file_removed path=%s", path)
    return True


def schedule_removal(path: str) -> asyncio.Future:
    """Remove ``path`` on the default executor without waiting for it."""
    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(None, remove_file, path)
    _pending_removals.add(future)
    future.add_done_callback(_pending_removals.discard)
    return future

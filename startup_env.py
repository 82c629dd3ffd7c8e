import logging
import os
import re
import shutil
from typing import List

import config

logger = logging.getLogger("api.startup")

_BITRATE_RE = re.compile(r"^[0-9]+(\.[0-9]+)?[KkMm]?$")


def _is_blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def _validate_port(value: str | None, errors: List[str]) -> None:
    if _is_blank(value):
        errors.append("PORT is required")
        return
    try:
        port = int(str(value).strip())
    except ValueError:
        errors.append(f"PORT must be an integer: {value}")
        return
    if not 0 < port < 65536:
        errors.append(f"PORT must be between 1 and 65535: {port}")


def _validate_uploads_dir(path: str, errors: List[str]) -> None:
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as exc:
        errors.append(f"UPLOADS_DIR cannot be created: {path} ({exc.__class__.__name__}: {exc})")
        return
    if not os.access(path, os.W_OK):
        errors.append(f"UPLOADS_DIR is not writable: {path}")


def _validate_index_asset(path: str, errors: List[str]) -> None:
    if not os.path.isfile(path):
        errors.append(f"INDEX_HTML_PATH does not exist: {path}")
    elif not os.access(path, os.R_OK):
        errors.append(f"INDEX_HTML_PATH is not readable: {path}")


def _validate_bitrates(values: List[str], errors: List[str]) -> None:
    if not values:
        errors.append("ALLOWED_BITRATES must contain at least one bitrate")
        return
    for value in values:
        if not _BITRATE_RE.match(value):
            errors.append(f"ALLOWED_BITRATES entry is not a bitrate: {value}")


def _raise_if_errors(errors: List[str]) -> None:
    if errors:
        for err in errors:
            logger.error("startup_env_invalid %s", err)
        raise RuntimeError("Startup env validation failed: " + "; ".join(errors))


def validate_port_env() -> int:
    errors: List[str] = []
    raw = os.getenv("PORT")
    _validate_port(raw, errors)
    _raise_if_errors(errors)
    return int(str(raw).strip())


def validate_startup_env() -> None:
    errors: List[str] = []
    warnings: List[str] = []

    _validate_uploads_dir(config.UPLOADS_DIR, errors)
    _validate_index_asset(config.INDEX_HTML_PATH, errors)
    _validate_bitrates(config.ALLOWED_BITRATES, errors)
    _validate_bitrates([config.AUDIO_BITRATE], errors)

    if config.MAX_UPLOAD_BYTES <= 0:
        errors.append("MAX_UPLOAD_BYTES must be positive")
    if config.FFMPEG_TIMEOUT_SEC <= 0:
        errors.append("FFMPEG_TIMEOUT_SEC must be positive")
    if _is_blank(config.OUTPUT_PREFIX):
        errors.append("OUTPUT_PREFIX must not be blank")

    _raise_if_errors(errors)

    if config.FFMPEG_BIN and not os.path.isabs(config.FFMPEG_BIN):
        if shutil.which(config.FFMPEG_BIN) is None:
            warnings.append(f"FFMPEG_BIN not found on PATH: {config.FFMPEG_BIN}; uploads will fail until it is installed")

    for warning in warnings:
        logger.warning("startup_env_warning %s", warning)

    logger.info(
        "startup_env_validated uploads_dir=%s index_html=%s allowed_bitrates=%s max_upload_bytes=%s",
        config.UPLOADS_DIR,
        config.INDEX_HTML_PATH,
        config.ALLOWED_BITRATES,
        config.MAX_UPLOAD_BYTES,
    )

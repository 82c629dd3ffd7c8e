import os
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def _csv(raw: str) -> list[str]:
    seen = set()
    ordered = []
    for item in (x.strip() for x in raw.split(",")):
        if item and item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


HOST = os.environ.get("HOST", "0.0.0.0")
UPLOADS_DIR = os.environ.get("UPLOADS_DIR", os.path.join(BASE_DIR, "uploads"))
INDEX_HTML_PATH = os.environ.get("INDEX_HTML_PATH", os.path.join(BASE_DIR, "static", "index.html"))

MAX_UPLOAD_BYTES = int(os.environ.get("MAX_UPLOAD_BYTES", str(512 * 1024 * 1024)))
ALLOWED_BITRATES = _csv(os.environ.get("ALLOWED_BITRATES", "200K,1M"))
AUDIO_BITRATE = os.environ.get("AUDIO_BITRATE", "44K")
OUTPUT_PREFIX = os.environ.get("OUTPUT_PREFIX", "1M.")

FFMPEG_BIN = os.environ.get("FFMPEG_BIN", "ffmpeg")
FFMPEG_TIMEOUT_SEC = float(os.environ.get("FFMPEG_TIMEOUT_SEC", "600"))

CORS_ALLOW_ORIGINS = _csv(os.environ.get("CORS_ALLOW_ORIGINS", ""))

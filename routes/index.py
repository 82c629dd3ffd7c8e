import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import HTMLResponse
from starlette.concurrency import run_in_threadpool

import config
from services.temp_storage import read_all

router = APIRouter()
logger = logging.getLogger("api.index")


@router.get("/", response_class=HTMLResponse)
async def upload_form():
    # Read on every request so the form can be edited without a restart.
    try:
        content = await run_in_threadpool(read_all, config.INDEX_HTML_PATH)
    except OSError as exc:
        logger.error("index_read_failed path=%s error=%s: %s", config.INDEX_HTML_PATH, exc.__class__.__name__, exc)
        raise HTTPException(status_code=500, detail="Upload form unavailable") from exc
    return HTMLResponse(content=content)

# app.py
import os
import logging
import time

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from utils.json_logging import configure_json_logging
from utils.metrics import incr, observe_ms

# Load env before importing modules that read os.getenv at import time.
load_dotenv(os.path.join(os.path.dirname(__file__), ".env"))


def configure_logging() -> None:
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    configure_json_logging(service="transcode-upload-api", level=level)


configure_logging()
logger = logging.getLogger("api.error")

import config
from startup_env import validate_startup_env
from utils.body_limit import BodySizeLimitMiddleware
from utils.request_id import REQUEST_ID_HEADER, bind_request_id, get_request_id, normalize_request_id, unbind_request_id

validate_startup_env()

from routes.index import router as index_router
from routes.upload import router as upload_router
from routes.health import router as health_router

app = FastAPI(title="Transcode Upload API")

# Added first so it sits inside the request id middleware and 413s carry the header.
app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=config.MAX_UPLOAD_BYTES)

UNMATCHED_PATH = "<unmatched>"


def _metric_path(request: Request) -> str:
    # Route template, never the raw URL, so metric keys stay bounded.
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_PATH


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id, token = bind_request_id(request.headers.get(REQUEST_ID_HEADER))
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = int(getattr(response, "status_code", 500))
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    finally:
        duration_ms = (time.perf_counter() - started) * 1000.0
        method = request.method.upper()
        path = _metric_path(request)
        status_class = f"{status_code // 100}xx"
        incr("api_http_requests_total", method=method, path=path, status_class=status_class, status_code=status_code)
        observe_ms("api_http_request_latency_ms", duration_ms, method=method, path=path, status_class=status_class)
        unbind_request_id(token)


def _extract_error_message(detail) -> str:
    if isinstance(detail, dict):
        return str(detail.get("error_message") or detail.get("message") or detail.get("detail") or detail)
    if isinstance(detail, list):
        return "; ".join(str(x) for x in detail)
    return str(detail)


def _current_request_id(request: Request) -> str:
    return get_request_id() or normalize_request_id(request.headers.get(REQUEST_ID_HEADER))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    message = "Request validation failed: " + "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}" for err in exc.errors()
    )
    logger.warning(
        "request_failed_validation status=422 path=%s request_id=%s",
        request.url.path,
        _current_request_id(request),
    )
    return PlainTextResponse(message, status_code=422)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = _extract_error_message(exc.detail)
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "request_failed status=%s path=%s request_id=%s error_message=%s",
        exc.status_code,
        request.url.path,
        _current_request_id(request),
        message[:500],
    )
    return PlainTextResponse(message, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "request_failed_unhandled path=%s request_id=%s error=%s: %s",
        request.url.path,
        _current_request_id(request),
        exc.__class__.__name__,
        exc,
    )
    return PlainTextResponse("Internal server error", status_code=500)


CORS_ALLOW_ORIGINS = config.CORS_ALLOW_ORIGINS
if CORS_ALLOW_ORIGINS:
    logger.info("cors_configured allow_origins=%s", CORS_ALLOW_ORIGINS)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ALLOW_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

app.include_router(index_router)
app.include_router(health_router)
app.include_router(upload_router)

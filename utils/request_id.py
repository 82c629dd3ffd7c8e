import re
import uuid
from contextvars import ContextVar, Token

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_CTX: ContextVar[str | None] = ContextVar("request_id", default=None)
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{8,128}$")


def normalize_request_id(raw: str | None) -> str:
    """Keep a caller-supplied id when it is well formed, otherwise mint one."""
    value = (raw or "").strip()
    if _REQUEST_ID_RE.match(value):
        return value
    return f"req-{uuid.uuid4().hex}"


def bind_request_id(raw: str | None) -> tuple[str, Token]:
    request_id = normalize_request_id(raw)
    return request_id, _REQUEST_ID_CTX.set(request_id)


def unbind_request_id(token: Token) -> None:
    _REQUEST_ID_CTX.reset(token)


def get_request_id() -> str | None:
    return _REQUEST_ID_CTX.get()


def new_job_id() -> str:
    return uuid.uuid4().hex

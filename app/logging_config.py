"""
Logging for the API process and the Celery worker.

Every record carries the request / tenant / domain it was emitted for, taken
from context variables set by RequestLoggingMiddleware (API) or
``log_context`` (worker tasks). Production and staging emit one JSON object
per line; other environments get a single readable line.

Verification tokens, bearer tokens and owner e-mail addresses are masked
before anything is written.
"""

import json
import logging
import re
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator

from app.config import settings

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")
tenant_id_ctx: ContextVar[str] = ContextVar("tenant_id", default="-")
user_id_ctx: ContextVar[str] = ContextVar("user_id", default="-")
domain_ctx: ContextVar[str] = ContextVar("domain", default="-")

_CONTEXT_VARS = {
    "request_id": request_id_ctx,
    "tenant_id": tenant_id_ctx,
    "user_id": user_id_ctx,
    "domain": domain_ctx,
}


def generate_request_id() -> str:
    return str(uuid.uuid4())[:8]


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Bind context fields (request_id, tenant_id, user_id, domain) for a block."""
    tokens = []
    for name, value in fields.items():
        tokens.append((_CONTEXT_VARS[name], _CONTEXT_VARS[name].set(str(value))))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


# ── Masking ──

_EMAIL_PATTERN = re.compile(r'([a-zA-Z0-9._%+-]+)@([a-zA-Z0-9.-]+\.[a-zA-Z]{2,})')

_REDACT_PATTERNS = [
    # <prefix>-verification=<token> as published in the TXT record
    (re.compile(r'(-verification=)[A-Za-z0-9_\-]+'), r'\1***'),
    (re.compile(r'(Bearer\s+)[A-Za-z0-9._\-]+', re.I), r'\1***'),
    (re.compile(r'("?(?:token|secret|password|api_key|verification_token)"?\s*[:=]\s*)"[^"]*"', re.I), r'\1"***"'),
]


def _mask_email(match: re.Match) -> str:
    local, host = match.group(1), match.group(2)
    if len(local) <= 2:
        return f"{local[0]}***@{host}"
    return f"{local[0]}***{local[-1]}@{host}"


def mask_pii(text: str) -> str:
    for pattern, replacement in _REDACT_PATTERNS:
        text = pattern.sub(replacement, text)
    return _EMAIL_PATTERN.sub(_mask_email, text)


# ── Formatters ──

class ContextFilter(logging.Filter):
    """Copies the current context variables onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name, var in _CONTEXT_VARS.items():
            setattr(record, name, var.get())
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S.000Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": mask_pii(record.getMessage()),
        }
        for name, var in _CONTEXT_VARS.items():
            entry[name] = getattr(record, name, None) or var.get()
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        entry = {k: v for k, v in entry.items() if v and v != "-"}
        return json.dumps(entry, ensure_ascii=False, default=str)


class HumanFormatter(logging.Formatter):
    FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-28s | [%(request_id)s %(domain)s] %(message)s"

    def __init__(self):
        super().__init__(self.FORMAT, datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        for name, var in _CONTEXT_VARS.items():
            if not hasattr(record, name):
                setattr(record, name, var.get())
        return mask_pii(super().format(record))


def setup_logging() -> None:
    """Install the stdout handler on the root logger. Safe to call twice."""
    structured = settings.is_production or settings.is_staging
    level = settings.LOG_LEVEL or ("INFO" if structured else "DEBUG")

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JSONFormatter() if structured else HumanFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())

    for name in ("uvicorn.access", "httpcore", "httpx", "asyncio", "celery.beat"):
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)

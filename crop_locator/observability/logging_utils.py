from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator, Optional
from uuid import uuid4


_TRACE_ID_CTX: ContextVar[str] = ContextVar("trace_id", default="unknown")
_LOGGER = logging.getLogger("crop_locator")
_INITIALIZED = False


def init_logging(*, log_path: Optional[str] = None, level: str = "INFO") -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    if log_path:
        path = Path(log_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = RotatingFileHandler(
            path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
        )
    else:
        handler = logging.StreamHandler()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        handlers=[handler],
    )
    _LOGGER.setLevel(getattr(logging, level.upper(), logging.INFO))
    _INITIALIZED = True


def get_trace_id() -> str:
    return _TRACE_ID_CTX.get() or "unknown"


@contextmanager
def trace_context(trace_id: Optional[str] = None) -> Iterator[str]:
    """Bind a trace id to every event logged inside the block."""
    trace_id = trace_id or uuid4().hex
    token = _TRACE_ID_CTX.set(trace_id)
    try:
        yield trace_id
    finally:
        _TRACE_ID_CTX.reset(token)


def summarize_text(text: str, limit: int = 400) -> str:
    if not text:
        return ""
    text = str(text)
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."


def _build_payload(event: str, fields: Dict[str, Any]) -> str:
    payload = {"event": event, "trace_id": get_trace_id(), **fields}
    return json.dumps(payload, ensure_ascii=False, default=str)


def log_event(event: str, **fields: Any) -> None:
    _LOGGER.info(_build_payload(event, fields))


def log_warning(event: str, **fields: Any) -> None:
    _LOGGER.warning(_build_payload(event, fields))


def log_error(event: str, **fields: Any) -> None:
    _LOGGER.error(_build_payload(event, fields))

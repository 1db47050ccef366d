import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import Request, Response

from .config import settings
from .metrics import inc_http_request, observe_latency_ms


logger = logging.getLogger("sharedrop")
logger.setLevel(settings.LOG_LEVEL)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setLevel(settings.LOG_LEVEL)
    logger.addHandler(handler)


def iso_now() -> str:
    # e.g. 2025-01-15T10:00:00.123Z
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def log_event(level: int, event: str, **fields) -> None:
    """Emit a single-line JSON log record on the ``sharedrop`` logger."""
    record = {
        "ts": iso_now(),
        "level": logging.getLevelName(level).lower(),
        "event": event,
    }
    record.update(fields)
    logger.log(level, json.dumps(record, default=str))


async def logging_middleware(request: Request, call_next: Callable) -> Response:
    request_id = str(uuid.uuid4())
    start = time.perf_counter()

    # store request_id in state so handlers can use it if needed
    request.state.request_id = request_id
    request.state.log_extra = {}

    response: Response
    try:
        response = await call_next(request)
    except Exception:
        latency_ms = (time.perf_counter() - start) * 1000.0
        inc_http_request(request.url.path, 500)
        observe_latency_ms(latency_ms)
        log = {
            "ts": iso_now(),
            "level": "error",
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": 500,
            "latency_ms": round(latency_ms, 2),
        }
        logger.error(json.dumps(log))
        raise

    latency_ms = (time.perf_counter() - start) * 1000.0
    status_code = response.status_code

    # metrics
    inc_http_request(request.url.path, status_code)
    observe_latency_ms(latency_ms)

    log = {
        "ts": iso_now(),
        "level": "info",
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "status": status_code,
        "latency_ms": round(latency_ms, 2),
    }

    # add extra fields from handlers (e.g. message id, file count)
    if isinstance(getattr(request.state, "log_extra", None), dict):
        log.update(request.state.log_extra)

    logger.info(json.dumps(log))
    return response

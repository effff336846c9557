"""Logging configuration for the FastAPI application.

One JSON object per log line. The request middleware stores the current
request ID in a context variable and ``RequestIdFilter`` stamps it onto every
record emitted while that request is served, so cache, ranking and store log
lines can be tied back to the HTTP call that caused them.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Attributes every LogRecord has; anything else arrived through ``extra``
_STANDARD_ATTRS = set(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class RequestIdFilter(logging.Filter):
    """Adds ``request_id`` to records that do not already carry one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = _request_id.get()
        return True


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects.

    Fields passed through ``extra`` are copied to the top level. Values that
    are not JSON-serializable (numpy scalars, datetimes) are rendered with str().
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        payload.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and value is not None
        )

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def setup_logging(log_level: str = "INFO") -> None:
    """Send all logging to stdout as JSON.

    Args:
        log_level: Root level name, e.g. "INFO" or "DEBUG".
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(log_level.upper())

    for name in ("uvicorn", "uvicorn.access", "sqlalchemy.engine"):
        logging.getLogger(name).setLevel(logging.WARNING)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assigns a request ID and logs the outcome of every HTTP request.

    An incoming ``X-Request-ID`` header is reused; otherwise a new ID is
    generated. The ID is echoed back in the response headers.
    """

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = _request_id.set(request_id)
        logger = logging.getLogger("src.api.requests")
        start_time = time.time()

        fields = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
        }

        try:
            response = await call_next(request)
        except Exception:
            fields["duration_ms"] = round((time.time() - start_time) * 1000, 2)
            logger.exception("Unhandled error while serving request", extra=fields)
            raise
        finally:
            _request_id.reset(token)

        fields["status_code"] = response.status_code
        fields["duration_ms"] = round((time.time() - start_time) * 1000, 2)
        logger.info(f"{request.method} {request.url.path} -> {response.status_code}", extra=fields)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response

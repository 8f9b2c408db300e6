"""
Structured logging for the CuraGo triage service.

Every record is one JSON object on stderr carrying the service name and
version, the request ID of the HTTP request being served (if any) and the
keyword fields passed to ``StructuredLogger``. Access logs go through
``log_request``; failed requests are logged there with the error attached.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any, Optional
from contextvars import ContextVar
import uuid

from . import __version__

SERVICE_NAME = "curago"

# Polling and docs traffic is not access-logged unless the request failed.
QUIET_PATHS = frozenset({"/health", "/docs", "/openapi.json"})

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind ``request_id`` (or a fresh 8-character ID) to the current context."""
    if not request_id:
        request_id = str(uuid.uuid4())[:8]
    request_id_var.set(request_id)
    return request_id


class JSONFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message, service fields, data."""

    def __init__(self, service_name: str = SERVICE_NAME, version: str = __version__):
        super().__init__()
        self.service_name = service_name
        self.version = version

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "version": self.version,
        }

        request_id = get_request_id()
        if request_id:
            entry["request_id"] = request_id

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        data = getattr(record, "extra_data", None)
        if data:
            entry["data"] = data

        # Symptom lists and pydantic values are not always JSON-native.
        return json.dumps(entry, default=str)


class StructuredLogger:
    """``logging.Logger`` wrapper taking structured fields as keyword arguments."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _log(self, level: int, message: str, exc_info=None, **kwargs: Any) -> None:
        extra = {"extra_data": kwargs} if kwargs else {}
        self.logger.log(level, message, exc_info=exc_info, extra=extra)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, **kwargs)

    def exception(self, message: str, exc: BaseException, **kwargs: Any) -> None:
        """Log ``exc`` with its traceback at ERROR level.

        Works outside an ``except`` block, e.g. from a FastAPI exception handler,
        because the traceback is taken from ``exc`` itself.
        """
        kwargs["exception_type"] = type(exc).__name__
        kwargs.setdefault("error", str(exc))
        self._log(logging.ERROR, message, exc_info=(type(exc), exc, exc.__traceback__), **kwargs)


def setup_logging(level: int = logging.INFO, use_json: bool = True) -> None:
    """Route all logging to stderr, as JSON unless ``use_json`` is False."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if use_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))

    root_logger.addHandler(handler)

    # Gemini calls are logged by the gateway itself.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("google_genai").setLevel(logging.WARNING)


def log_request(
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    client_ip: Optional[str] = None,
    error: Optional[str] = None
) -> None:
    """Access log for one HTTP request; failures are logged at ERROR with ``error``."""
    if path in QUIET_PATHS and error is None:
        return

    logger = StructuredLogger("curago.http")
    data = {
        "method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": round(duration_ms, 2),
    }
    if client_ip:
        data["client_ip"] = _mask_ip(client_ip)

    if error:
        data["error"] = error
        logger.error(f"{method} {path} {status_code}", **data)
    else:
        logger.info(f"{method} {path} {status_code}", **data)


def _mask_ip(ip: str) -> str:
    """Keep the first two octets of an IPv4 address; mask everything else."""
    parts = ip.split(".")
    if len(parts) == 4:
        return f"{parts[0]}.{parts[1]}.xxx.xxx"
    return "xxx"

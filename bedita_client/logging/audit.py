"""JSON audit trail for the BEdita API client.

Events are emitted on the ``bedita_client.audit`` logger: one line per
HTTP call (method, url, status, latency), interceptor add/remove at DEBUG,
and session events (login, renewal, logout, renewal failure). All lines
written during one ``request()`` share a request id, including the token
renewal and the replay triggered by a 401.

``setup_logging()`` is opt-in. Without it events propagate to whatever
handlers the host application configured.
"""

import json
import logging
import sys
import time
import uuid
from datetime import datetime, timezone
from contextvars import ContextVar

from bedita_client.config.settings import get_settings

AUDIT_LOGGER = "bedita_client.audit"

# Set by the outermost request() and inherited by nested calls
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class JSONFormatter(logging.Formatter):
    """Renders a record as one JSON object per line.

    Fields passed to ``audit()`` are merged in, but never replace the
    timestamp, level, logger, message or request id.
    """

    def __init__(self, client_name: str | None = None):
        super().__init__()
        self.client_name = client_name

    def format(self, record: logging.LogRecord) -> str:
        entry = dict(getattr(record, "audit_data", None) or {})
        entry.update(
            timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            level=record.levelname,
            logger=record.name,
            message=record.getMessage(),
            request_id=request_id_var.get(""),
        )
        if self.client_name:
            entry.setdefault("client", self.client_name)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging() -> None:
    """Send audit events to stdout, and to AUDIT_LOG_FILE when set."""
    settings = get_settings()

    logger = get_audit_logger()
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    logger.handlers.clear()

    formatter = JSONFormatter(client_name=settings.bedita_client_name)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.audit_log_file:
        handlers.append(logging.FileHandler(settings.audit_log_file))
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER)


def generate_request_id() -> str:
    return uuid.uuid4().hex[:12]


class RequestTimer:
    """Wall-clock latency of one HTTP round trip, in milliseconds."""

    def __init__(self):
        self.start_time: float = 0
        self.elapsed_ms: float = 0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.elapsed_ms = round((time.perf_counter() - self.start_time) * 1000, 2)


def audit(message: str, level: int = logging.INFO, exc_info: bool = False, **fields) -> None:
    """Emit an audit event with ``fields`` merged into the JSON line."""
    logger = get_audit_logger()
    if logger.isEnabledFor(level):
        logger.log(level, message, exc_info=exc_info, extra={"audit_data": fields})

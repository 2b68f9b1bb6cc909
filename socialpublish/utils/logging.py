"""
Structured logging for Social Publish.

Records carry the id of the HTTP request being served and the name of the
platform adapter running, so one broadcast can be followed across six
concurrent platform calls. Credentials are redacted before any handler
sees a record.
"""

import json
import logging
import re
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

DEFAULT_SERVICE_NAME = "socialpublish-api"

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
platform_var: ContextVar[Optional[str]] = ContextVar("platform", default=None)

# Credentials that must never reach the logs
SENSITIVE_PATTERNS: list[re.Pattern] = [
    re.compile(r'password["\']?\s*[:=]\s*["\']?[^\s,}&]+', re.IGNORECASE),
    re.compile(r'secret["\']?\s*[:=]\s*["\']?[\w-]+', re.IGNORECASE),
    re.compile(r'oauth_(?:token|verifier|signature)["\']?\s*[:=]\s*["\']?[^\s,}&"]+', re.IGNORECASE),
    re.compile(r'(?:access|refresh)_token["\']?\s*[:=]\s*["\']?[^\s,}&"]+', re.IGNORECASE),
    re.compile(r'accessJwt["\']?\s*[:=]\s*["\']?[^\s,}"]+'),
    re.compile(r'bearer\s+[\w.~+/=-]+', re.IGNORECASE),
    re.compile(r'authorization["\']?\s*[:=]\s*["\']?[^\s,}]+', re.IGNORECASE),
    re.compile(r'eyJ[\w-]+\.eyJ[\w-]+\.[\w-]+'),  # JWTs
]

REDACTED = "[REDACTED]"

# Attributes every LogRecord has; anything else came in through `extra=`
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
) | {"message", "asctime", "request_id", "platform"}


def redact_sensitive_data(message: str) -> str:
    """Replace credentials in a log message with [REDACTED]."""
    for pattern in SENSITIVE_PATTERNS:
        message = pattern.sub(REDACTED, message)
    return message


def get_request_id() -> Optional[str]:
    return request_id_var.get()


@contextmanager
def request_context(request_id: str) -> Iterator[None]:
    """Tag every record logged inside the block with `request_id`."""
    token = request_id_var.set(request_id)
    try:
        yield
    finally:
        request_id_var.reset(token)


class RequestContextFilter(logging.Filter):
    """Attach the current request id and platform to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.platform = platform_var.get() or "-"
        return True


class SensitiveDataFilter(logging.Filter):
    """Redact credentials from the message and its string arguments."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = redact_sensitive_data(str(record.msg))
        if record.args:
            record.args = tuple(
                redact_sensitive_data(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line, for log shippers.

    Fields: timestamp, level, logger, message, service, request_id and
    platform; `source` for errors, `exception` when there is a traceback
    and `extra` for anything passed through `extra=`.
    """

    def __init__(self, service_name: str = DEFAULT_SERVICE_NAME):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "request_id": getattr(record, "request_id", "-"),
            "platform": getattr(record, "platform", "-"),
        }
        if record.levelno >= logging.ERROR:
            data["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        extra = _extra_fields(record)
        if extra:
            data["extra"] = extra
        return json.dumps(data, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Readable single-line output for local development."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s [%(request_id).8s] [%(platform)s] %(name)s - %(message)s",
        )

    def format(self, record: logging.LogRecord) -> str:
        record.request_id = getattr(record, "request_id", "-")
        record.platform = getattr(record, "platform", "-")
        line = super().format(record)
        extra = _extra_fields(record)
        if extra:
            # Extras go before any traceback
            first, _, rest = line.partition("\n")
            line = f"{first} {extra}" + (f"\n{rest}" if rest else "")
        return line


def setup_logging(
    service_name: str = DEFAULT_SERVICE_NAME,
    level: str = "INFO",
    json_format: bool = False,
) -> logging.Logger:
    """
    Configure the root logger.

    Called once at startup, and again once settings are loaded.

    Args:
        service_name: Reported in every JSON record.
        level: Level name such as "INFO".
        json_format: Emit JSON lines instead of console output.

    Returns:
        The root logger.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JSONFormatter(service_name) if json_format else ConsoleFormatter())
    root_logger.addHandler(handler)

    # httpx logs every request URL, query strings included
    for name in ("httpx", "httpcore", "uvicorn.access", "asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


class Timer:
    """
    Context manager that logs how long a block took.

    Usage:
        with Timer("mastodon.create_post", logger):
            ...
    """

    def __init__(
        self,
        name: str,
        logger: Optional[logging.Logger] = None,
        log_level: int = logging.DEBUG,
    ):
        self.name = name
        self.logger = logger
        self.log_level = log_level
        self.elapsed_ms: float = 0
        self._start = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000
        if self.logger:
            self.logger.log(
                self.log_level,
                f"{self.name} completed in {self.elapsed_ms:.2f}ms",
                extra={
                    "operation": self.name,
                    "duration_ms": round(self.elapsed_ms, 2),
                    "success": exc_type is None,
                },
            )

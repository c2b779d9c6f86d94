"""
Logging for the EduConnect API.

Development gets readable lines on stdout; production gets one JSON object
per line so the hosting platform can index them. Every line written while
a request is being served carries that request's id.
"""

import json
import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_DIR = Path(__file__).parent.parent.parent / "logs"

MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(request_id)s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Third-party loggers that are too chatty at DEBUG
_QUIET_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "apscheduler": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "anthropic": logging.WARNING,
    "python_http_client": logging.WARNING,
}


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


class RequestContextFilter(logging.Filter):
    """Copy the current request id onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.lineno}",
        }
        request_id = getattr(record, "request_id", "-")
        if request_id != "-":
            data["request_id"] = request_id
        http = getattr(record, "http", None)
        if http:
            data["http"] = http
        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }
        return json.dumps(data, ensure_ascii=False, default=str)


def build_formatter(environment: str) -> logging.Formatter:
    if environment == "production":
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT, DATE_FORMAT)


def get_file_handler(filename: str, formatter: logging.Formatter, level: int = logging.DEBUG) -> RotatingFileHandler:
    LOG_DIR.mkdir(exist_ok=True)
    handler = RotatingFileHandler(
        LOG_DIR / filename,
        maxBytes=MAX_LOG_SIZE,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())
    return handler


def get_console_handler(formatter: logging.Formatter, level: int = logging.INFO) -> logging.StreamHandler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())
    return handler


def setup_logging(
    app_name: str = "educonnect",
    log_level: str = "",
    environment: str = "development",
    enable_console: bool = True,
    enable_file: bool = True,
) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        app_name: Used for log file naming
        log_level: Minimum console level. If empty, DEBUG in development
                   and WARNING in production
        environment: "production" switches every handler to JSON lines
        enable_console: Whether to log to stdout
        enable_file: Whether to write rotating log files

    Returns:
        Configured root logger
    """
    if not log_level:
        log_level = "WARNING" if environment == "production" else "DEBUG"
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    formatter = build_formatter(environment)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # handlers filter
    root_logger.handlers.clear()

    if enable_console:
        root_logger.addHandler(get_console_handler(formatter, numeric_level))
    if enable_file:
        root_logger.addHandler(get_file_handler(f"{app_name}.log", formatter, logging.DEBUG))
        root_logger.addHandler(get_file_handler(f"{app_name}_error.log", formatter, logging.ERROR))

    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class RequestLogger:
    """Writes one line per served request, with the status driving the level."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def level_for(self, path: str, status_code: int) -> int:
        if status_code >= 500:
            return logging.ERROR
        if status_code >= 400:
            return logging.WARNING
        # Health checks and static files
        if path == "/health" or path.startswith("/uploads/"):
            return logging.DEBUG
        return logging.INFO

    def log_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
        client_ip: str | None = None,
        user_id: int | None = None,
    ) -> None:
        line = f"{method} {path} -> {status_code} ({duration_ms:.2f}ms)"
        if client_ip:
            line += f" ip={client_ip}"
        if user_id:
            line += f" user={user_id}"
        self.logger.log(
            self.level_for(path, status_code),
            line,
            extra={"http": {
                "method": method,
                "path": path,
                "status": status_code,
                "duration_ms": round(duration_ms, 2),
                "user_id": user_id,
            }},
        )

"""Logging configuration."""

from __future__ import annotations

import json
import linecache
import logging
import sys
import traceback
from datetime import UTC, datetime
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from structlog.types import EventDict

ExcInfo = tuple[type[BaseException] | None, BaseException | None, TracebackType | None]

TracebackFrame = dict[str, str | int | None]

ExceptionDetails = dict[
    str,
    None | str | list[TracebackFrame],
]

APP_LOG_FILE = "gamevault.json.log"
DB_LOG_FILE = "gamevault.db.json.log"
HTTP_LOG_FILE = "gamevault.http.json.log"

# Chatty third-party loggers that get their own files instead of the app log
DB_LOGGERS = (
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.engine.Engine",
    "sqlalchemy.pool",
    "sqlalchemy.dialects",
    "aiosqlite",
)
HTTP_LOGGERS = (
    "httpx",
    "httpcore",
    "httpcore.connection",
    "httpcore.http11",
)


def format_exception_for_json(exc_info: ExcInfo | None) -> ExceptionDetails:
    """Turn exc_info into structured fields for JSON logs.

    Returns an empty dict when there is no exception. Otherwise the result has
    exception_type, exception_message, exception_module and, when a traceback
    is present, traceback_frames plus the full traceback_text.
    """
    if exc_info is None or exc_info == (None, None, None):
        return {}

    exc_type, exc_value, exc_tb = exc_info

    details: ExceptionDetails = {
        "exception_type": exc_type.__name__ if exc_type else None,
        "exception_message": str(exc_value) if exc_value else None,
        "exception_module": exc_type.__module__ if exc_type else None,
    }

    if exc_tb is None:
        return details

    frames: list[TracebackFrame] = []
    current_tb: TracebackType | None = exc_tb
    while current_tb is not None:
        code = current_tb.tb_frame.f_code
        frame: TracebackFrame = {
            "filename": code.co_filename,
            "lineno": current_tb.tb_lineno,
            "function": code.co_name,
        }
        source_line = linecache.getline(code.co_filename, current_tb.tb_lineno)
        if source_line:
            frame["source_line"] = source_line.strip()
        frames.append(frame)
        current_tb = current_tb.tb_next

    details["traceback_frames"] = frames
    details["traceback_text"] = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
    return details


def exception_processor(
    logger: structlog.BoundLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """structlog processor that replaces exc_info with structured exception fields."""
    exc_info = event_dict.pop("exc_info", None)
    if exc_info is True:
        exc_info = sys.exc_info()
    elif isinstance(exc_info, BaseException):
        exc_info = (type(exc_info), exc_info, exc_info.__traceback__)

    if exc_info and exc_info != (None, None, None):
        details = format_exception_for_json(exc_info)  # type: ignore[arg-type]
        if details:
            event_dict["exception"] = details
            exc_type = details.get("exception_type")
            exc_msg = details.get("exception_message")
            if exc_type and exc_msg:
                event_dict["exception_summary"] = f"{exc_type}: {exc_msg}"

    return event_dict


class JSONFormatter(logging.Formatter):
    """JSON formatter for stdlib loggers (database and HTTP client logs)."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_data["exception"] = format_exception_for_json(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False)


def _route_loggers(names: tuple[str, ...], handler: logging.Handler, level: int) -> None:
    """Send the named loggers only to handler, at level, without propagation."""
    for name in names:
        target = logging.getLogger(name)
        for existing in target.handlers[:]:
            existing.close()
        target.handlers.clear()
        target.setLevel(level)
        target.propagate = False
        target.addHandler(handler)


def setup_logging(debug: bool = False, logs_dir: Path | None = None) -> None:
    """Setup structured logging with structlog.

    Application events go to stdout, or to a JSON file only when logs_dir is
    given. SQLAlchemy/aiosqlite and httpx/httpcore output is routed to separate
    JSON files (WARNING level; database at INFO in debug mode).

    Args:
        debug: Enable debug logging and the pretty console renderer
        logs_dir: Optional directory for JSON log files
    """
    log_level = logging.DEBUG if debug else logging.INFO
    db_log_level = logging.INFO if debug else logging.WARNING

    app_handlers: list[logging.Handler] = []
    db_file_handler: logging.Handler | None = None
    http_file_handler: logging.Handler | None = None

    if logs_dir:
        try:
            logs_dir.mkdir(parents=True, exist_ok=True)
            app_file_handler = logging.FileHandler(logs_dir / APP_LOG_FILE, encoding="utf-8")
            app_file_handler.setLevel(log_level)
            app_handlers.append(app_file_handler)

            db_file_handler = logging.FileHandler(logs_dir / DB_LOG_FILE, encoding="utf-8")
            db_file_handler.setFormatter(JSONFormatter())

            http_file_handler = logging.FileHandler(logs_dir / HTTP_LOG_FILE, encoding="utf-8")
            http_file_handler.setFormatter(JSONFormatter())
        except OSError as e:
            sys.stderr.write(f"Warning: Failed to setup file logging: {e}\n")
            app_handlers.clear()

    file_logging = bool(app_handlers)
    if not file_logging:
        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setLevel(log_level)
        app_handlers.append(stdout_handler)

    logging.basicConfig(
        format="%(message)s",
        level=log_level,
        handlers=app_handlers,
        force=True,
    )

    if db_file_handler:
        _route_loggers(DB_LOGGERS, db_file_handler, db_log_level)
    if http_file_handler:
        _route_loggers(HTTP_LOGGERS, http_file_handler, logging.WARNING)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        exception_processor,
    ]

    # Files are always JSON; the console is pretty only in debug mode
    if debug and not file_logging:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.getLogger().setLevel(log_level)

    structlog.get_logger("gamevault.logging").info(
        "Logging configured",
        level=logging.getLevelName(log_level),
        debug=debug,
        app_log_file=str(logs_dir / APP_LOG_FILE) if file_logging and logs_dir else None,
        db_log_level=logging.getLevelName(db_log_level),
        db_loggers=list(DB_LOGGERS) if db_file_handler else [],
        http_loggers=list(HTTP_LOGGERS) if http_file_handler else [],
    )

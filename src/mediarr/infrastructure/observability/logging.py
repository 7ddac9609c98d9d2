"""Structured logging configuration with JSON formatting and operation IDs."""

import contextvars
import logging
import sys
import traceback
import uuid
from pathlib import Path
from typing import Any

from pythonjsonlogger.json import JsonFormatter

# Hey future me, every import run and every scan gets its own operation ID! A single download
# import logs a dozen lines (probe, per-file moves, cleanup) and scans of different root
# folders can interleave. Grep for the operation_id and you get exactly one run. contextvars
# are asyncio-safe: each task sees its own value, so concurrent imports don't clobber each
# other. Default "" covers startup logs and anything outside a run.
operation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "operation_id", default=""
)


def get_operation_id() -> str:
    """Get the current operation ID ("" outside an import/scan)."""
    return operation_id_var.get()


# Call this ONCE at the top of an import/scan, not per file - a new ID per file defeats
# the point. Prefix keeps "import-..." and "scan-..." apart when grepping.
def set_operation_id(operation_id: str | None = None, prefix: str = "op") -> str:
    """Set the operation ID in context.

    Args:
        operation_id: ID to set. If None, a short random one is generated.
        prefix: Prefix for generated IDs ("import", "scan", ...)

    Returns:
        The operation ID that was set
    """
    if operation_id is None:
        operation_id = f"{prefix}-{uuid.uuid4().hex[:12]}"
    operation_id_var.set(operation_id)
    return operation_id


class OperationIdFilter(logging.Filter):
    """Add operation_id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.operation_id = get_operation_id()
        return True


class CompactExceptionFormatter(logging.Formatter):
    """Human-readable formatter with compact exception chains.

    Only frames from our own package are shown, root cause first:

    WARNING │ mediarr...music_import_service:212 │ [import-3f2a] 02 - Song.flac: disk full
    ╰─► OSError: [Errno 28] No space left on device
        File "filesystem.py", line 301, in move_file
          shutil.copy2(source, destination)
    """

    def format(self, record: logging.LogRecord) -> str:
        operation_id = getattr(record, "operation_id", "")
        record.operation_tag = f"[{operation_id}] " if operation_id else ""
        return super().format(record)

    def formatException(self, ei: Any) -> str:
        _exc_type, exc_value, _exc_tb = ei
        if exc_value is None:
            return ""

        chain: list[BaseException] = []
        current: BaseException | None = exc_value
        while current is not None and current not in chain:
            chain.append(current)
            current = current.__cause__ or current.__context__
        chain.reverse()

        lines: list[str] = []
        for exc in chain:
            lines.append(f"╰─► {exc.__class__.__name__}: {exc}")
            if not exc.__traceback__:
                continue
            for frame in traceback.extract_tb(exc.__traceback__):
                if "/site-packages/" in frame.filename or "mediarr" not in frame.filename:
                    continue
                lines.append(
                    f'    File "{Path(frame.filename).name}", line {frame.lineno}, in {frame.name}'
                )
                if frame.line:
                    lines.append(f"      {frame.line.strip()}")
        return "\n".join(lines)


class CustomJsonFormatter(JsonFormatter):
    """JSON formatter with level/logger/location and the operation ID."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["line"] = record.lineno

        operation_id = getattr(record, "operation_id", "")
        if operation_id:
            log_record["operation_id"] = operation_id

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)


def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    app_name: str = "mediarr",
) -> None:
    """Configure root logging. Call once at startup.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format for logs (recommended for production)
        app_name: Application name to include in the startup log line
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(OperationIdFilter())

    formatter: logging.Formatter
    if json_format:
        formatter = CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = CompactExceptionFormatter(
            fmt=(
                "%(asctime)s │ %(levelname)-7s │ %(name)s:%(lineno)d │ "
                "%(operation_tag)s%(message)s"
            ),
            datefmt="%H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # HTTP clients log every request at INFO - way louder than our own code
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={"app_name": app_name, "log_level": log_level, "json_format": json_format},
    )

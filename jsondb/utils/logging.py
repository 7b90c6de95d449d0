"""Centralized logging configuration using Loguru with Pino-compatible output.

Usage:
    from jsondb.utils.logging import logger
    logger.info("Message")
    logger.debug("Debug message")  # Only shows if JSONDB_LOG_LEVEL=DEBUG

Environment Variables:
    JSONDB_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default: INFO)
    JSONDB_LOG_JSON: 0|1 (default: 0, human-readable)
    JSONDB_LOG_FILE: path to log file (optional)
    JSONDB_REQUEST_ID: correlation ID for cross-process tracing
"""

import json
import os
import sys
import uuid
from pathlib import Path

from loguru import logger

# Remove default handler
logger.remove()

# Pino-compatible numeric levels
PINO_LEVELS = {
    "TRACE": 10,
    "DEBUG": 20,
    "INFO": 30,
    "WARNING": 40,
    "ERROR": 50,
    "CRITICAL": 60,
}

_log_level = os.environ.get("JSONDB_LOG_LEVEL", "INFO").upper()
_json_mode = os.environ.get("JSONDB_LOG_JSON", "0") == "1"
_log_file = os.environ.get("JSONDB_LOG_FILE")
_request_id = os.environ.get("JSONDB_REQUEST_ID") or str(uuid.uuid4())


def _ndjson_line(record) -> str:
    """One Pino-shaped NDJSON line for a loguru record."""
    pino_log = {
        "level": PINO_LEVELS.get(record["level"].name, 30),
        "time": int(record["time"].timestamp() * 1000),
        "msg": record["message"],
        "pid": record["process"].id,
        "request_id": record["extra"].get("request_id", _request_id),
    }

    for key, value in record["extra"].items():
        if key != "request_id":
            pino_log[key] = value

    if record["exception"]:
        pino_log["err"] = {
            "type": record["exception"].type.__name__ if record["exception"].type else "Error",
            "message": str(record["exception"].value) if record["exception"].value else "",
        }
    return json.dumps(pino_log, default=str) + "\n"


def pino_compatible_sink(message):
    """Write log records to stdout as Pino-compatible NDJSON.

    {"level":30,"time":1715629847123,"msg":"...","pid":12345,"request_id":"..."}
    """
    # Never call logger.* inside a sink - causes infinite recursion
    sys.stdout.write(_ndjson_line(message.record))
    sys.stdout.flush()


_human_format = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}:{function}:{line}</cyan> - "
    "<level>{message}</level>"
)

if _json_mode:
    logger.add(pino_compatible_sink, level=_log_level, colorize=False)
else:
    logger.add(
        sys.stderr,
        level=_log_level,
        format=_human_format,
        colorize=None,  # Auto-detect: colors if TTY, plain if piped
    )

if _log_file:
    def _file_pino_sink(message):
        """Append Pino-format JSON to the configured log file."""
        with open(_log_file, "a", encoding="utf-8") as f:
            f.write(_ndjson_line(message.record))

    logger.add(_file_pino_sink, level="DEBUG")


def configure_file_logging(log_dir: Path, level: str = "DEBUG") -> int:
    """Add rotating file handler for persistent logs.

    Args:
        log_dir: Directory for log files
        level: Minimum log level for file output

    Returns:
        The loguru handler id, for logger.remove()
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "jsondb.log"

    return logger.add(
        log_file,
        rotation="10 MB",
        retention="7 days",
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
    )


__all__ = [
    "logger",
    "configure_file_logging",
    "pino_compatible_sink",
]

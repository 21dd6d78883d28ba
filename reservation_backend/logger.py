"""Application logging setup and request-scoped loggers."""

from __future__ import annotations

import contextvars
import datetime
import gzip
import json
import logging
import os
import shutil
import sys
import tempfile
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Union

LOGGER_NAME = "reservation_backend"

_MEGABYTE = 1024 * 1024
_DEFAULT_MAX_SIZE_MB = 100
_UNLIMITED_BACKUPS = 999
_SECONDS_PER_DAY = 24 * 60 * 60

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "err": logging.ERROR,
}

AnyLogger = Union[logging.Logger, logging.LoggerAdapter]


@dataclass
class RotationConfig:
    """Where the production log file lives and how it is rotated."""

    filename: str = ""
    max_size: int = 0
    max_backups: int = 0
    max_age: int = 0
    compress: bool = False


@dataclass
class LoggerConfig:
    """Environment, level and rotation settings for the application logger."""

    environment: str = ""
    level: str = ""
    rotation: RotationConfig = field(default_factory=RotationConfig)


def parse_level(level: str) -> int:
    """Map a level name to a logging level, defaulting to INFO."""
    return _LEVELS.get(level.lower(), logging.INFO)


def _level_name(levelno: int) -> str:
    if levelno >= logging.ERROR:
        return "ERROR"
    if levelno >= logging.WARNING:
        return "WARN"
    if levelno >= logging.INFO:
        return "INFO"
    return "DEBUG"


def _timestamp(record: logging.LogRecord) -> str:
    moment = datetime.datetime.fromtimestamp(record.created).astimezone()
    return moment.isoformat(timespec="milliseconds")


def _record_attrs(record: logging.LogRecord) -> dict[str, Any]:
    attrs = getattr(record, "attrs", None)
    return dict(attrs) if isinstance(attrs, dict) else {}


def _quote(value: Any) -> str:
    if isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value)
    if not text or any(c.isspace() or c in '"=' or not c.isprintable() for c in text):
        return json.dumps(text, ensure_ascii=False)
    return text


class _TextFormatter(logging.Formatter):
    """Formats records as key=value pairs."""

    def __init__(self, add_source: bool) -> None:
        super().__init__()
        self.add_source = add_source

    def format(self, record: logging.LogRecord) -> str:
        fields: list[tuple[str, Any]] = [
            ("time", _timestamp(record)),
            ("level", _level_name(record.levelno)),
        ]
        if self.add_source:
            fields.append(("source", f"{record.pathname}:{record.lineno}"))
        fields.append(("msg", record.getMessage()))
        fields.extend(_record_attrs(record).items())
        line = " ".join(f"{key}={_quote(value)}" for key, value in fields)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class _JsonFormatter(logging.Formatter):
    """Formats records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "time": _timestamp(record),
            "level": _level_name(record.levelno),
            "source": {
                "function": record.funcName,
                "file": record.pathname,
                "line": record.lineno,
            },
            "msg": record.getMessage(),
        }
        entry.update(_record_attrs(record))
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def _gzip_name(name: str) -> str:
    return name + ".gz"


def _gzip_rotate(source: str, dest: str) -> None:
    with open(source, "rb") as src, gzip.open(dest, "wb") as dst:
        shutil.copyfileobj(src, dst)
    os.remove(source)


def _default_log_path() -> str:
    program = Path(sys.argv[0]).name or LOGGER_NAME
    return os.path.join(tempfile.gettempdir(), f"{program}.log")


class _RotatingLogFile(RotatingFileHandler):
    """Size-rotated log file with optional compression and age-based pruning."""

    def __init__(self, rotation: RotationConfig) -> None:
        filename = rotation.filename or _default_log_path()
        Path(filename).parent.mkdir(parents=True, exist_ok=True)
        max_size = rotation.max_size if rotation.max_size > 0 else _DEFAULT_MAX_SIZE_MB
        backups = rotation.max_backups if rotation.max_backups > 0 else _UNLIMITED_BACKUPS
        super().__init__(
            filename,
            maxBytes=max_size * _MEGABYTE,
            backupCount=backups,
            encoding="utf-8",
            delay=True,
        )
        self.max_age = rotation.max_age
        if rotation.compress:
            self.namer = _gzip_name
            self.rotator = _gzip_rotate

    def doRollover(self) -> None:
        super().doRollover()
        self._remove_expired()

    def _remove_expired(self) -> None:
        if self.max_age <= 0:
            return
        cutoff = time.time() - self.max_age * _SECONDS_PER_DAY
        base = Path(self.baseFilename)
        for backup in base.parent.glob(base.name + ".*"):
            if backup.stat().st_mtime < cutoff:
                backup.unlink(missing_ok=True)


def _stdout_handler(formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    return handler


def init_logger(config: LoggerConfig) -> logging.Logger:
    """Configure the application logger for the given environment and return it."""
    level = parse_level(config.level)
    environment = config.environment.lower()

    if environment in ("development", "dev"):
        handlers = [_stdout_handler(_TextFormatter(add_source=True))]
    elif environment in ("production", "prod"):
        formatter = _JsonFormatter()
        file_handler = _RotatingLogFile(config.rotation)
        file_handler.setFormatter(formatter)
        handlers = [_stdout_handler(formatter), file_handler]
    else:
        level = logging.INFO
        handlers = [_stdout_handler(_TextFormatter(add_source=False))]

    logger = logging.getLogger(LOGGER_NAME)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False

    logger.info(
        "Logger successfully initialized",
        extra={"attrs": {"environment": config.environment}},
    )
    return logger


class _BoundLogger(logging.LoggerAdapter):
    """Logger that adds fixed attributes to every record."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        extra = dict(kwargs.get("extra") or {})
        attrs = {**(self.extra or {}), **extra.get("attrs", {})}
        extra["attrs"] = attrs
        kwargs["extra"] = extra
        return msg, kwargs


_current: contextvars.ContextVar[AnyLogger | None] = contextvars.ContextVar(
    "reservation_backend_logger", default=None
)


@contextmanager
def bind_logger(**attrs: Any) -> Iterator[logging.LoggerAdapter]:
    """Make a logger carrying ``attrs`` the current logger for the enclosed block."""
    bound = _BoundLogger(logging.getLogger(LOGGER_NAME), attrs)
    token = _current.set(bound)
    try:
        yield bound
    finally:
        _current.reset(token)


def current_logger() -> AnyLogger:
    """Return the logger bound to the current context, or the application logger."""
    bound = _current.get()
    return bound if bound is not None else logging.getLogger(LOGGER_NAME)
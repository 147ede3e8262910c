"""Structured logging to stdout and a size-rotated file."""

from __future__ import annotations

import gzip
import json
import logging
import os
import shutil
import sys
import uuid
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from wiretemplate.config import Config

REQUEST_ID_KEY = "request_id"
CORRELATION_ID_KEY = "correlation_id"
REQUEST_ID_HEADER = "X-Request-ID"
REQUEST_ID_LOCAL = "requestid"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}
_LEVEL_NAMES = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "FATAL",
}
_DEFAULT_MAX_SIZE_MB = 100
_BACKUP_TIME_FORMAT = "%Y-%m-%dT%H-%M-%S.%f"


def _format_ms(moment: datetime, pattern: str) -> str:
    return moment.strftime(pattern) + f"{moment.microsecond // 1000:03d}"


class _ZapFormatter(logging.Formatter):
    """Formats records as JSON objects or tab-separated console lines."""

    def __init__(self, encoding: str) -> None:
        super().__init__()
        self.console = encoding == "console"

    def format(self, record: logging.LogRecord) -> str:
        moment = datetime.fromtimestamp(record.created)
        ts = "[" + _format_ms(moment, "%Y-%m-%d %H:%M:%S.") + "]"
        level = "[" + _LEVEL_NAMES.get(record.levelno, record.levelname) + "]"
        path = Path(record.pathname)
        caller = f"[{path.parent.name}/{path.name}:{record.lineno}]"
        fields: dict[str, Any] = getattr(record, "fields", {})
        message = record.getMessage()
        stack = record.stack_info
        if self.console:
            parts = [ts, level, caller, message]
            if fields:
                parts.append(json.dumps(fields, ensure_ascii=False, default=str))
            line = "\t".join(parts)
            return f"{line}\n{stack}" if stack else line
        entry: dict[str, Any] = {"level": level, "ts": ts, "caller": caller, "msg": message}
        entry.update(fields)
        if stack:
            entry["stacktrace"] = stack
        return json.dumps(entry, ensure_ascii=False, default=str)


class _RollingFileHandler(logging.Handler):
    """Appends to a file, moving it to a timestamped backup once it grows too large."""

    def __init__(self, filename: str, max_size_mb: int, max_backups: int, max_age_days: int, compress: bool):
        super().__init__()
        self.path = Path(filename)
        self.max_bytes = (max_size_mb if max_size_mb > 0 else _DEFAULT_MAX_SIZE_MB) * 1024 * 1024
        self.max_backups = max_backups
        self.max_age_days = max_age_days
        self.compress = compress
        self._stream = None

    def _open(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._stream = self.path.open("a", encoding="utf-8")
        return self._stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            data = self.format(record) + "\n"
            size = self.path.stat().st_size if self.path.exists() else 0
            if size > 0 and size + len(data.encode("utf-8")) > self.max_bytes:
                self._rotate()
            stream = self._stream or self._open()
            stream.write(data)
            stream.flush()
        except Exception:
            self.handleError(record)

    def _backup_name(self, moment: datetime) -> Path:
        stamp = _format_ms(moment, "%Y-%m-%dT%H-%M-%S.")
        return self.path.with_name(f"{self.path.stem}-{stamp}{self.path.suffix}")

    def _rotate(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None
        moment = datetime.now(timezone.utc)
        target = self._backup_name(moment)
        while target.exists() or Path(f"{target}.gz").exists():
            moment += timedelta(milliseconds=1)
            target = self._backup_name(moment)
        os.replace(self.path, target)
        if self.compress:
            with target.open("rb") as source, gzip.open(f"{target}.gz", "wb") as sink:
                shutil.copyfileobj(source, sink)
            target.unlink()
        self._prune()

    def _backups(self) -> list[tuple[datetime, Path]]:
        prefix = f"{self.path.stem}-"
        found = []
        for candidate in self.path.parent.iterdir():
            name = candidate.name
            if name.endswith(".gz"):
                name = name[:-3]
            if not name.startswith(prefix) or not name.endswith(self.path.suffix):
                continue
            stamp = name[len(prefix):len(name) - len(self.path.suffix)]
            try:
                moment = datetime.strptime(stamp, _BACKUP_TIME_FORMAT).replace(tzinfo=timezone.utc)
            except ValueError:
                continue
            found.append((moment, candidate))
        return sorted(found, reverse=True)

    def _prune(self) -> None:
        backups = self._backups()
        doomed = []
        if self.max_backups > 0:
            doomed.extend(path for _, path in backups[self.max_backups:])
        if self.max_age_days > 0:
            cutoff = datetime.now(timezone.utc) - timedelta(days=self.max_age_days)
            doomed.extend(path for moment, path in backups if moment < cutoff)
        for path in set(doomed):
            path.unlink(missing_ok=True)

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None
        super().close()


class Logger:
    """A logger that attaches key/value fields to every record."""

    def __init__(self, base: logging.Logger, fields: Mapping[str, Any] | None = None, development: bool = False):
        self._base = base
        self.fields = dict(fields or {})
        self.development = development

    def with_context(self, ctx: Mapping[str, Any] | None, **kwargs: Any) -> Logger:
        """Return a logger that adds ``kwargs`` and the request ids found in ``ctx``."""
        fields = dict(kwargs)
        if ctx is not None:
            for key in (REQUEST_ID_KEY, CORRELATION_ID_KEY):
                value = ctx.get(key)
                if isinstance(value, str):
                    fields[key] = value
        if not fields:
            return self
        return Logger(self._base, {**self.fields, **fields}, self.development)

    def _log(self, level: int, msg: str, fields: Mapping[str, Any]) -> None:
        self._base.log(
            level,
            msg,
            extra={"fields": {**self.fields, **fields}},
            stack_info=level >= logging.ERROR,
            stacklevel=3,
        )

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, kwargs)

    def fatal(self, msg: str, **kwargs: Any) -> None:
        """Log at fatal level, then exit the process with status 1."""
        self._log(logging.CRITICAL, msg, kwargs)
        sys.exit(1)


def new_log(conf: Config) -> Logger:
    """Build a logger writing to stdout and to the configured log file."""
    settings = conf.log
    base = logging.Logger(f"wiretemplate.{uuid.uuid4().hex}")
    base.setLevel(_LEVELS.get(settings.log_level, logging.INFO))
    base.propagate = False
    formatter = _ZapFormatter(settings.log_encoding)
    handlers: list[logging.Handler] = [
        logging.StreamHandler(sys.stdout),
        _RollingFileHandler(
            settings.log_save_path + "/" + settings.log_file_name,
            settings.max_size,
            settings.max_backups,
            settings.max_age,
            settings.compress,
        ),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
        base.addHandler(handler)
    return Logger(base, development=conf.app.debug)


def _header(headers: Mapping[str, str], name: str) -> str:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return ""


def with_request(
    ctx: Mapping[str, Any] | None,
    headers: Mapping[str, str],
    request_locals: Mapping[str, Any],
) -> dict[str, Any]:
    """Return a copy of ``ctx`` holding the request and correlation ids of a request."""
    result = dict(ctx or {})
    request_id = _header(headers, REQUEST_ID_HEADER) or str(uuid.uuid4())
    result[REQUEST_ID_KEY] = request_id
    correlation_id = request_locals.get(REQUEST_ID_LOCAL)
    if correlation_id is not None and correlation_id != "":
        result[CORRELATION_ID_KEY] = correlation_id
    return result
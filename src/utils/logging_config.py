"""Logging setup shared by render_garden.py and any host embedding the engine.

The engine modules only ever call ``logging.getLogger(__name__)``; this
module decides where records go and how they look:
    - stderr console (aligned columns, ANSI level colours on a TTY)
    - optional log file, plain or JSON lines, optionally rotated
    - contextual key=value fields (app, garden, frame) carried by a
      contextvar and stamped onto every record
    - Python warnings and uncaught exceptions routed into logging

Public API:
    setup_logging(log_level="INFO", context={"app": "render_garden"})
    get_logger(name)
    push_context(garden="saves/garden.yaml") / pop_context(["garden"])
    with log_context(frame=12): ...
    install_excepthook()

Line formats:
    human: 2026-10-18T13:45:12.345Z | INFO     | app=render_garden | Garden restored
    json:  {"t": "2026-10-18T13:45:12.345+00:00", "lvl": "INFO", "name": "...", "msg": "...", "app": "render_garden"}

setup_logging() may be called repeatedly (tests, re-configuration from a
host); each call replaces the root handlers it finds.
"""

import contextvars
import json
import logging
import logging.handlers
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional


_context_var: contextvars.ContextVar = contextvars.ContextVar('garden_log_context', default={})

_configured = False

_LEVEL_COLORS = {
    'DEBUG': '\033[36m',
    'INFO': '\033[32m',
    'WARNING': '\033[33m',
    'ERROR': '\033[31m',
    'CRITICAL': '\033[35m',
}
_RESET = '\033[0m'


class ContextFormatter(logging.Formatter):
    """Render records with the current push_context() fields.

    Parameters
    ----------
    fmt_mode : str
        "human" or "json"
    use_color : bool
        Colour the level column (only honoured when stderr is a TTY)
    tz : str
        "UTC" or "local" timestamps
    """

    def __init__(self, fmt_mode: str = "human", use_color: bool = True, tz: str = "UTC"):
        super().__init__()
        if fmt_mode not in ("human", "json"):
            raise ValueError(f"fmt_mode must be 'human' or 'json', got {fmt_mode!r}")
        self.fmt_mode = fmt_mode
        self.use_color = use_color and sys.stderr.isatty()
        self.tz = tz

    def _timestamp(self, record: logging.LogRecord) -> datetime:
        if self.tz == "UTC":
            return datetime.fromtimestamp(record.created, tz=timezone.utc)
        return datetime.fromtimestamp(record.created)

    def format(self, record: logging.LogRecord) -> str:
        ts = self._timestamp(record)
        fields = _context_var.get()

        if self.fmt_mode == "json":
            payload = {'t': ts.isoformat(), 'lvl': record.levelname, 'name': record.name, 'msg': record.getMessage()}
            payload.update(fields)
            if record.exc_info:
                payload['exc'] = self.formatException(record.exc_info)
            return json.dumps(payload, default=str)

        level = f"{record.levelname:<8}"
        if self.use_color:
            level = _LEVEL_COLORS.get(record.levelname, '') + level + _RESET

        columns = [ts.strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z', level]
        if fields:
            columns.append(' '.join(f"{k}={v}" for k, v in fields.items()))
        columns.append(record.getMessage())

        line = ' | '.join(columns)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _create_file_handler(
    log_file: str,
    rotate: Optional[Dict[str, Any]],
    json_format: bool,
    tz: str
) -> logging.Handler:
    """File handler, rotated by size or time when ``rotate`` is given."""
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    mode = (rotate or {}).get('mode')
    if mode is None:
        handler = logging.FileHandler(log_file)
    elif mode == 'size':
        handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=rotate.get('max_bytes', 5_000_000),
            backupCount=rotate.get('backup_count', 3)
        )
    elif mode == 'time':
        handler = logging.handlers.TimedRotatingFileHandler(
            log_file,
            when=rotate.get('when', 'D'),
            interval=rotate.get('interval', 1),
            backupCount=rotate.get('backup_count', 7)
        )
    else:
        raise ValueError(f"rotate mode must be 'size' or 'time', got {mode!r}")

    handler.setFormatter(ContextFormatter("json" if json_format else "human", use_color=False, tz=tz))
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    json: bool = False,
    color: bool = True,
    to_stderr: bool = True,
    rotate: Optional[Dict[str, Any]] = None,
    tz: str = "UTC",
    capture_warnings: bool = True,
    quiet_libs: Optional[List[str]] = None,
    context: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Configure the root logger.

    Parameters
    ----------
    log_level : str
        Root level name ("DEBUG" ... "CRITICAL")
    log_file : str, optional
        Also write to this file
    json : bool
        JSON lines in the log file (console stays human-readable)
    color : bool
        Coloured level column on the console
    to_stderr : bool
        Attach a console handler
    rotate : dict, optional
        {"mode": "size", "max_bytes": ..., "backup_count": ...} or
        {"mode": "time", "when": "D", "interval": 1, "backup_count": ...}
    tz : str
        "UTC" (default) or "local"
    capture_warnings : bool
        Route ``warnings.warn`` through logging
    quiet_libs : list of str, optional
        Third-party loggers held at WARNING (e.g. ["PIL"])
    context : dict, optional
        Fields pushed with push_context() right away

    Returns
    -------
    dict
        {"handlers": [handlers attached by this call]}
    """
    global _configured

    root = logging.getLogger()
    if _configured:
        for old in list(root.handlers):
            root.removeHandler(old)
            old.close()
    root.setLevel(logging.getLevelName(log_level.upper()))

    handlers: List[logging.Handler] = []
    if to_stderr:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(ContextFormatter("human", color, tz))
        handlers.append(console)
    if log_file:
        handlers.append(_create_file_handler(log_file, rotate, json, tz))
    for handler in handlers:
        root.addHandler(handler)

    for lib in quiet_libs or ():
        logging.getLogger(lib).setLevel(logging.WARNING)
    if capture_warnings:
        route_warnings()
    if context:
        push_context(**context)

    _configured = True
    return {'handlers': handlers}


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_level(level: str) -> None:
    """Change the root level without touching handlers."""
    logging.getLogger().setLevel(logging.getLevelName(level.upper()))


def push_context(**fields) -> None:
    """Stamp ``fields`` onto every later record (merged with existing ones)."""
    _context_var.set({**_context_var.get(), **fields})


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Drop the given context keys, or all of them."""
    if keys is None:
        _context_var.set({})
        return
    _context_var.set({k: v for k, v in _context_var.get().items() if k not in keys})


@contextmanager
def log_context(**fields) -> Iterator[None]:
    """Scoped push_context(); previous fields are restored on exit.

    Examples
    --------
    >>> with log_context(garden="saves/garden.yaml"):
    ...     persistence.restore_garden(state, "saves/garden.yaml")
    """
    token = _context_var.set({**_context_var.get(), **fields})
    try:
        yield
    finally:
        _context_var.reset(token)


def install_excepthook() -> None:
    """Log uncaught exceptions at CRITICAL before the interpreter exits."""
    def _hook(exc_type, exc_value, exc_tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        logging.getLogger(__name__).critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_tb))

    sys.excepthook = _hook


def route_warnings() -> None:
    logging.captureWarnings(True)
    logging.getLogger('py.warnings').setLevel(logging.WARNING)


def shutdown() -> None:
    """Flush and close every handler (end of a script)."""
    logging.shutdown()

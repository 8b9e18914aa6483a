"""
FlowLens Structured Logger
===========================

:class:`FlowLogger` binds a stdlib logger named ``flowlens.<component>``
to a Rich handler on stderr and, optionally, a rotating log file written
as plain text or JSON lines.

Diagnostics never go to stdout: stdout belongs to the result lines the
engine prints for the shell.

Keyword arguments other than the stdlib ones become structured context::

    log = FlowLogger("collectors.csv")
    log.info("Parsed %d flows", n, source="day1.csv")
    # JSON line: {..., "component": "collectors.csv", "context": {"source": "day1.csv"}}

References:
    - Python logging HOWTO. https://docs.python.org/3/howto/logging.html
    - Rich library. https://github.com/Textualize/rich
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterator, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

ROOT_LOGGER = "flowlens"
MAX_BYTES = 10 * 1024 * 1024
BACKUPS = 5

_STDLIB_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})

_LOG_THEME = Theme(
    {
        "log.level.debug": "grey50",
        "log.level.info": "cyan",
        "log.level.warning": "yellow",
        "log.level.error": "bold red",
        "log.level.critical": "bold white on red",
    }
)


def _resolve_level(level: str) -> int:
    return getattr(logging, level.upper(), logging.WARNING)


class _JSONLineFormatter(logging.Formatter):
    """One JSON object per record.

    Keys: ``time``, ``level``, ``logger``, ``component``, ``operation``
    (when set), ``message``, ``context`` (keyword context, when given) and
    ``traceback`` (when an exception is attached).
    """

    def format(self, record: logging.LogRecord) -> str:
        doc: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "component": getattr(record, "component", record.name),
            "message": record.getMessage(),
        }
        operation = getattr(record, "operation", None)
        if operation:
            doc["operation"] = operation
        context = getattr(record, "context", None)
        if context:
            doc["context"] = context
        if record.exc_info:
            doc["traceback"] = self.formatException(record.exc_info)
        return json.dumps(doc, ensure_ascii=False, default=str)


def _stderr_handler() -> logging.Handler:
    return RichHandler(
        console=Console(theme=_LOG_THEME, stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )


def _file_handler(log_file: str | Path, json_lines: bool) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path, maxBytes=MAX_BYTES, backupCount=BACKUPS, encoding="utf-8"
    )
    if json_lines:
        handler.setFormatter(_JSONLineFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-8s [%(component)s] %(message)s")
        )
    return handler


class Stopwatch:
    """Elapsed wall time of a :meth:`FlowLogger.timed` block.

    ``elapsed`` keeps counting inside the block and is frozen on exit.
    """

    def __init__(self) -> None:
        self._start = time.perf_counter()
        self._stop: Optional[float] = None

    def stop(self) -> None:
        self._stop = time.perf_counter()

    @property
    def elapsed(self) -> float:
        end = self._stop if self._stop is not None else time.perf_counter()
        return end - self._start


class FlowLogger:
    """Logger for one FlowLens component.

    *component* is a dotted name; the stdlib logger is
    ``flowlens.<component>``. Loggers start at WARNING on stderr only;
    :func:`configure_logging` sets the level and adds the log file.
    """

    def __init__(self, component: str) -> None:
        self.component = component
        self._operation: Optional[str] = None

        self._logger = logging.getLogger(f"{ROOT_LOGGER}.{component}")
        self._logger.setLevel(logging.WARNING)
        self._logger.propagate = False
        # module reloads must not stack handlers
        for handler in list(self._logger.handlers):
            self._logger.removeHandler(handler)
        self._logger.addHandler(_stderr_handler())

    @contextmanager
    def operation(self, name: str) -> Iterator[FlowLogger]:
        """Tag records logged inside the block with *name*."""
        previous, self._operation = self._operation, name
        try:
            yield self
        finally:
            self._operation = previous

    @contextmanager
    def timed(self, label: str) -> Iterator[Stopwatch]:
        """Log how long the block took (DEBUG on entry, INFO on exit)."""
        watch = Stopwatch()
        self.debug("Started: %s", label)
        try:
            yield watch
        finally:
            watch.stop()
            self.info("Completed: %s (%.3f sec)", label, watch.elapsed)

    def _log(self, level: int, msg: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        context = {k: kwargs.pop(k) for k in list(kwargs) if k not in _STDLIB_KWARGS}
        extra = dict(kwargs.pop("extra", None) or {})
        extra.update(component=self.component, operation=self._operation, context=context)
        self._logger.log(level, msg, *args, extra=extra, **kwargs)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, args, kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, args, kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, args, kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, args, kwargs)


def configure_logging(
    level: str = "WARNING",
    log_file: str | Path | None = None,
    json_lines: bool = False,
) -> None:
    """Apply *level* and an optional shared log file to every FlowLens logger.

    Called once by the CLI after the configuration is loaded; loggers
    created at import time pick the settings up retroactively.
    """
    resolved = _resolve_level(level)
    shared_file: Optional[logging.Handler] = None
    for name, candidate in list(logging.Logger.manager.loggerDict.items()):
        if not name.startswith(f"{ROOT_LOGGER}.") or not isinstance(candidate, logging.Logger):
            continue
        candidate.setLevel(resolved)
        if log_file is None or any(
            isinstance(h, RotatingFileHandler) for h in candidate.handlers
        ):
            continue
        if shared_file is None:
            shared_file = _file_handler(log_file, json_lines)
        candidate.addHandler(shared_file)

"""
component_1_logging_config.py

Logging setup for the horizon planner.

Every planner module logs through ``get_logger(__name__)``. The returned
adapter moves the ``extra`` mapping of a call into a single ``extra_info``
attribute on the record, which ``PlannerLogFormatter`` renders as trailing
``key=value`` pairs. Nothing is configured at import time; the command line
calls ``setup_logging`` once.

Usage:
    from component_1_logging_config import get_logger

    logger = get_logger(__name__)
    logger.info("Solve finished", extra={"horizon": 11, "status": "success"})

    search_logger = logger.bind(horizon=11)
    search_logger.debug("Backtracking", extra={"step": 4})
"""

import logging
import logging.handlers
import sys
import time
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional, Tuple, Union

CONSOLE_LOG_LEVEL: int = logging.WARNING
FILE_LOG_LEVEL: int = logging.DEBUG
LOG_FILE_MAX_BYTES: int = 5 * 1024 * 1024
LOG_FILE_BACKUPS: int = 3

TIMING_LOGGER_NAME: str = "planner.timing"


class PlannerLogFormatter(logging.Formatter):
    """
    Renders ``time level logger: message | k=v k=v``.

    ``extra_info`` keys are sorted so that log lines of repeated solves can be
    diffed.
    """

    def __init__(self, include_extra: bool = True, with_time: bool = True) -> None:
        self.include_extra = include_extra
        fmt = "%(levelname)-7s %(name)s: %(message)s"
        if with_time:
            fmt = "%(asctime)s " + fmt
        super().__init__(fmt=fmt, datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        info = getattr(record, "extra_info", None)
        if self.include_extra and info:
            pairs = " ".join(f"{key}={info[key]}" for key in sorted(info))
            line = f"{line} | {pairs}"
        return line


class StructuredLogger(logging.LoggerAdapter):
    """
    Adapter carrying bound context plus per-call ``extra`` as ``extra_info``.
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> Tuple[str, MutableMapping[str, Any]]:
        info: Dict[str, Any] = dict(self.extra or {})
        info.update(kwargs.get("extra") or {})
        if info:
            kwargs["extra"] = {"extra_info": info}
        return msg, kwargs

    def bind(self, **context: Any) -> "StructuredLogger":
        """Return a logger that adds ``context`` to every record."""
        return StructuredLogger(self.logger, {**(self.extra or {}), **context})

    def log_exception(self, exc: BaseException, message: str = "", **context: Any) -> None:
        """Log ``exc`` at ERROR with its traceback attached."""
        text = f"{message}: {type(exc).__name__}: {exc}" if message else repr(exc)
        self.error(text, exc_info=exc, extra=context)


class PerformanceLogger:
    """
    Context manager measuring the wall-clock duration of a block.

    The duration is available as ``duration_ms`` after the block. Successful
    runs are also reported on the ``planner.timing`` channel; failures are
    logged and re-raised.

    Usage:
        with PerformanceLogger(logger, "horizon_search", horizon=11) as perf:
            outcome = engine.search(initial_state, goal, 11)
        print(perf.duration_ms)
    """

    def __init__(
        self,
        logger: Union[logging.Logger, logging.LoggerAdapter],
        operation_name: str,
        **context: Any,
    ) -> None:
        if isinstance(logger, logging.LoggerAdapter):
            logger = logger.logger
        self.logger: logging.Logger = logger
        self.operation_name = operation_name
        self.context: Dict[str, Any] = context
        self.duration_ms: float = 0.0
        self._started: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if self._started is not None:
            self.duration_ms = (time.perf_counter() - self._started) * 1000.0
        info = {**self.context, "duration_ms": round(self.duration_ms, 3)}

        if exc_type is None:
            logging.getLogger(TIMING_LOGGER_NAME).debug(
                self.operation_name, extra={"extra_info": info}
            )
        else:
            self.logger.warning(
                f"{self.operation_name} failed after {self.duration_ms:.1f}ms",
                extra={"extra_info": {**info, "error": repr(exc_val)}},
            )
        return False


def setup_logging(
    console_level: int = CONSOLE_LOG_LEVEL,
    log_file: Optional[Union[str, Path]] = None,
    file_level: int = FILE_LOG_LEVEL,
) -> None:
    """
    Configure the root logger for command line use.

    Replaces any handlers already installed on the root logger, so calling it
    twice does not duplicate output.

    Args:
        console_level: threshold for the stderr handler
        log_file: optional path of a size-rotated log file
        file_level: threshold for the file handler
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(PlannerLogFormatter(with_time=False))
    root.addHandler(console)
    levels = [console_level]

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            path,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
        rotating.setLevel(file_level)
        rotating.setFormatter(PlannerLogFormatter())
        root.addHandler(rotating)
        levels.append(file_level)

    root.setLevel(min(levels))
    get_logger("planner.logging").debug(
        "Logging configured",
        extra={
            "console_level": logging.getLevelName(console_level),
            "log_file": str(log_file) if log_file else None,
        },
    )


def get_logger(name: str) -> StructuredLogger:
    """Structured logger for ``name`` (normally ``__name__``)."""
    return StructuredLogger(logging.getLogger(name), {})


# ==================== Operation markers ====================


def log_component_start(logger: StructuredLogger, operation: str, **context: Any) -> None:
    logger.info(f"{operation} started", extra=context)


def log_component_end(logger: StructuredLogger, operation: str, **context: Any) -> None:
    logger.info(f"{operation} finished", extra=context)


def log_component_error(
    logger: StructuredLogger, operation: str, error: BaseException, **context: Any
) -> None:
    logger.log_exception(error, message=f"{operation} rejected", **context)

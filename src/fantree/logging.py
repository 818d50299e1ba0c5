"""Logging utilities for fantree.

fantree logs through loguru and keeps its records switched off until a caller
opts in with ``enable_logging()``. Precompute summaries are logged at INFO,
per-pass details at DEBUG and per-node or per-query details at TRACE.

Note:
    Importing this module removes loguru's default stderr handler (ID 0) so
    that ``enable_logging()`` does not produce duplicate lines. If the
    application already replaced handler 0 the removal is a no-op.
"""

from __future__ import annotations

import contextlib
import sys
import threading
from typing import TYPE_CHECKING, Any, ClassVar, Final, Literal

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME: Final[str] = __name__.split(".")[0]

with contextlib.suppress(ValueError):
    logger.remove(0)

type LogLevel = Literal[
    "TRACE",
    "DEBUG",
    "INFO",
    "SUCCESS",
    "WARNING",
    "ERROR",
    "CRITICAL",
]

type LogFormat = Literal["short", "full"]

_SHORT_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "  # noqa: RUF027 - loguru format string
    "<cyan>{function}</cyan> - "
    "<level>{message}</level> {extra}"
)
_FULL_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "  # noqa: RUF027 - loguru format string
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level> {extra}"
)


class LoggingHandle:
    """Owns one loguru handler added by ``enable_logging``.

    The handle can be disabled explicitly or used as a context manager. When
    the last live handle goes away the fantree logger is disabled again.

    Examples:
        >>> with enable_logging(level="DEBUG"):  # doctest: +SKIP
        ...     tree.precompute(bounds=[(0.0, 1.0)], types=[0])
    """

    _active_ids: ClassVar[set[int]] = set()
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, handler_id: int) -> None:
        """Register the handler as active.

        Args:
            handler_id (int): The loguru handler ID returned by ``logger.add``.
        """
        self.handler_id: int | None = handler_id
        with LoggingHandle._lock:
            LoggingHandle._active_ids.add(handler_id)

    @property
    def is_active(self) -> bool:
        """Whether this handle still owns a loguru handler."""
        return self.handler_id is not None

    def disable(self) -> None:
        """Remove the handler; disable fantree logging if no handle is left.

        Calling this more than once is a no-op.
        """
        with LoggingHandle._lock:
            if self.handler_id is None:
                return
            LoggingHandle._active_ids.discard(self.handler_id)
            with contextlib.suppress(ValueError):
                logger.remove(self.handler_id)
            self.handler_id = None
            if not LoggingHandle._active_ids:
                logger.disable(PACKAGE_NAME)

    def __enter__(self) -> LoggingHandle:
        """Enter context manager.

        Returns:
            LoggingHandle: This handle instance.
        """
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit context manager and disable the handler.

        Args:
            exc_type (type[BaseException] | None): The exception type, if raised.
            exc_val (BaseException | None): The exception instance, if raised.
            exc_tb (TracebackType | None): The traceback, if raised.
        """
        self.disable()

    @classmethod
    def get_active_handle_count(cls) -> int:
        """Return the number of handles that have not been disabled.

        Returns:
            int: Count of active handles.
        """
        with cls._lock:
            return len(cls._active_ids)


def enable_logging(
    *,
    level: LogLevel = "INFO",
    log_format: LogFormat = "short",
    sink: Any = sys.stderr,
) -> LoggingHandle:
    """Route fantree log records to ``sink``.

    Args:
        level (LogLevel): Minimum level to emit. ``"INFO"`` shows one line per
            precompute and fit; ``"DEBUG"`` adds per-pass details and NaN query
            results; ``"TRACE"`` adds every excluded leaf and every query.
        log_format (LogFormat): ``"short"`` prints the function name only,
            ``"full"`` prints ``module:function:line``.
        sink (Any): Any loguru sink. Defaults to ``sys.stderr``.

    Returns:
        LoggingHandle: Independent handle that removes the handler on disable.

    Note:
        When the last active handle is disabled ``logger.disable("fantree")``
        is called, which also silences handlers the application added on its
        own after calling ``logger.enable("fantree")``.
    """
    logger.enable(PACKAGE_NAME)
    format_str = _SHORT_FORMAT if log_format == "short" else _FULL_FORMAT
    handler_id = logger.add(
        sink,
        level=level,
        filter=_is_fantree_record,
        format=format_str,
    )
    return LoggingHandle(handler_id)


def _is_fantree_record(record: Record) -> bool:
    """Pass only records emitted from inside the fantree package.

    Args:
        record (Record): The loguru record to filter.

    Returns:
        bool: True if the record originates in fantree.
    """
    name = record["name"]
    return name is not None and name.startswith(PACKAGE_NAME)

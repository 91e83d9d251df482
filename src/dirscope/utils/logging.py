"""Logging infrastructure with scan-id tracking and optional syslog output.

Every scan session sets a scan id in a ContextVar before it starts sizing
work. Sizing tasks are created inside that context, so records emitted by the
lister, the sizers and the error diagnostics all carry the id of the session
that requested the work.
"""

import contextvars
import logging
import logging.handlers
import sys
from collections.abc import Mapping
from typing import Final, override

# Inherited by asyncio tasks created within the same context and by
# asyncio.to_thread workers, which copy the current context
scan_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "scan_id",
    default=None,
)

DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - [%(scan_id)s] - %(message)s"

SYSLOG_LOG_FORMAT: Final[str] = "dirscope[%(process)d]: %(levelname)s - [%(scan_id)s] - %(name)s - %(message)s"

DEFAULT_SYSLOG_ADDRESS: Final[str] = "/dev/log"


class ScanIDFilter(logging.Filter):
    """Logging filter that adds the current scan id to log records."""

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        """Add scan id to log record from ContextVar.

        Args:
            record: Log record to enhance

        Returns:
            True to allow the record to be logged
        """
        scan_id = scan_id_var.get()
        record.scan_id = scan_id if scan_id is not None else "-"
        return True


def configure_logging(
    *,
    log_level: str = "WARNING",
    enable_syslog: bool = False,
    syslog_address: str = DEFAULT_SYSLOG_ADDRESS,
    enable_console: bool = True,
) -> None:
    """Configure application logging.

    Console output goes to stderr so that it never interleaves with the
    listing printed on stdout.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_syslog: Add a syslog handler
        syslog_address: Syslog socket address
        enable_console: Add a stderr handler

    Example:
        >>> configure_logging(log_level="DEBUG")
        >>> logging.getLogger("dirscope").debug("ready")
    """
    root_logger = logging.getLogger()

    level = getattr(logging, log_level.upper(), logging.WARNING)
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    scan_filter = ScanIDFilter()

    if enable_syslog:
        try:
            syslog_handler = logging.handlers.SysLogHandler(
                address=syslog_address,
                facility=logging.handlers.SysLogHandler.LOG_USER,
            )
            syslog_handler.setFormatter(logging.Formatter(SYSLOG_LOG_FORMAT))
            syslog_handler.addFilter(scan_filter)
            root_logger.addHandler(syslog_handler)

        except OSError as exc:
            # Syslog not available (e.g., containers, macOS without /dev/log)
            print(
                f"Warning: Could not connect to syslog at {syslog_address}: {exc}",
                file=sys.stderr,
            )

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        console_handler.addFilter(scan_filter)
        root_logger.addHandler(console_handler)


def set_scan_id(scan_id: str) -> contextvars.Token[str | None]:
    """Set the scan id for the current context.

    Args:
        scan_id: Unique identifier of the scan session

    Returns:
        Token that restores the previous value when passed to reset_scan_id
    """
    return scan_id_var.set(scan_id)


def reset_scan_id(token: contextvars.Token[str | None]) -> None:
    """Restore the scan id that was active before set_scan_id."""
    scan_id_var.reset(token)


def get_scan_id() -> str | None:
    """Get the current scan id from context."""
    return scan_id_var.get()


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    *,
    extra: Mapping[str, object] | None = None,
) -> None:
    """Log a message with additional context fields.

    Adds the current scan id to the structured context when one is set.

    Args:
        logger: Logger instance to use
        level: Logging level (e.g., logging.INFO)
        message: Log message
        extra: Additional context fields to include in log

    Example:
        >>> log_with_context(
        ...     logging.getLogger(__name__),
        ...     logging.WARNING,
        ...     "Cannot size file",
        ...     extra={"path": "/etc/shadow", "error": "Permission denied"},
        ... )
    """
    context = dict(extra) if extra else {}

    scan_id = get_scan_id()
    if scan_id:
        context["scan"] = scan_id

    logger.log(level, message, extra=context)

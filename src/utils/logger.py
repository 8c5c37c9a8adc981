"""
Logging utility for the Rental Reservation Reconciler.
"""
import logging
import sys
from typing import Optional
from colorama import Fore, Style, init
import structlog

from .models import CycleReport

# Initialize colorama for cross-platform colored output
init(autoreset=True)

ROOT_LOGGER_NAME = "reservation_reconciler"


class ColorizedFormatter(logging.Formatter):
    """Custom formatter with colorized output."""

    COLORS = {
        'DEBUG': Fore.CYAN,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.MAGENTA + Style.BRIGHT,
    }

    def format(self, record):
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{Style.RESET_ALL}"

        if record.levelno >= logging.WARNING:
            record.msg = f"{Fore.RED}{record.msg}{Style.RESET_ALL}"

        return super().format(record)


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: str = "INFO",
    log_file: Optional[str] = None
) -> structlog.BoundLogger:
    """
    Set up structured logging with colorized console output.

    Component loggers are children of ``name`` so a single call configures
    every logger returned by :func:`get_logger`.

    Args:
        name: Root logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path; when set, events are rendered as JSON

    Returns:
        Configured structured logger
    """
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if log_file else structlog.dev.ConsoleRenderer(colors=False),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    stdlib_logger = logging.getLogger(name)
    stdlib_logger.setLevel(getattr(logging, level.upper()))
    stdlib_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColorizedFormatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    stdlib_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        stdlib_logger.addHandler(file_handler)

    return structlog.get_logger(name)


def get_logger(name: str = ROOT_LOGGER_NAME) -> structlog.BoundLogger:
    """
    Get a logger for a component.

    Args:
        name: Component name, nested under the root logger

    Returns:
        Structured logger
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return structlog.get_logger(name)


class ReconciliationLogger:
    """Logs cycle events and keeps the counters of a CycleReport."""

    def __init__(self, logger: structlog.BoundLogger, cycle: str):
        self.logger = logger
        self.report = CycleReport(name=cycle)

    def log_created(self, property_name: str, external_id: str, guest_name: str):
        self.report.created += 1
        self.logger.info("New reservation created", property=property_name,
                         external_id=external_id, guest_name=guest_name)

    def log_updated(self, reservation_id: str, **changes):
        self.report.updated += 1
        self.logger.info("Reservation dates updated", reservation_id=reservation_id, **changes)

    def log_unchanged(self):
        self.report.unchanged += 1

    def log_merged(self, email_id: str, **context):
        self.report.merged += 1
        self.logger.info("Email merged into reservation", email_id=email_id, **context)

    def log_skipped(self, reason: str, **context):
        self.report.skipped += 1
        self.logger.warning(reason, **context)

    def log_error(self, error: Exception, context: str = ""):
        self.report.errors += 1
        self.logger.error(
            "Error occurred",
            error=str(error),
            error_type=type(error).__name__,
            context=context
        )

    def print_summary(self) -> CycleReport:
        """Log the cycle summary and return the report."""
        self.logger.info("Cycle summary", **self.report.to_dict())
        return self.report

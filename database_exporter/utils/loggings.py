import logging
import os
import re
import sys
import threading
import traceback
from contextlib import contextmanager
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from typing import Literal

import structlog

from database_exporter.utils.constants import DEFAULT_LOG_DIR

fileno = False

# Global log manager
_log_manager = None

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")


class PlainTextFormatter(logging.Formatter):
    """Formatter for log files, strips the color codes added by the console renderer"""

    def format(self, record):
        return _ANSI_ESCAPE.sub("", super().format(record))


class DynamicLogManager:
    """Dynamic log manager that supports switching log output targets at runtime"""

    def __init__(self, debug=False, log_dir=DEFAULT_LOG_DIR):
        self.debug = debug
        self.log_dir = os.path.expanduser(log_dir)
        self.root_logger = logging.getLogger()
        self.file_handler = None
        self.console_handler = None
        self._lock = threading.RLock()
        self._setup_handlers()

    def _setup_handlers(self):
        """Set up file and console handlers"""
        os.makedirs(self.log_dir, exist_ok=True)

        current_date = datetime.now().strftime("%Y-%m-%d")
        log_file_base = os.path.join(self.log_dir, f"exporter.{current_date}")

        self.file_handler = TimedRotatingFileHandler(
            log_file_base + ".log", when="midnight", interval=1, backupCount=30, encoding="utf-8"
        )
        self.file_handler.suffix = "%Y-%m-%d"
        self.file_handler.setFormatter(PlainTextFormatter("%(message)s"))

        self.console_handler = logging.StreamHandler(sys.stdout)
        self.console_handler.setFormatter(logging.Formatter("%(message)s"))

        self.root_logger.setLevel(logging.DEBUG if self.debug else logging.INFO)

    def set_output_target(self, target: Literal["both", "file", "console", "none"]):
        """Set log output target

        Args:
            target: Output target
                - "both": Output to both file and console (default)
                - "file": Output to file only
                - "console": Output to console only
                - "none": No output
        """
        with self._lock:
            self.root_logger.handlers = []

            if target in ["both", "file"]:
                self.root_logger.addHandler(self.file_handler)

            if target in ["both", "console"]:
                self.root_logger.addHandler(self.console_handler)

    @contextmanager
    def temporary_output(self, target: Literal["both", "file", "console", "none"]):
        """Context manager for temporarily setting output target

        Args:
            target: Temporary output target
        """
        with self._lock:
            original_handlers = self.root_logger.handlers.copy()
            try:
                self.set_output_target(target)
                yield
            finally:
                self.root_logger.handlers = original_handlers


def get_log_manager() -> DynamicLogManager:
    """Get global log manager"""
    global _log_manager
    if _log_manager is None:
        _log_manager = DynamicLogManager()
    return _log_manager


def configure_logging(debug=False, log_dir=DEFAULT_LOG_DIR, console_output=True) -> DynamicLogManager:
    """Configure logging with the specified debug level.
    Args:
        debug: If True, set log level to DEBUG
        log_dir: Directory for log files
        console_output: If False, disable logging to console
    """
    global fileno
    fileno = debug

    global _log_manager
    _log_manager = DynamicLogManager(debug=debug, log_dir=os.path.expanduser(log_dir))

    if console_output:
        _log_manager.set_output_target("both")
    else:
        _log_manager.set_output_target("file")
    return _log_manager


def add_exc_info(logger, method_name, event_dict):
    """Add exception info to error logs raised inside an except block."""
    if method_name == "exception":
        event_dict["exc_info"] = True
    return event_dict


def add_code_location(logger, method_name, event_dict):
    """Add the correct code location by inspecting the call stack."""
    if method_name == "debug" or fileno:
        frames = traceback.extract_stack()
        # Find the first frame that is not in structlog or logging modules
        for frame in reversed(frames[:-1]):
            if "structlog" not in frame.filename and "logging" not in frame.filename:
                event_dict["fileno"] = f" {frame.filename}:{frame.lineno}"
                break
    return event_dict


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


if not structlog.is_configured():
    structlog.configure_once(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            add_code_location,
            add_exc_info,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=True, exception_formatter=structlog.dev.plain_traceback),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

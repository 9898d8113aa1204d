import sys
import traceback
from enum import Enum
from typing import Any, Optional

from database_exporter.utils.loggings import get_log_manager, get_logger

logger = get_logger(__name__)


class ErrorCode(Enum):
    """Error codes with descriptions for exporter exceptions."""

    # Common errors
    COMMON_FILE_NOT_FOUND = ("100002", "{config_name} file not found: {file_name}")
    COMMON_CONFIG_ERROR = ("100006", "Configuration error: {config_error}")
    COMMON_FILE_EXISTS = ("100007", "Refusing to overwrite existing file: {file_name}")

    # Source database errors - Connection
    DB_CONNECTION_FAILED = ("500001", "Failed to establish connection to database. Error details: {error_message}")
    DB_CONNECTION_TIMEOUT = ("500002", "Connection to database timed out. Error details: {error_message}")
    DB_AUTHENTICATION_FAILED = (
        "500003",
        "Authentication failed for database. Please check your credentials. Error details: {error_message}",
    )
    DB_PERMISSION_DENIED = (
        "500004",
        "Permission denied when performing '{operation}' on database. Error details: {error_message}",
    )

    # Source database errors - Query Execution
    DB_EXECUTION_SYNTAX_ERROR = (
        "500005",
        "Invalid SQL syntax in query. SQL: {sql}, Error details: {error_message}",
    )
    DB_EXECUTION_ERROR = (
        "500006",
        "Failed to execute query on database. SQL: {sql}, Error details: {error_message}",
    )
    DB_EXECUTION_TIMEOUT = (
        "500007",
        "Query execution timed out on database. SQL: {sql}, Error details: {error_message}",
    )

    # Table discovery
    DISCOVERY_FAILED = ("510001", "Failed to list tables of database. Error details: {error_message}")

    # Export of one table or custom query
    EXPORT_CONVERSION_FAILED = (
        "520001",
        "Unable to convert result of `{table_name}` to columnar form. Error details: {error_message}",
    )
    EXPORT_WRITE_FAILED = ("520002", "Unable to write `{table_name}` to {file_path}. Error details: {error_message}")
    EXPORT_CANCELLED = ("520003", "Export of `{table_name}` was cancelled before it completed")
    EXPORT_NAME_CONFLICT = ("520004", "Custom query `{table_name}` has the same name as a table of the database")

    # Catalog consolidation
    CATALOG_CONNECTION_FAILED = ("530001", "Failed to open catalog {file_path}. Error details: {error_message}")
    CATALOG_SCHEMA_FAILED = ("530002", "Failed to create catalog schema `{schema}`. Error details: {error_message}")
    CATALOG_LOAD_FAILED = (
        "530003",
        "Unable to load {file_path} into catalog table {table_name}. Error details: {error_message}",
    )

    def __init__(self, code: str, desc: str):
        self.code = code
        self.desc = desc


class ExporterException(Exception):
    """Exporter exception with standardized printing

    Args:
        code: ErrorCode - The error code enum that defines the type and category of the exception
        message: Optional[str] - Custom error message. If not provided, uses the default message from ErrorCode
        message_args: Optional[dict[str, Any]] - Arguments to format the error message template from ErrorCode
        *args: object - Additional arguments passed to the base Exception class
    """

    def __init__(
        self,
        code: ErrorCode,
        message: Optional[str] = None,
        message_args: Optional[dict[str, Any]] = None,
        *args: object,
    ):
        self.code = code
        self.message_args = message_args or {}
        self.message = self.build_msg(message, message_args)
        super().__init__(self.message, *args)

    def __str__(self):
        return self.message

    def build_msg(self, message: Optional[str] = None, message_args: Optional[dict[str, Any]] = None) -> str:
        if message:
            final_message = message
        elif message_args:
            final_message = self.code.desc.format(**message_args)
        else:
            final_message = self.code.desc
        return f"error_code={self.code.code}, error_message={final_message}"


def setup_exception_handler(console_logger=None):
    """Setup global exception handler for the exporter

    Args:
        console_logger (function, optional): If provided, print exception message to console.
    """

    def global_exception_handler(type, value, tb):
        if issubclass(type, (SystemExit, KeyboardInterrupt, GeneratorExit)):
            # Do not catch these exceptions, let the program exit or respond to the interrupt
            sys.__excepthook__(type, value, tb)
            return

        format_ex = "\n".join(traceback.format_exception(type, value, tb))
        log_prefix = "Execution failed" if issubclass(type, ExporterException) else "Unexpected failed"
        message = str(value) if not hasattr(value, "message") else value.message
        log_manager = get_log_manager()
        if log_manager.debug:
            logger.error(f"{log_prefix}: {format_ex}")
            if console_logger:
                console_logger(f"{log_prefix}: {format_ex}")
        elif console_logger:
            # print exception trace to file
            logger.error(f"{log_prefix}: {format_ex}")
            console_logger(f"{log_prefix}: {message}")
        else:
            with log_manager.temporary_output("file"):
                logger.error(f"{log_prefix}: {format_ex}")
            with log_manager.temporary_output("console"):
                logger.error(f"{log_prefix}: {message}")

    sys.excepthook = global_exception_handler

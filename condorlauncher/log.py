"""
Logging setup. Logs are written as JSON, and fields in the logging_extra_var context variable
are added to every record.
"""

import contextvars
import datetime
import logging

from pythonjsonlogger.core import RESERVED_ATTRS
from pythonjsonlogger.json import JsonFormatter


logging_extra_var = contextvars.ContextVar("logging_extra_var", default={})
"""
Fields to add to every log record in the current context, e.g. the job ID during a launch.
"""


class LoggingExtraFilter(logging.Filter):
    """ Insert extra fields into the logs. """
    def filter(self, record):
        for key, value in logging_extra_var.get().items():
            setattr(record, key, value)
        return True


class CustomJsonFormatter(JsonFormatter):
    """ Remove keys with null values from the logs. """

    def process_log_record(self, log_record):
        return super().process_log_record(
            {k: v for k, v in log_record.items() if v is not None}
        )


def _format_time(self, record, datefmt=None):
    # https://stackoverflow.com/a/58777937/643675
    return datetime.datetime.fromtimestamp(
        record.created, datetime.timezone.utc
    ).astimezone().isoformat(sep="T", timespec="milliseconds")


def configure_logging(level: int = logging.INFO) -> logging.Handler:
    """
    Replace any handlers on the root logger with a JSON handler.

    level - the log level for the condorlauncher loggers. Other loggers log at WARNING.

    Returns the new handler.
    """
    logging.Formatter.formatTime = _format_time
    rootlogger = logging.getLogger()
    rootlogger.setLevel(logging.WARNING)
    # The list slice prevents list modification while iterating
    for handler in rootlogger.handlers[:]:
        rootlogger.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.addFilter(LoggingExtraFilter())
    handler.setFormatter(CustomJsonFormatter(
        "{levelname}{name}{message}{asctime}{exc_info}",
        style="{",
        rename_fields={"levelname": "level"},
        reserved_attrs=RESERVED_ATTRS,
    ))
    rootlogger.addHandler(handler)
    logging.getLogger("condorlauncher").setLevel(level)
    return handler

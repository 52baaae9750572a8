"""Structured JSON logging shared by the cert_util library and scripts."""

import logging

from pythonjsonlogger import jsonlogger

LOGGER_NAME = "cert_util"
LOG_FORMAT = "%(timestamp)s %(levelname)s %(funcName)s %(lineno)d %(message)s"
LOG_FIELDS = ("timestamp", "level", "message", "exc_info", "funcName", "lineno")


class IssuanceJsonFormatter(jsonlogger.JsonFormatter):
    """One JSON object per record, keyed by LOG_FIELDS only."""

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("fmt", LOG_FORMAT)
        kwargs.setdefault("timestamp", True)
        super().__init__(*args, **kwargs)

    def process_log_record(self, log_record):
        if "levelname" in log_record:
            log_record["level"] = log_record.pop("levelname")
        return {key: log_record[key] for key in LOG_FIELDS if key in log_record}


def configure_logger(name: str = LOGGER_NAME, level: int = logging.INFO) -> logging.Logger:
    """Return logger `name` writing JSON to stderr.

    Calling it again for the same name reuses the existing JSON handler.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    if not any(isinstance(h.formatter, IssuanceJsonFormatter) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(IssuanceJsonFormatter())
        logger.addHandler(handler)

    return logger


LOGGER = configure_logger()

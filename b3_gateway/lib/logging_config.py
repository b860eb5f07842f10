"""JSON logging configuration for the B3 gateway."""

import logging
import os

from pythonjsonlogger import jsonlogger


class GatewayJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that keeps a focused field set.

    Emits timestamp, level, message, exc_info, funcName and lineno, plus any
    request-scoped fields passed through ``extra`` (method, url, status).
    """

    allowed_fields = frozenset(
        {
            "timestamp",
            "level",
            "message",
            "exc_info",
            "funcName",
            "lineno",
            "method",
            "url",
            "status",
            "duration_ms",
        }
    )

    def add_fields(self, log_record, record, message_dict):
        """Override to include only allowed fields.

        Args:
            log_record: Dict to be logged as JSON
            record: LogRecord object from logging framework
            message_dict: Dict containing message and args
        """
        super().add_fields(log_record, record, message_dict)

        if "levelname" in log_record:
            log_record["level"] = log_record.pop("levelname")

        keys_to_remove = [key for key in log_record if key not in self.allowed_fields]
        for key in keys_to_remove:
            log_record.pop(key)


DEFAULT_LEVEL = "INFO"


def resolve_level(value: str | None) -> tuple[str, bool]:
    """Map a LOG_LEVEL value to a logging level name.

    Returns:
        Tuple of level name and whether ``value`` was recognised; unknown
        values resolve to INFO
    """
    name = (value or DEFAULT_LEVEL).strip().upper()
    if name in logging.getLevelNamesMapping():
        return name, True
    return DEFAULT_LEVEL, False


def _setup_logger(name: str = "b3_gateway") -> logging.Logger:
    """Initialize and configure the gateway logger.

    Args:
        name: Logger name

    Returns:
        Logger writing GatewayJsonFormatter output to stderr
    """
    logger = logging.getLogger(name)

    # Prevent duplicate handlers if module reloaded
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(
        GatewayJsonFormatter(
            fmt="%(timestamp)s %(levelname)s %(funcName)s %(lineno)d %(message)s",
            timestamp=True,
        )
    )
    logger.addHandler(handler)
    logger.propagate = False

    raw_level = os.environ.get("LOG_LEVEL")
    level, recognised = resolve_level(raw_level)
    logger.setLevel(level)
    if not recognised:
        logger.warning("Unknown LOG_LEVEL %r; using %s", raw_level, DEFAULT_LEVEL)

    return logger


LOGGER = _setup_logger()

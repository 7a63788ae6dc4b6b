"""
Centralized logging configuration for the resource control plane.

Every record is emitted as one JSON object per line so logs from concurrent request workers can be
filtered by resource or vendor. Callers attach context through `extra`:

    logger.info("...", extra={"resource_id": record.id, "vendor_type": "sony"})
"""

import json
import logging
import logging.handlers
import sys
from typing import Optional

DEFAULT_LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Third-party loggers that are too chatty at INFO for a request-per-thread service.
NOISY_LOGGERS = ("urllib3", "httpx", "uvicorn.access")

CONTEXT_FIELDS = ("resource_id", "vendor_type")


class StructuredLogFormatter(logging.Formatter):
    """
    Renders a log record as a single JSON line.

    Standard fields are timestamp, level, logger and message. `resource_id` and `vendor_type`
    are copied when present on the record, and an `extra_fields` mapping is merged in as-is.
    """

    def format(self, record):
        payload = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value:
                payload[field] = value
        payload.update(getattr(record, 'extra_fields', None) or {})
        if record.exc_info:
            payload['exception'] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _resolve_level(level_name: str, default_level: int) -> int:
    level = logging.getLevelName(level_name.upper())
    if isinstance(level, int):
        return level
    print(f"Warning: Invalid log level '{level_name}', falling back to {logging.getLevelName(default_level)}.", file=sys.stderr)
    return default_level


def _file_handler(config: dict) -> Optional[logging.Handler]:
    path = config.get('file_path')
    if not path:
        return None
    try:
        return logging.handlers.RotatingFileHandler(
            path,
            maxBytes=int(config.get('max_bytes', 5 * 1024 * 1024)),
            backupCount=int(config.get('backup_count', 3)),
            encoding='utf-8',
        )
    except OSError as e:
        print(f"Error setting up file logging to {path}: {e}. File logging will be disabled.", file=sys.stderr)
        return None


def setup_app_logging(config: dict = None, default_level=logging.INFO) -> None:
    """
    Configure the root logger for the whole application.

    Existing root handlers are replaced, so calling this twice (for example once on import and
    once from the server entry point) does not duplicate output.

    Args:
        config (dict, optional): Logging settings. Recognized keys:
            - 'level': Log level name, e.g. "DEBUG" or "INFO".
            - 'file_path': Rotating log file; empty or missing disables file output.
            - 'max_bytes': Rotation size of the log file.
            - 'backup_count': Rotated files to keep.
            - 'date_format': strftime format for the timestamp field.
        default_level (int, optional): Level used when 'level' is missing or invalid.
    """
    config = config or {}
    level_name = str(config.get('level', logging.getLevelName(default_level)))
    level = _resolve_level(level_name, default_level)
    formatter = StructuredLogFormatter(datefmt=config.get('date_format', DEFAULT_LOG_DATE_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    handlers = [logging.StreamHandler(sys.stdout), _file_handler(config)]
    for handler in handlers:
        if handler is not None:
            handler.setFormatter(formatter)
            root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logging.getLogger("LoggingConfig").info("Application logging setup complete. Level: %s", level_name.upper())

"""
Logging Configuration for Reconciliation Tooling

Console and structured JSON handlers shared by the CLI and by callers that
embed the comparison engine.
"""

import os
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from src.utils.run_context import run_id_filter

CONSOLE_FORMAT = '[%(asctime)s] %(levelname)s - %(message)s'
CONSOLE_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class StructuredJSONFormatter(logging.Formatter):
    """JSON formatter with run id support."""

    EXTRA_FIELDS = {
        'folder': 'folder',
        'strategy': 'strategy',
        'source': 'source',
        'duration': 'duration_seconds',
    }

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'run_id': getattr(record, 'run_id', 'N/A'),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        # Add extra fields
        for attribute, key in self.EXTRA_FIELDS.items():
            if hasattr(record, attribute):
                log_data[key] = getattr(record, attribute)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def json_logging_requested() -> bool:
    """Check the JSON_LOGGING environment switch."""
    return os.getenv('JSON_LOGGING', 'false').lower() == 'true'


def configure_logging(
    level: int = logging.INFO,
    json_output: Optional[bool] = None,
    logger_name: str = "src"
) -> logging.Logger:
    """
    Attach a console or JSON handler to the engine's logger hierarchy.

    Args:
        level: Logging level
        json_output: Force JSON (True) or console (False); defaults to JSON_LOGGING
        logger_name: Root of the logger hierarchy to configure

    Returns:
        The configured logger
    """
    if json_output is None:
        json_output = json_logging_requested()

    handler = logging.StreamHandler()
    handler.addFilter(run_id_filter)
    if json_output:
        handler.setFormatter(StructuredJSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATE_FORMAT))

    target = logging.getLogger(logger_name)
    for existing in list(target.handlers):
        target.removeHandler(existing)
    target.addHandler(handler)
    target.setLevel(level)
    target.propagate = False

    return target

"""Structured JSON logging for the symalg component loggers.

Every module logs to ``symalg.<component>``. Records are rendered as one JSON
object per line carrying the component name, the structured fields the call
site attaches under ``extra={'extra_data': {...}}`` (rule counts from the
simplifier, moduli and prime counts from the polynomial kernel) and, for
core failures, the error kind.
"""

import logging
import json
import threading
import time
from datetime import datetime, timezone
from typing import Dict, Optional

from .errors import SymalgError

ROOT_LOGGER = 'symalg'

# Component loggers used across the package
COMPONENTS = ['simplify', 'rewrite', 'functions', 'poly', 'ntt', 'gcd', 'policy']


def component_of(logger_name: str) -> Optional[str]:
    """'symalg.gcd' -> 'gcd'; None outside the package."""
    prefix = ROOT_LOGGER + '.'
    if logger_name.startswith(prefix):
        return logger_name[len(prefix):]
    return None


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "component": component_of(record.name),
            "message": record.getMessage(),
            "thread": threading.current_thread().name,
        }

        # Add extra fields if present
        if hasattr(record, 'extra_data'):
            log_entry.update(record.extra_data)

        if record.exc_info:
            error = record.exc_info[1]
            if isinstance(error, SymalgError):
                log_entry["error_kind"] = error.kind.value
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level=logging.INFO, log_file=None,
                  component_levels: Optional[Dict[str, int]] = None):
    """Setup structured JSON logging for symalg components.

    The library never calls this itself; hosts opt in. ``component_levels``
    overrides the level of individual components, e.g. ``{'ntt': WARNING}``
    to silence twiddle-table builds while debugging the GCD.

    Raises:
        ValueError: If component_levels names an unknown component
    """
    component_levels = component_levels or {}
    unknown = set(component_levels) - set(COMPONENTS)
    if unknown:
        raise ValueError(f"Unknown logging components: {sorted(unknown)}")

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)

    # Remove existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    formatter = JSONFormatter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    for comp in COMPONENTS:
        comp_logger = logging.getLogger(f'{ROOT_LOGGER}.{comp}')
        comp_logger.setLevel(component_levels.get(comp, level))
        comp_logger.propagate = True

    return logger


class Timer:
    """Context manager measuring wall time of a core call."""

    def __init__(self, name=""):
        self.name = name
        self.start_time = None
        self.end_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.perf_counter()

    def elapsed_ms(self):
        if self.start_time is None:
            return 0.0
        end = self.end_time if self.end_time is not None else time.perf_counter()
        return (end - self.start_time) * 1000

    def fields(self) -> Dict[str, object]:
        """Structured fields for ``extra_data``."""
        return {'operation': self.name, 'elapsed_ms': round(self.elapsed_ms(), 3)}

"""
Configuration read from the environment.

Values are looked up at call time so that tests and the CLI can change
them with ``os.environ`` without reloading the module.
"""

import logging
import os

logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT = 30.0
DEFAULT_DIALECT = "py"
DEFAULT_LOG_LEVEL = "WARNING"


def float_from_env(var: str, default: float) -> float:
    raw = os.environ.get(var)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("ignoring %s=%r (not a number)", var, raw)
        return default


def get_default_timeout() -> float:
    """Execution budget in seconds; 0 or less disables the timeout."""
    return float_from_env("NANAKO_TIMEOUT", DEFAULT_TIMEOUT)


def get_default_dialect() -> str:
    return os.environ.get("NANAKO_EMIT_DIALECT", DEFAULT_DIALECT).strip().lower() or DEFAULT_DIALECT


def get_log_level() -> str:
    return os.environ.get("NANAKO_LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper() or DEFAULT_LOG_LEVEL

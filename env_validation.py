"""Environment variable validation and management."""

import os
import logging
from typing import Dict, Optional

from schemas import MAX_HISTORY_LENGTH

logger = logging.getLogger(__name__)

class EnvironmentError(Exception):
    """Raised when required environment variables are missing or invalid."""
    pass

_POSITIVE_INT_VARS: Dict[str, str] = {
    "SESSION_HISTORY_LIMIT": "Number of session summaries kept per learner",
    "MASTERY_WINDOW": "Attempts per emotion used for mastery classification",
}

_POSITIVE_FLOAT_VARS: Dict[str, str] = {
    "QUESTION_TIME_LIMIT": "Base seconds allowed per question",
}

_DEFAULTS: Dict[str, str] = {
    "DB_PATH": "progress.db",
    "SESSION_HISTORY_LIMIT": "20",
    "MASTERY_WINDOW": "10",
    "QUESTION_TIME_LIMIT": "25",
}


def validate_environment() -> None:
    """Validate engine configuration variables.

    Raises EnvironmentError if validation fails.
    """
    # Apply defaults before validation so dependent modules see consistent values.
    for var, value in _DEFAULTS.items():
        if not os.getenv(var):
            os.environ[var] = value
            logger.info("Environment variable %s not set; using default '%s'", var, value)

    for var, description in _POSITIVE_INT_VARS.items():
        value = get_env_int(var)
        if value is None or value <= 0:
            raise EnvironmentError(f"{var} ({description}) must be a positive integer")

    for var, description in _POSITIVE_FLOAT_VARS.items():
        number = get_env_float(var)
        if number is None or number <= 0:
            raise EnvironmentError(f"{var} ({description}) must be a positive number")

    if get_env_int("SESSION_HISTORY_LIMIT") > MAX_HISTORY_LENGTH:
        raise EnvironmentError(f"SESSION_HISTORY_LIMIT may not exceed {MAX_HISTORY_LENGTH}")

    seed = os.getenv("CURRICULUM_RANDOM_SEED")
    if seed is None:
        logger.warning(
            "Optional environment variable not set: CURRICULUM_RANDOM_SEED (selection is not reproducible)"
        )
    else:
        get_env_int("CURRICULUM_RANDOM_SEED")


def get_env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    """Get integer value from environment variable."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise EnvironmentError(f"Invalid integer for {name}: {value}") from exc


def get_env_float(name: str, default: Optional[float] = None) -> Optional[float]:
    """Get float value from environment variable."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise EnvironmentError(f"Invalid number for {name}: {value}") from exc

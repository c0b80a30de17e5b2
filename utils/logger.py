"""
Logging utility functions and helpers.
"""

import logging
from typing import Any, Dict


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Module name (usually __name__)

    Returns:
        Configured logger

    Usage:
        from utils.logger import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


def sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Remove credential material from log data.

    Tokens are shown as their first 8 characters, passwords and secrets are
    fully redacted. Nested dictionaries are sanitized recursively.

    Args:
        data: Dictionary that may contain sensitive fields

    Returns:
        Sanitized copy safe for logging
    """
    sensitive_fields = {
        'password', 'token', 'secret', 'authorization', 'cookie'
    }

    sanitized = data.copy()

    for key, value in sanitized.items():
        if isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)
            continue

        lowered = key.lower()
        if not any(sensitive in lowered for sensitive in sensitive_fields):
            continue

        # Hashes are one-way and safe to correlate on
        if lowered.endswith('_hash'):
            continue

        if isinstance(value, str) and 'token' in lowered and len(value) > 8:
            sanitized[key] = f"{value[:8]}..."
        else:
            sanitized[key] = "***REDACTED***"

    return sanitized

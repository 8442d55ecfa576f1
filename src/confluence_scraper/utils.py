"""Utility helpers for parsing config values."""

from __future__ import annotations

import os
import re
from datetime import datetime, timedelta, timezone
from typing import Any


def utc_now() -> datetime:
    """Get the current UTC datetime.

    Returns:
        datetime: Timezone-aware current UTC time.
    """
    return datetime.now(timezone.utc)


def parse_frequency(expr: str) -> timedelta:
    """Convert a frequency string to a timedelta.

    Args:
        expr: Frequency expression such as '5min', '1h', '1d', '1w', '1m', or '1mon'.

    Returns:
        timedelta: Duration represented by the expression.

    Raises:
        ValueError: If the expression does not match expected formats.
    """
    match = re.fullmatch(r"(\d+)(min|m|h|d|w|mon)", expr.strip())
    if not match:
        raise ValueError(f"Invalid frequency '{expr}'")
    value = int(match.group(1))
    unit = match.group(2)
    if unit in ("min", "m"):
        return timedelta(minutes=value)
    if unit == "h":
        return timedelta(hours=value)
    if unit == "d":
        return timedelta(days=value)
    if unit == "w":
        return timedelta(weeks=value)
    if unit == "mon":
        # Treat months as 30 days for scheduling purposes.
        return timedelta(days=value * 30)
    raise ValueError(f"Unsupported frequency unit '{unit}'")  # pragma: no cover


def parse_duration(expr: str) -> float:
    """Convert a timeout string such as '500ms', '5s', '1m' or '1h' to seconds."""
    match = re.fullmatch(r"(\d+(?:\.\d+)?)(ms|s|min|m|h|d)", expr.strip())
    if not match:
        raise ValueError(f"Invalid duration '{expr}'")
    value = float(match.group(1))
    unit = match.group(2)
    if unit == "ms":
        return value / 1000.0
    if unit == "s":
        return value
    if unit in ("min", "m"):
        return value * 60
    if unit == "h":
        return value * 3600
    return value * 86400


def resolve_env(obj: Any) -> Any:
    """Recursively resolve environment placeholders in config structures.

    Strings of the form "${VAR}" are replaced by the value of VAR if set.
    If a string exactly matches an environment variable name, that variable's
    value is also substituted. Non-string values are traversed recursively.
    """
    if isinstance(obj, str):
        if obj.startswith("${") and obj.endswith("}"):
            key = obj[2:-1]
            return os.getenv(key, obj)
        if obj in os.environ:
            return os.getenv(obj, obj)
        return obj
    if isinstance(obj, list):
        return [resolve_env(item) for item in obj]
    if isinstance(obj, dict):
        return {k: resolve_env(v) for k, v in obj.items()}
    return obj

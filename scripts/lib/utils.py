"""
Utility functions for Solar Ops Hub.
Lenient value parsing, date math, rounding and atomic file writes.

Usage:
    from scripts.lib.utils import safe_float, parse_ts, round_half_up, atomic_write_json
"""
import json
import math
import os
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, localcontext
from pathlib import Path
from typing import Any, Dict, Optional

from scripts.lib.logger import setup_logger

logger = setup_logger(__name__)


def safe_float(val: Any, default: Optional[float] = None) -> Optional[float]:
    """
    Convert a value to a finite float.

    Booleans, unparsable strings, NaN and ±Infinity all yield ``default``.
    """
    if val is None or isinstance(val, bool):
        return default
    if isinstance(val, str):
        val = val.strip()
        if not val:
            return default
    try:
        number = float(val)
    except (ValueError, TypeError, OverflowError):
        return default
    if not math.isfinite(number):
        return default
    return number


def parse_ts(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp into a timezone-aware datetime.

    Accepts ISO-8601 strings (with or without trailing Z / offset),
    date-only strings, datetime/date objects and epoch milliseconds.
    Naive values are taken as UTC.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def days_between(dt1: Optional[datetime], dt2: Optional[datetime]) -> Optional[float]:
    """Return the absolute number of days between two datetimes, or None."""
    if dt1 is None or dt2 is None:
        return None
    delta = abs((dt2 - dt1).total_seconds())
    return delta / 86400.0


def round_half_up(value: float, digits: int = 0) -> float:
    """
    Round halves away from zero (2.5 -> 3.0; 0.25 -> 0.3 at one decimal).

    Works for any finite float, however large; non-finite input comes back unchanged.
    """
    if not math.isfinite(value):
        return value
    number = Decimal(str(value))
    exponent = Decimal(1).scaleb(-digits)
    with localcontext() as ctx:
        # quantize needs room for every integer digit plus the requested decimals
        ctx.prec = max(ctx.prec, number.adjusted() + digits + 2)
        return float(number.quantize(exponent, rounding=ROUND_HALF_UP))


def atomic_write_json(data: Dict, file_path: str | Path, indent: int = 2) -> bool:
    """
    Write JSON data to file atomically using temp file + rename.
    Prevents data corruption if the program crashes during write.

    Args:
        data: Dictionary to serialize as JSON.
        file_path: Target file path.
        indent: JSON indentation level.

    Returns:
        True if successful, False otherwise.
    """
    file_path = Path(file_path)
    temp_path = file_path.with_suffix(file_path.suffix + ".tmp")

    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=indent, default=str)

        os.replace(temp_path, file_path)
        logger.debug("Atomically wrote JSON to %s", file_path)
        return True

    except Exception as e:
        logger.error("Failed to write JSON to %s: %s", file_path, e)
        if temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass
        return False

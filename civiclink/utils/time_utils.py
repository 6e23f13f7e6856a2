"""
civiclink/utils/time_utils.py

Purpose: Time helpers

- Date-bucket format validation for analytics
- UTC timestamps at MongoDB precision
"""

import re
from datetime import datetime, timezone

# Format specifiers accepted by $dateToString that make sense as buckets
ALLOWED_SPECIFIERS = {"Y", "m", "d", "H", "M", "j", "U", "G", "V", "u", "%"}


def is_valid_timespan(timespan: str) -> bool:
    """
    Checks a caller-supplied date bucket format such as "%Y-%m".
    """
    if not timespan or len(timespan) > 32:
        return False

    specifiers = re.findall(r"%(.)", timespan)
    if not specifiers:
        return False

    return all(spec in ALLOWED_SPECIFIERS for spec in specifiers)


def utc_now() -> datetime:
    """
    Current UTC time as a naive datetime (how pymongo returns dates),
    truncated to milliseconds, the precision MongoDB stores.
    """
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)

"""Normalize free-text "time since last access" strings.

Values look like ``"3 days 19 hours"``, ``"228 days 20 hours"`` or
``"43 mins 56 secs"``. ``"never"``, ``""`` and a missing value mean the user
never accessed the platform; ``"now"`` means the current instant.

This is a heuristic reader, not a grammar: each unit is matched on its own and
any text that matches no unit is ignored.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Optional

NEVER_TOKENS = {"never", ""}
NOW_TOKEN = "now"

YEARS_RE = re.compile(r"(\d+)\s*years?", re.IGNORECASE)
DAYS_RE = re.compile(r"(\d+)\s*days?", re.IGNORECASE)
HOURS_RE = re.compile(r"(\d+)\s*(?:hours?|hrs?)", re.IGNORECASE)
MINUTES_RE = re.compile(r"(\d+)\s*min", re.IGNORECASE)
SECONDS_RE = re.compile(r"(\d+)\s*sec", re.IGNORECASE)


def _unit(pattern: re.Pattern, text: str) -> int:
    match = pattern.search(text)
    return int(match.group(1)) if match else 0


def elapsed_since(value: object) -> Optional[timedelta]:
    """Return the elapsed time described by ``value``, or None for never/empty."""
    if value is None:
        return None
    text = str(value).strip()
    lowered = text.lower()
    if lowered in NEVER_TOKENS:
        return None
    if lowered == NOW_TOKEN:
        return timedelta(0)

    days = _unit(DAYS_RE, text)
    year_match = YEARS_RE.search(text)
    try:
        if year_match:
            # Year values keep only whole days; hours/minutes/seconds are dropped.
            return timedelta(days=int(year_match.group(1)) * 365 + days)

        return timedelta(
            days=days,
            hours=_unit(HOURS_RE, text),
            minutes=_unit(MINUTES_RE, text),
            seconds=_unit(SECONDS_RE, text),
        )
    except OverflowError:
        return timedelta.max


def parse_last_access(value: object, now: Optional[datetime] = None) -> Optional[datetime]:
    """Resolve a last-access string to an absolute timestamp.

    Returns None when the user never accessed; callers must check for it
    before doing any date math.
    """
    elapsed = elapsed_since(value)
    if elapsed is None:
        return None
    now = now or datetime.now()
    try:
        return now - elapsed
    except OverflowError:
        # Clamp to the oldest representable instant.
        return datetime.min

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Tuple


DATA_DIR = Path(__file__).resolve().parents[1]
SIGNUPS_PATH = DATA_DIR / "wp_users.csv"
PLATFORM_PATH = DATA_DIR / "platform_users.json"

TARGET_YEARS_DEFAULT = (2024, 2025)
DAILY_WINDOW_DEFAULT = 30
DAILY_WINDOW_MAX = 366


@dataclass(frozen=True)
class RecencyThresholds:
    last_7: int = 7
    last_30: int = 30
    last_90: int = 90
    last_180: int = 180

    def as_days(self) -> Tuple[int, int, int, int]:
        return (self.last_7, self.last_30, self.last_90, self.last_180)


@dataclass(frozen=True)
class DashboardConfig:
    signups_source: str = str(SIGNUPS_PATH)
    platform_source: str = str(PLATFORM_PATH)
    target_years: Tuple[int, ...] = TARGET_YEARS_DEFAULT
    date_column: str = "signup_date"
    count_column: str = "signups"
    last_access_field: str = "lastaccess"
    daily_window_days: int = DAILY_WINDOW_DEFAULT
    thresholds: RecencyThresholds = field(default_factory=RecencyThresholds)
    request_timeout: Optional[float] = None


def _as_year_tuple(values: Optional[Iterable[object]]) -> Tuple[int, ...]:
    if not values:
        return ()
    out = []
    for v in values:
        try:
            year = int(v)
        except Exception:
            continue
        if year not in out:
            out.append(year)
    return tuple(out)


def _as_int(value: object, default: int) -> int:
    try:
        return int(value)
    except Exception:
        return default


def normalize_config(raw: dict) -> DashboardConfig:
    defaults = DashboardConfig()

    target_years = _as_year_tuple(raw.get("target_years")) or defaults.target_years

    daily_window_days = _as_int(raw.get("daily_window_days", DAILY_WINDOW_DEFAULT), DAILY_WINDOW_DEFAULT)
    daily_window_days = max(1, min(DAILY_WINDOW_MAX, daily_window_days))

    t = raw.get("thresholds") or {}
    if isinstance(t, (list, tuple)):
        t = dict(zip(["last_7", "last_30", "last_90", "last_180"], t))
    days = sorted(
        [
            _as_int(t.get("last_7", 7), 7),
            _as_int(t.get("last_30", 30), 30),
            _as_int(t.get("last_90", 90), 90),
            _as_int(t.get("last_180", 180), 180),
        ]
    )
    # Bucket edges must be strictly increasing.
    thresholds = RecencyThresholds(*days) if len(set(days)) == len(days) else RecencyThresholds()

    timeout = raw.get("request_timeout")
    try:
        request_timeout = float(timeout) if timeout is not None else None
    except Exception:
        request_timeout = None
    if request_timeout is not None and request_timeout <= 0:
        request_timeout = None

    def _text(key: str, default: str) -> str:
        value = raw.get(key)
        if value is None:
            return default
        value = str(value).strip()
        return value or default

    return DashboardConfig(
        signups_source=_text("signups_source", defaults.signups_source),
        platform_source=_text("platform_source", defaults.platform_source),
        target_years=target_years,
        date_column=_text("date_column", defaults.date_column),
        count_column=_text("count_column", defaults.count_column),
        last_access_field=_text("last_access_field", defaults.last_access_field),
        daily_window_days=daily_window_days,
        thresholds=thresholds,
        request_timeout=request_timeout,
    )

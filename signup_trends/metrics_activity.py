from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from signup_trends.durations import parse_last_access
from signup_trends.models import NEVER_ACCESSED, ActivitySnapshot, DailyActiveCount, PlatformUserRecord
from signup_trends.settings import DashboardConfig, RecencyThresholds

SECONDS_PER_DAY = 86400.0


def recency_labels(thresholds: RecencyThresholds) -> List[str]:
    days = thresholds.as_days()
    return [f"Last {d} days" for d in days] + [f"More than {days[-1]} days"]


def bucket_labels(thresholds: RecencyThresholds) -> List[str]:
    return recency_labels(thresholds) + [NEVER_ACCESSED]


def classify_ages(ages_days: pd.Series, thresholds: RecencyThresholds) -> pd.Series:
    """Bucket ages (in days) so each bucket is closed on its upper edge: 7.0 is "Last 7 days"."""
    bins = [-np.inf, *thresholds.as_days(), np.inf]
    return pd.cut(ages_days.astype(float), bins=bins, labels=recency_labels(thresholds), right=True)


def classify_recency(age: timedelta, thresholds: Optional[RecencyThresholds] = None) -> str:
    thresholds = thresholds or RecencyThresholds()
    ages = pd.Series([age.total_seconds() / SECONDS_PER_DAY])
    return str(classify_ages(ages, thresholds).iloc[0])


def daily_active_series(instants: Iterable[datetime], now: datetime, days: int = 30) -> List[DailyActiveCount]:
    """Count instants per local calendar day for the ``days`` days ending today, oldest first."""
    # Only instants inside the window reach pandas; older ones may predate datetime64[ns].
    window_start = datetime.combine(now.date() - timedelta(days=days - 1), time.min, tzinfo=now.tzinfo)
    window_end = datetime.combine(now.date() + timedelta(days=1), time.min, tzinfo=now.tzinfo)
    in_window = [i for i in instants if window_start <= i < window_end]

    today = pd.Timestamp(now).normalize()
    window = pd.date_range(end=today, periods=days, freq="D")
    stamps = pd.Series(pd.to_datetime(in_window), dtype="datetime64[ns]")
    counts = stamps.dt.normalize().value_counts().reindex(window, fill_value=0)
    return [
        DailyActiveCount(day=ts.date(), label=f"{ts.month}/{ts.day}", active_users=int(n))
        for ts, n in counts.items()
    ]


def _field(obj: Mapping[str, Any], name: str) -> Any:
    if name in obj:
        return obj[name]
    lowered = name.lower()
    for key, value in obj.items():
        if str(key).lower() == lowered:
            return value
    return None


def build_platform_users(
    objects: Iterable[Mapping[str, Any]],
    config: Optional[DashboardConfig] = None,
    now: Optional[datetime] = None,
) -> List[PlatformUserRecord]:
    """Resolve each user's last-access text against one shared ``now``."""
    config = config or DashboardConfig()
    now = now or datetime.now()
    out: List[PlatformUserRecord] = []
    for obj in objects:
        raw_value = _field(obj, config.last_access_field)
        out.append(
            PlatformUserRecord(
                last_access_raw=str(raw_value) if raw_value is not None else None,
                last_access=parse_last_access(raw_value, now=now),
                raw=dict(obj),
            )
        )
    return out


def compute_activity_snapshot(
    records: Sequence[PlatformUserRecord],
    now: Optional[datetime] = None,
    config: Optional[DashboardConfig] = None,
) -> ActivitySnapshot:
    config = config or DashboardConfig()
    now = now or datetime.now()
    active = tuple(r for r in records if r.last_access is not None)
    inactive = tuple(r for r in records if r.last_access is None)

    ages = pd.Series([(now - r.last_access).total_seconds() / SECONDS_PER_DAY for r in active], dtype=float)
    bucket_counts = {label: 0 for label in bucket_labels(config.thresholds)}
    for label, n in classify_ages(ages, config.thresholds).value_counts().items():
        bucket_counts[str(label)] = int(n)
    bucket_counts[NEVER_ACCESSED] = len(inactive)

    daily = daily_active_series([r.last_access for r in active], now, days=config.daily_window_days)
    return ActivitySnapshot(
        total_users=len(records),
        active_users=active,
        inactive_users=inactive,
        bucket_counts=bucket_counts,
        daily_active_series=tuple(daily),
        generated_at=now,
    )


def compute_platform_activity(config: DashboardConfig, ctx: Dict[str, Any]) -> Dict[str, Any]:
    snapshot: Optional[ActivitySnapshot] = ctx.get("activity")
    if snapshot is None:
        snapshot = compute_activity_snapshot([], config=config)
    source = ctx.get("platform")

    total = snapshot.total_users
    active = len(snapshot.active_users)
    kpis = {
        "total_users": total,
        "active_users": active,
        "inactive_users": len(snapshot.inactive_users),
        "active_rate": (active / total) if total else None,
    }
    return {
        "config": asdict(config),
        "status": source.status if source is not None else "unavailable",
        "error": source.error if source is not None else None,
        "generated_at": snapshot.generated_at.isoformat(),
        "kpis": kpis,
        "buckets": [{"label": label, "count": count} for label, count in snapshot.bucket_counts.items()],
        "daily_active": [
            {"day": d.day.isoformat(), "label": d.label, "active_users": d.active_users}
            for d in snapshot.daily_active_series
        ],
    }

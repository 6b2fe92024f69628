"""Record types produced by the loaders and the compute functions.

Everything here is a frozen dataclass so a result can be handed to the
presentation layer without it being mutated underneath the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional, Tuple

SourceStatus = Literal["ok", "unavailable"]
DashboardStatus = Literal["ok", "partial", "unavailable"]

NEVER_ACCESSED = "Never accessed"


@dataclass(frozen=True)
class SignupRecord:
    signup_date: str
    signup_count: int
    display_date: Optional[str]
    month_label: Optional[str]
    cumulative_count: int


@dataclass(frozen=True)
class MonthlyBucket:
    month_label: str
    month_key: str
    month_index: int
    total_signups: int


@dataclass(frozen=True)
class YearHighlights:
    year: int
    total_signups: int
    peak_month_label: Optional[str]
    peak_month_signups: int
    average_monthly_signups: Optional[int]
    first_date: Optional[str]
    last_date: Optional[str]


@dataclass(frozen=True)
class CohortReport:
    years: Dict[int, List[SignupRecord]] = field(default_factory=dict)
    monthly: Dict[int, List[MonthlyBucket]] = field(default_factory=dict)
    dropped_records: int = 0
    undated_records: int = 0


@dataclass(frozen=True)
class PlatformUserRecord:
    last_access_raw: Optional[str]
    last_access: Optional[datetime]
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def never_accessed(self) -> bool:
        return self.last_access is None


@dataclass(frozen=True)
class DailyActiveCount:
    day: date
    label: str
    active_users: int


@dataclass(frozen=True)
class ActivitySnapshot:
    total_users: int
    active_users: Tuple[PlatformUserRecord, ...]
    inactive_users: Tuple[PlatformUserRecord, ...]
    bucket_counts: Dict[str, int]
    daily_active_series: Tuple[DailyActiveCount, ...]
    generated_at: datetime


@dataclass(frozen=True)
class SourceResult:
    source: str
    status: SourceStatus
    records: Tuple[Any, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @classmethod
    def loaded(cls, source: str, records) -> "SourceResult":
        return cls(source=source, status="ok", records=tuple(records))

    @classmethod
    def unavailable(cls, source: str, error: object) -> "SourceResult":
        return cls(source=source, status="unavailable", records=(), error=str(error))


@dataclass(frozen=True)
class DashboardResult:
    signups: SourceResult
    platform: SourceResult
    cohorts: CohortReport
    activity: ActivitySnapshot

    @property
    def status(self) -> DashboardStatus:
        loaded = [self.signups.ok, self.platform.ok]
        if all(loaded):
            return "ok"
        if any(loaded):
            return "partial"
        return "unavailable"

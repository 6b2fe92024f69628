from __future__ import annotations

import logging
import re
from dataclasses import asdict
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from signup_trends.models import CohortReport, MonthlyBucket, SignupRecord, YearHighlights
from signup_trends.settings import DashboardConfig

logger = logging.getLogger(__name__)

MONTH_ORDER = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
YEAR_SPLIT_RE = re.compile(r"[-/.T\s]")
FRAME_COLUMNS = ["signup_date", "signups", "year", "parsed_date"]
# Largest count that survives the float -> int64 cast exactly.
MAX_DAILY_COUNT = 2**53


def signup_year(value: object) -> Optional[str]:
    """Lexical year: everything before the first date separator."""
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    return YEAR_SPLIT_RE.split(s, maxsplit=1)[0]


def parse_signup_date(value: object) -> Optional[pd.Timestamp]:
    if value is None:
        return None
    ts = pd.to_datetime(str(value).strip(), errors="coerce")
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts


def display_date(ts: Optional[pd.Timestamp]) -> Optional[str]:
    if ts is None or pd.isna(ts):
        return None
    return f"{ts.month}/{ts.day}"


def month_label(ts: Optional[pd.Timestamp]) -> Optional[str]:
    if ts is None or pd.isna(ts):
        return None
    return MONTH_ORDER[ts.month - 1]


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def _count_value(value: object) -> object:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        try:
            return float(value)
        except OverflowError:
            return None
    return value


def signup_frame(records: Iterable[Mapping[str, Any]], config: DashboardConfig) -> pd.DataFrame:
    """Flatten parsed CSV rows into one frame with year and parsed-date columns."""
    rows = []
    for r in records:
        raw_date = r.get(config.date_column)
        signup_date = str(raw_date).strip() if raw_date is not None else None
        rows.append({"signup_date": signup_date or None, "signups": _count_value(r.get(config.count_column))})
    df = pd.DataFrame(rows, columns=["signup_date", "signups"])
    counts = pd.to_numeric(df["signups"], errors="coerce").replace([np.inf, -np.inf], np.nan)
    df["signups"] = counts.fillna(0).clip(lower=0, upper=MAX_DAILY_COUNT).astype(int)
    df["year"] = df["signup_date"].apply(signup_year)
    df["parsed_date"] = df["signup_date"].apply(parse_signup_date)
    return df[FRAME_COLUMNS]


def _year_series(df: pd.DataFrame, year: int) -> List[SignupRecord]:
    year_df = df[df["year"] == str(year)].copy()
    if year_df.empty:
        return []
    year_df["sort_key"] = pd.to_datetime(year_df["parsed_date"])
    year_df = year_df.sort_values("sort_key", kind="mergesort", na_position="last")
    year_df["cumulative"] = year_df["signups"].cumsum()
    return [
        SignupRecord(
            signup_date=row.signup_date,
            signup_count=int(row.signups),
            display_date=display_date(row.parsed_date),
            month_label=month_label(row.parsed_date),
            cumulative_count=int(row.cumulative),
        )
        for row in year_df.itertuples(index=False)
    ]


def build_year_series(records: Iterable[Mapping[str, Any]], year: int, config: DashboardConfig) -> List[SignupRecord]:
    """Records of one year, sorted by date, with a running signup total."""
    return _year_series(signup_frame(records, config), year)


def monthly_buckets(series: Sequence[SignupRecord]) -> List[MonthlyBucket]:
    """Sum signups per calendar month, ordered Jan..Dec rather than by first appearance."""
    rows = []
    for record in series:
        ts = parse_signup_date(record.signup_date)
        if ts is None:
            continue
        rows.append({"month_key": f"{ts.year:04d}-{ts.month:02d}", "month_index": ts.month - 1, "signups": record.signup_count})
    if not rows:
        return []
    grouped = (
        pd.DataFrame(rows)
        .groupby(["month_key", "month_index"], as_index=False)["signups"]
        .sum()
        .sort_values(["month_index", "month_key"], kind="mergesort")
    )
    return [
        MonthlyBucket(
            month_label=MONTH_ORDER[int(row.month_index)],
            month_key=row.month_key,
            month_index=int(row.month_index),
            total_signups=int(row.signups),
        )
        for row in grouped.itertuples(index=False)
    ]


def build_cohorts(records: Iterable[Mapping[str, Any]], config: DashboardConfig) -> CohortReport:
    df = signup_frame(records, config)
    targets = [str(y) for y in config.target_years]
    in_target = df["year"].isin(targets)
    dropped = int((~in_target).sum())
    undated = int((in_target & df["parsed_date"].isna()).sum())
    if dropped:
        logger.info("excluded %d signup record(s) outside target years %s", dropped, ", ".join(targets))

    years = {year: _year_series(df, year) for year in config.target_years}
    monthly = {year: monthly_buckets(series) for year, series in years.items()}
    return CohortReport(years=years, monthly=monthly, dropped_records=dropped, undated_records=undated)


def year_highlights(year: int, series: Sequence[SignupRecord], buckets: Sequence[MonthlyBucket]) -> YearHighlights:
    peak: Optional[MonthlyBucket] = None
    for bucket in buckets:
        if bucket.total_signups > (peak.total_signups if peak else 0):
            peak = bucket

    average = None
    if buckets:
        average = int(round_half_up(sum(b.total_signups for b in buckets) / len(buckets)))

    dated = [r for r in series if r.display_date is not None]
    return YearHighlights(
        year=year,
        total_signups=series[-1].cumulative_count if series else 0,
        peak_month_label=peak.month_label if peak else None,
        peak_month_signups=peak.total_signups if peak else 0,
        average_monthly_signups=average,
        first_date=dated[0].signup_date if dated else None,
        last_date=dated[-1].signup_date if dated else None,
    )


def monthly_comparison(report: CohortReport) -> List[Dict[str, Any]]:
    """One row per calendar month with a signup column for each target year."""
    by_month: Dict[int, Dict[str, Any]] = {}
    years = list(report.monthly.keys())
    for year, buckets in report.monthly.items():
        for bucket in buckets:
            row = by_month.setdefault(
                bucket.month_index,
                {"month": bucket.month_label, "month_index": bucket.month_index, **{str(y): 0 for y in years}},
            )
            row[str(year)] += bucket.total_signups
    return [by_month[idx] for idx in sorted(by_month)]


def compute_signup_trends(config: DashboardConfig, ctx: Dict[str, Any]) -> Dict[str, Any]:
    report: CohortReport = ctx.get("cohorts") or CohortReport()
    source = ctx.get("signups")

    highlights = {
        str(year): asdict(year_highlights(year, series, report.monthly.get(year, [])))
        for year, series in report.years.items()
    }
    firsts = [h["first_date"] for h in highlights.values() if h["first_date"]]
    lasts = [h["last_date"] for h in highlights.values() if h["last_date"]]
    data_range = {
        "start": min(firsts, key=parse_signup_date) if firsts else None,
        "end": max(lasts, key=parse_signup_date) if lasts else None,
    }

    return {
        "config": asdict(config),
        "status": source.status if source is not None else "unavailable",
        "error": source.error if source is not None else None,
        "years": {str(year): [asdict(r) for r in series] for year, series in report.years.items()},
        "monthly": {str(year): [asdict(b) for b in buckets] for year, buckets in report.monthly.items()},
        "comparison": monthly_comparison(report),
        "highlights": highlights,
        "data_range": data_range,
        "dropped_records": report.dropped_records,
        "undated_records": report.undated_records,
    }

import json

from signup_trends.metrics_signups import (
    build_cohorts,
    build_year_series,
    compute_signup_trends,
    monthly_buckets,
    monthly_comparison,
    signup_year,
    year_highlights,
)
from signup_trends.models import CohortReport, SignupRecord, SourceResult
from signup_trends.settings import DashboardConfig

CONFIG = DashboardConfig()


def rows(*pairs):
    return [{"signup_date": d, "signups": n} for d, n in pairs]


def test_signup_year_is_lexical():
    assert signup_year("2024-01-26") == "2024"
    assert signup_year("2025/03/01") == "2025"
    assert signup_year("2024-01-26T10:00:00") == "2024"
    assert signup_year("") is None
    assert signup_year(None) is None


def test_cumulative_running_total():
    series = build_year_series(rows(("2024-01-26", 5), ("2024-01-27", 3)), 2024, CONFIG)
    assert [r.cumulative_count for r in series] == [5, 8]
    assert series[0].display_date == "1/26"
    assert series[0].month_label == "Jan"


def test_series_sorted_by_date_and_reset_per_year():
    records = rows(("2024-02-01", 2), ("2025-01-02", 7), ("2024-01-15", 1), ("2025-01-01", 3))
    report = build_cohorts(records, CONFIG)
    assert [r.signup_date for r in report.years[2024]] == ["2024-01-15", "2024-02-01"]
    assert [r.cumulative_count for r in report.years[2024]] == [1, 3]
    assert [r.cumulative_count for r in report.years[2025]] == [3, 10]


def test_last_cumulative_equals_year_sum():
    records = rows(("2024-05-01", 4), ("2024-03-09", 6), ("2024-12-31", 11), ("2025-02-02", 9))
    report = build_cohorts(records, CONFIG)
    assert report.years[2024][-1].cumulative_count == 21
    assert report.years[2025][-1].cumulative_count == 9


def test_out_of_target_years_are_dropped_and_counted():
    records = rows(("2023-12-01", 100), ("2024-01-01", 1), (None, 4), ("2024-01-02", 2))
    report = build_cohorts(records, CONFIG)
    assert [r.signup_date for r in report.years[2024]] == ["2024-01-01", "2024-01-02"]
    assert report.years[2024][-1].cumulative_count == 3
    assert report.years[2025] == []
    assert report.dropped_records == 2
    assert all(b.month_key.startswith("2024") for b in report.monthly[2024])


def test_missing_or_bad_counts_are_zero():
    records = rows(("2024-01-01", None), ("2024-01-02", "abc"), ("2024-01-03", -4), ("2024-01-04", 2))
    series = build_year_series(records, 2024, CONFIG)
    assert [r.signup_count for r in series] == [0, 0, 0, 2]
    assert series[-1].cumulative_count == 2


def test_undated_target_year_rows_sort_last():
    records = rows(("2024-13-45", 1), ("2024-01-02", 2))
    report = build_cohorts(records, CONFIG)
    series = report.years[2024]
    assert [r.signup_date for r in series] == ["2024-01-02", "2024-13-45"]
    assert series[-1].display_date is None
    assert report.undated_records == 1
    assert [b.total_signups for b in report.monthly[2024]] == [2]


def test_monthly_buckets_in_calendar_order():
    records = rows(("2024-03-02", 1), ("2024-01-05", 2), ("2024-02-10", 4), ("2024-01-20", 3))
    buckets = build_cohorts(records, CONFIG).monthly[2024]
    assert [(b.month_label, b.month_index, b.total_signups) for b in buckets] == [
        ("Jan", 0, 5),
        ("Feb", 1, 4),
        ("Mar", 2, 1),
    ]


def test_monthly_buckets_ignore_input_order():
    series = [
        SignupRecord("2024-11-01", 1, "11/1", "Nov", 1),
        SignupRecord("2024-02-01", 2, "2/1", "Feb", 3),
        SignupRecord("2024-07-01", 3, "7/1", "Jul", 6),
    ]
    assert [b.month_index for b in monthly_buckets(series)] == [1, 6, 10]
    assert monthly_buckets([]) == []


def test_year_highlights():
    records = rows(("2024-03-02", 1), ("2024-01-05", 2), ("2024-02-10", 4), ("2024-01-20", 3))
    report = build_cohorts(records, CONFIG)
    h = year_highlights(2024, report.years[2024], report.monthly[2024])
    assert h.total_signups == 10
    assert (h.peak_month_label, h.peak_month_signups) == ("Jan", 5)
    assert h.average_monthly_signups == 3
    assert (h.first_date, h.last_date) == ("2024-01-05", "2024-03-02")

    empty = year_highlights(2025, [], [])
    assert empty.total_signups == 0
    assert empty.peak_month_label is None
    assert empty.average_monthly_signups is None


def test_average_rounds_half_up():
    report = build_cohorts(rows(("2024-01-01", 2), ("2024-02-01", 3)), CONFIG)
    assert year_highlights(2024, report.years[2024], report.monthly[2024]).average_monthly_signups == 3


def test_monthly_comparison_rows():
    records = rows(("2024-02-01", 2), ("2025-01-03", 5), ("2024-01-01", 1))
    comparison = monthly_comparison(build_cohorts(records, CONFIG))
    assert comparison == [
        {"month": "Jan", "month_index": 0, "2024": 1, "2025": 5},
        {"month": "Feb", "month_index": 1, "2024": 2, "2025": 0},
    ]


def test_custom_columns_and_years():
    cfg = DashboardConfig(date_column="created", count_column="n", target_years=(2023,))
    report = build_cohorts([{"created": "2023-06-01", "n": 4}, {"created": "2024-06-01", "n": 1}], cfg)
    assert list(report.years) == [2023]
    assert report.years[2023][-1].cumulative_count == 4
    assert report.dropped_records == 1


def test_compute_signup_trends_payload():
    records = rows(("2024-01-26", 5), ("2024-01-27", 3), ("2025-04-08", 2), ("2023-01-01", 9))
    ctx = {"cohorts": build_cohorts(records, CONFIG), "signups": SourceResult.loaded("wp_users.csv", records)}
    payload = compute_signup_trends(CONFIG, ctx)
    assert payload["status"] == "ok"
    assert payload["years"]["2024"][-1]["cumulative_count"] == 8
    assert payload["highlights"]["2025"]["total_signups"] == 2
    assert payload["data_range"] == {"start": "2024-01-26", "end": "2025-04-08"}
    assert payload["dropped_records"] == 1
    json.dumps(payload)


def test_compute_signup_trends_without_data():
    payload = compute_signup_trends(CONFIG, {"cohorts": CohortReport(), "signups": SourceResult.unavailable("x", "boom")})
    assert payload["status"] == "unavailable"
    assert payload["error"] == "boom"
    assert payload["years"] == {}
    assert payload["data_range"] == {"start": None, "end": None}


def test_non_finite_and_oversized_counts():
    records = rows(
        ("2024-01-01", "inf"),
        ("2024-01-02", "-inf"),
        ("2024-01-03", float("inf")),
        ("2024-01-04", "1e400"),
        ("2024-01-05", 10**400),
        ("2024-01-06", 10**20),
        ("2024-01-07", 1),
    )
    series = build_year_series(records, 2024, CONFIG)
    assert [r.signup_count for r in series] == [0, 0, 0, 0, 0, 2**53, 1]
    assert series[-1].cumulative_count == 2**53 + 1

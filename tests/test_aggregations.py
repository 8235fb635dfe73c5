"""Golden tests for stats aggregation across events."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from analysis.aggregations import aggregate_stats, daily_metric_series, filter_records_by_date
from analysis.evaluator import resolve_variable

pytestmark = [pytest.mark.unit, pytest.mark.golden]


def test_aggregate_uses_per_field_denominator() -> None:
    """An event that never tracked a variable does not lower its average."""

    aggregated = aggregate_stats([{"fans": 100}, {"fans": 200}, {}])
    assert aggregated.totals == {"fans": 300.0}
    assert aggregated.counts == {"fans": 2}
    assert aggregated.averages == {"fans": 150.0}
    assert aggregated.event_count == 3


def test_aggregate_ignores_text_booleans_and_non_finite_values() -> None:
    """Only finite numbers contribute to totals."""

    aggregated = aggregate_stats(
        [
            {"female": 10, "bitlyTopCountry": "Hungary", "published": True},
            {"female": 5.5, "male": float("inf")},
        ]
    )
    assert aggregated.totals == {"female": 15.5}
    assert aggregated.as_stats() == {"female": 15.5}


def test_aggregate_empty_input() -> None:
    """No records aggregate to empty mappings."""

    aggregated = aggregate_stats([])
    assert aggregated.event_count == 0
    assert aggregated.as_json() == {"eventCount": 0, "totals": {}, "counts": {}, "averages": {}}


def test_filter_records_by_date_is_inclusive() -> None:
    """Both bounds are inclusive; undated records drop out once a bound is set."""

    records = [
        {"day": date(2024, 1, 1)},
        {"day": datetime(2024, 1, 15, 18, 30)},
        {"day": date(2024, 2, 1)},
        {"day": None},
    ]
    kept = filter_records_by_date(
        records,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 15),
        date_getter=lambda record: record["day"],
    )
    assert kept == tuple(records[:2])
    assert len(filter_records_by_date(records, start_date=None, end_date=None, date_getter=lambda r: r["day"])) == 4


def test_daily_metric_series_averages_per_day() -> None:
    """Events on the same day are averaged; days without the metric are omitted."""

    records = [
        (date(2024, 3, 2), {"fans": 10}),
        (date(2024, 3, 1), {"fans": 4}),
        (date(2024, 3, 1), {"fans": 8}),
        (date(2024, 3, 3), {}),
    ]
    series = daily_metric_series(
        records,
        metric="fans",
        stats_getter=lambda record: record[1],
        date_getter=lambda record: record[0],
    )
    assert series == {"2024-03-01": 6.0, "2024-03-02": 10.0}
    assert list(series) == ["2024-03-01", "2024-03-02"]


def test_numeric_text_aggregates_like_it_resolves() -> None:
    """Numeric text counts toward totals, matching single-event resolution."""

    records = [{"fans": "1,200"}, {"fans": 300}, {"fans": "many"}]
    aggregated = aggregate_stats(records)
    assert aggregated.totals == {"fans": 1500.0}
    assert aggregated.counts == {"fans": 2}
    assert resolve_variable("fans", {"fans": "1,200"}) == 1200.0

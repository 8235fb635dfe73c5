"""Aggregation helpers for partner- and date-range-level reports.

This module sums stats records across events without introducing Django
dependencies. A variable absent from an event is excluded from that
variable's sum and from its average denominator: an event that never tracked
a variable must not drag its average down.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime
from typing import Callable, TypeVar

from .dto import AggregatedStats, StatsRecord, stored_number

T = TypeVar("T")


def aggregate_stats(records: Iterable[StatsRecord]) -> AggregatedStats:
    """Sum numeric variables across stats records.

    Args:
        records: One stats record per event in scope.

    Returns:
        AggregatedStats with per-variable totals, the number of events that
        defined each variable, and `totals / counts` averages. Numeric text
        counts as a number; other text, booleans and non-finite values are
        ignored.
    """

    totals: dict[str, float] = defaultdict(float)
    counts: dict[str, int] = defaultdict(int)
    event_count = 0
    for record in records:
        event_count += 1
        for key, value in record.items():
            number = stored_number(value)
            if number is None:
                continue
            totals[key] += number
            counts[key] += 1

    keys = sorted(totals)
    return AggregatedStats(
        totals={key: totals[key] for key in keys},
        counts={key: counts[key] for key in keys},
        averages={key: totals[key] / counts[key] for key in keys},
        event_count=event_count,
    )


def filter_records_by_date(
    records: Iterable[T],
    *,
    start_date: date | None,
    end_date: date | None,
    date_getter: Callable[[T], date | datetime | None],
) -> tuple[T, ...]:
    """Filter records by an inclusive date range.

    Args:
        records: Records (stats rows, projects, ...) to scope.
        start_date: Optional start date (inclusive).
        end_date: Optional end date (inclusive).
        date_getter: Callable extracting the event date from a record.

    Returns:
        A tuple of records whose date falls within the range. Records without
        a date are kept only when no bound is given.
    """

    if start_date is None and end_date is None:
        return tuple(records)

    filtered: list[T] = []
    for record in records:
        record_date = _as_date(date_getter(record))
        if record_date is None:
            continue
        if start_date is not None and record_date < start_date:
            continue
        if end_date is not None and record_date > end_date:
            continue
        filtered.append(record)
    return tuple(filtered)


def daily_metric_series(
    records: Iterable[T],
    *,
    metric: str,
    stats_getter: Callable[[T], StatsRecord],
    date_getter: Callable[[T], date | datetime | None],
) -> dict[str, float]:
    """Aggregate records into a daily average series keyed by ISO date.

    Each day averages only the events that defined `metric`; days where no
    event defined it are omitted.

    Returns:
        Mapping of `YYYY-MM-DD` -> average metric value, sorted by date.
    """

    buckets: dict[str, list[float]] = defaultdict(list)
    for record in records:
        record_date = _as_date(date_getter(record))
        if record_date is None:
            continue
        value = stored_number(stats_getter(record).get(metric))
        if value is None:
            continue
        buckets[record_date.isoformat()].append(value)

    averaged = {key: sum(values) / len(values) for key, values in buckets.items()}
    return dict(sorted(averaged.items(), key=lambda kv: kv[0]))


def _as_date(value: date | datetime | None) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    return value

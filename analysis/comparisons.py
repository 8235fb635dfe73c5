"""Cross-entity comparisons (rankings and baseline deltas).

Entities are projects or partners reduced to a single stats record (usually an
AggregatedStats). Missing metric values count as 0 for ranking and deltas so
that every entity appears in every ranking.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence

from .deltas import delta
from .dto import AggregatedStats, ComparisonResult, EntityDelta, RankedEntity, StatsRecord

ComparableRecord = AggregatedStats | StatsRecord


def metric_value(record: ComparableRecord, metric: str) -> float:
    """Return a metric's numeric value for comparison, or 0 when absent."""

    values: Mapping[str, object] = record.totals if isinstance(record, AggregatedStats) else record
    value = values.get(metric)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    number = float(value)
    return number if math.isfinite(number) else 0.0


def rank_entities(
    records: Sequence[ComparableRecord],
    metric: str,
    *,
    labels: Sequence[str] | None = None,
) -> tuple[RankedEntity, ...]:
    """Rank entities by a metric, highest first.

    Ties keep their original order (stable sort).
    """

    names = _labels(records, labels)
    rows = [
        RankedEntity(index=idx, label=names[idx], value=metric_value(record, metric))
        for idx, record in enumerate(records)
    ]
    return tuple(sorted(rows, key=lambda row: row.value, reverse=True))


def compare_entities(
    records: Sequence[ComparableRecord],
    metrics: Sequence[str],
    *,
    labels: Sequence[str] | None = None,
    baseline_index: int = 0,
) -> ComparisonResult:
    """Compare entities across metrics.

    Args:
        records: Aggregated (or plain) stats per entity.
        metrics: Metric keys to rank and compare.
        labels: Optional display labels aligned to `records`; defaults to
            "Entity 1", "Entity 2", ...
        baseline_index: Index of the entity every other entity is compared to.

    Returns:
        ComparisonResult with a ranking per metric and one EntityDelta per
        non-baseline entity. Deltas are empty when fewer than 2 records exist.

    Raises:
        IndexError: When `baseline_index` is out of range for 2+ records.
    """

    names = _labels(records, labels)
    metric_keys = tuple(dict.fromkeys(metrics))
    rankings = {metric: rank_entities(records, metric, labels=names) for metric in metric_keys}

    deltas: list[EntityDelta] = []
    if len(records) >= 2:
        if not 0 <= baseline_index < len(records):
            raise IndexError(f"baseline_index {baseline_index} out of range for {len(records)} records.")
        baseline = records[baseline_index]
        for idx, record in enumerate(records):
            if idx == baseline_index:
                continue
            deltas.append(
                EntityDelta(
                    index=idx,
                    label=names[idx],
                    compared_to=names[baseline_index],
                    metrics={
                        metric: delta(metric_value(baseline, metric), metric_value(record, metric))
                        for metric in metric_keys
                    },
                )
            )

    return ComparisonResult(metrics=metric_keys, rankings=rankings, deltas=tuple(deltas))


def _labels(records: Sequence[ComparableRecord], labels: Sequence[str] | None) -> list[str]:
    if labels is not None:
        if len(labels) != len(records):
            raise ValueError("labels must align with records.")
        return list(labels)
    return [f"Entity {idx + 1}" for idx in range(len(records))]

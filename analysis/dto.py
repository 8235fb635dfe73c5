"""DTO types used and returned by the Chart Calculation Engine.

DTOs are plain data containers used to transport chart configurations and
calculation results between the persistence layer and the engine. They
intentionally avoid any Django/ORM dependencies.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from typing import Any, Literal, Union, get_args


class NAType(Enum):
    """Sentinel for values that could not be computed ("not applicable").

    NA is distinct from zero: a missing operand, an unknown variable or a
    division by zero all produce NA instead of a misleading number.
    """

    NA = "NA"

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return "NA"


NA = NAType.NA

ChartValue = Union[float, NAType]
StatsValue = Union[float, int, str, bool, None]
StatsRecord = Mapping[str, StatsValue]

ChartType = Literal["pie", "bar", "kpi"]
VariableType = Literal["count", "percentage", "currency", "numeric", "text", "boolean", "date"]

CHART_TYPES: tuple[str, ...] = get_args(ChartType)
NUMERIC_VARIABLE_TYPES: frozenset[str] = frozenset({"count", "percentage", "currency", "numeric"})


def stored_number(value: object) -> float | None:
    """Return a stored stats value as a finite float, or None.

    Numbers and numeric text (`"1,200"`) convert; booleans, other text and
    non-finite values do not.
    """

    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.replace(",", "").strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def json_value(value: object) -> Any:
    """Convert an engine value into a JSON-friendly value (NA -> "NA")."""

    if value is NA:
        return NA.value
    return value


@dataclass(frozen=True, slots=True)
class VariableDefinition:
    """Definition for a stats variable (stored directly or derived).

    Args:
        name: Variable key as stored on a project's stats (e.g. "female").
        label: Human-friendly label.
        type: Value type; numeric types default to 0 when absent.
        category: Grouping used by admin pickers (e.g. "Demographics").
        description: Optional description.
        derived: True when the value comes from `formula` instead of stats.
        formula: Expression evaluated for derived variables.
    """

    name: str
    label: str
    type: VariableType = "count"
    category: str = "Custom"
    description: str | None = None
    derived: bool = False
    formula: str | None = None

    @property
    def is_numeric(self) -> bool:
        """Return True when absent values should count as zero."""

        return self.type in NUMERIC_VARIABLE_TYPES


@dataclass(frozen=True, slots=True)
class ChartElement:
    """One slice/bar/value of a chart configuration.

    Args:
        id: Element identifier, unique within its chart.
        label: Display label.
        formula: Expression or variable reference (e.g. "[stats.female]").
        color: Hex color used by the renderer.
        prefix: Display prefix (e.g. "€").
        suffix: Display suffix (e.g. "%").
        rounded: Round to an integer when True, otherwise keep 2 decimals.
        parameters: Values for `[PARAM:key]` tokens.
        manual_data: Values for `[MANUAL:key]` tokens.
    """

    id: str
    label: str
    formula: str
    color: str = "#cccccc"
    prefix: str = ""
    suffix: str = ""
    rounded: bool = True
    parameters: Mapping[str, float] = field(default_factory=dict)
    manual_data: Mapping[str, float] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ChartConfiguration:
    """Admin-defined chart configuration.

    Shape invariants (pie=2, bar=5, kpi=1 elements) are enforced when the
    configuration is saved; the calculator tolerates any shape.
    """

    chart_id: str
    type: str
    title: str
    elements: tuple[ChartElement, ...] = ()
    order: int = 0
    is_active: bool = True
    emoji: str | None = None
    subtitle: str | None = None
    show_total: bool = False
    total_label: str | None = None


@dataclass(frozen=True, slots=True)
class ChartElementResult:
    """Calculated value for one chart element."""

    id: str
    label: str
    value: ChartValue | str
    color: str
    formatted: str
    percentage: float | None = None

    def as_json(self) -> dict[str, Any]:
        """Return a JSON-serializable representation."""

        payload: dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "value": json_value(self.value),
            "color": self.color,
            "formatted": self.formatted,
        }
        if self.percentage is not None:
            payload["percentage"] = self.percentage
        return payload


@dataclass(frozen=True, slots=True)
class ChartCalculationResult:
    """Calculated chart, computed fresh per request and never persisted."""

    chart_id: str
    type: str
    title: str
    elements: tuple[ChartElementResult, ...]
    has_errors: bool
    total: ChartValue | None = None
    kpi_value: ChartValue | str | None = None
    emoji: str | None = None
    subtitle: str | None = None
    total_label: str | None = None

    def as_json(self) -> dict[str, Any]:
        """Return a JSON-serializable representation."""

        return {
            "chartId": self.chart_id,
            "type": self.type,
            "title": self.title,
            "emoji": self.emoji,
            "subtitle": self.subtitle,
            "totalLabel": self.total_label,
            "elements": [element.as_json() for element in self.elements],
            "total": json_value(self.total),
            "kpiValue": json_value(self.kpi_value),
            "hasErrors": self.has_errors,
        }


@dataclass(frozen=True)
class AggregatedStats:
    """Stats summed across several events.

    Attributes:
        totals: Sum per numeric variable over the events that define it.
        counts: Number of events that define each variable.
        averages: `totals[v] / counts[v]` per variable.
        event_count: Number of source records, including empty ones.
    """

    totals: Mapping[str, float] = field(default_factory=dict)
    counts: Mapping[str, int] = field(default_factory=dict)
    averages: Mapping[str, float] = field(default_factory=dict)
    event_count: int = 0

    def as_stats(self) -> dict[str, float]:
        """Return the summed values as a StatsRecord for chart calculation."""

        return dict(self.totals)

    def as_json(self) -> dict[str, Any]:
        """Return a JSON-serializable representation."""

        return {
            "eventCount": self.event_count,
            "totals": dict(self.totals),
            "counts": dict(self.counts),
            "averages": dict(self.averages),
        }


@dataclass(frozen=True)
class MetricDelta:
    """A deterministic delta between two numeric metric values.

    Attributes:
        baseline: Baseline value (A).
        comparison: Comparison value (B).
        absolute: `comparison - baseline`.
        percent: `(comparison - baseline) / baseline * 100`, or 0 when baseline is 0.
    """

    baseline: float
    comparison: float
    absolute: float
    percent: float

    def as_json(self) -> dict[str, float]:
        """Return a JSON-serializable representation."""

        return {
            "baseline": self.baseline,
            "comparison": self.comparison,
            "absolute": self.absolute,
            "percent": self.percent,
        }


@dataclass(frozen=True, slots=True)
class RankedEntity:
    """One entry of a per-metric ranking."""

    index: int
    label: str
    value: float


@dataclass(frozen=True)
class EntityDelta:
    """Deltas of one entity against the baseline entity."""

    index: int
    label: str
    compared_to: str
    metrics: Mapping[str, MetricDelta]


@dataclass(frozen=True)
class ComparisonResult:
    """Rankings and baseline deltas across 2-5 entities."""

    metrics: tuple[str, ...]
    rankings: Mapping[str, tuple[RankedEntity, ...]]
    deltas: tuple[EntityDelta, ...] = ()

    def as_json(self) -> dict[str, Any]:
        """Return a JSON-serializable representation."""

        return {
            "metrics": list(self.metrics),
            "rankings": {
                metric: [{"label": row.label, "value": row.value} for row in rows]
                for metric, rows in self.rankings.items()
            },
            "deltas": [
                {
                    "label": entry.label,
                    "comparedTo": entry.compared_to,
                    "metrics": {key: value.as_json() for key, value in entry.metrics.items()},
                }
                for entry in self.deltas
            ],
        }

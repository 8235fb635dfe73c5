"""Chart calculation for admin-defined chart configurations.

This module consumes ChartConfiguration DTOs and a project's stats (raw or
aggregated) and produces ChartCalculationResult DTOs that the UI can render
without performing calculations inline.
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from .dto import (
    NA,
    ChartCalculationResult,
    ChartConfiguration,
    ChartElement,
    ChartElementResult,
    ChartValue,
    NAType,
    StatsRecord,
)
from .evaluator import VariableDefs, as_registry, evaluate_formula, resolve_variable
from .formula import FormulaSyntaxError, Variable, parse_formula
from .variables import VariableRegistry

logger = logging.getLogger(__name__)

_LABEL_TEMPLATE_RE = re.compile(r"\{\{\s*([A-Za-z0-9_.]+)\s*\}\}")


@dataclass(frozen=True, slots=True)
class CalculationSummary:
    """Counts describing a batch of chart calculations."""

    total_charts: int
    active_charts: int
    charts_with_errors: int
    elements_with_errors: int
    total_elements: int
    chart_types: dict[str, int] = field(default_factory=dict)


def calculate_chart(
    config: ChartConfiguration,
    stats: StatsRecord,
    *,
    variables: VariableDefs = None,
) -> ChartCalculationResult | None:
    """Calculate one chart configuration against a stats record.

    Args:
        config: Chart configuration to execute.
        stats: Raw or aggregated stats record.
        variables: Registry (or definitions) used to resolve variables.

    Returns:
        ChartCalculationResult, or None when the chart is inactive or every
        element resolved to NA (bar charts are always returned when active).

    Raises:
        TypeError: When `config` or `stats` is None.
    """

    if config is None:
        raise TypeError("calculate_chart() requires a ChartConfiguration, got None.")
    if stats is None:
        raise TypeError("calculate_chart() requires a stats mapping, got None.")
    if not config.is_active:
        return None

    registry = as_registry(variables)
    values = [_element_value(element, stats, registry) for element in config.elements]
    has_errors = any(value is NA for value in values)

    if config.type != "bar" and all(value is NA for value in values):
        logger.debug("Skipping chart %r: no element produced data.", config.chart_id)
        return None

    total: ChartValue | None = None
    kpi_value: ChartValue | str | None = None
    percentages: list[float | None] = [None] * len(values)

    if config.type == "pie":
        total = _sum_numeric(values)
        percentages = [_percentage(value, total) for value in values]
    elif config.type == "bar":
        if config.show_total:
            numeric = [value for value in values if isinstance(value, float)]
            total = sum(numeric) if numeric else NA
    elif config.type == "kpi":
        kpi_value = values[0] if values else NA

    elements = tuple(
        ChartElementResult(
            id=element.id or "unknown",
            label=_resolve_label(element.label, stats, registry) or "Unnamed Element",
            value=value,
            color=element.color or "#cccccc",
            formatted=format_chart_value(
                value, rounded=element.rounded, prefix=element.prefix, suffix=element.suffix
            ),
            percentage=percentage,
        )
        for element, value, percentage in zip(config.elements, values, percentages)
    )

    return ChartCalculationResult(
        chart_id=config.chart_id,
        type=config.type,
        title=config.title,
        elements=elements,
        has_errors=has_errors,
        total=total,
        kpi_value=kpi_value,
        emoji=config.emoji,
        subtitle=config.subtitle,
        total_label=config.total_label,
    )


def calculate_active_charts(
    configs: Iterable[ChartConfiguration],
    stats: StatsRecord,
    *,
    variables: VariableDefs = None,
) -> list[ChartCalculationResult]:
    """Calculate every active chart, ordered by `order` (ties keep input order).

    Inactive charts and charts without any informative element are omitted.
    """

    registry = as_registry(variables)
    results: list[ChartCalculationResult] = []
    for config in sorted(configs, key=lambda c: c.order):
        result = calculate_chart(config, stats, variables=registry)
        if result is not None:
            results.append(result)
    return results


def format_chart_value(
    value: ChartValue | str | None,
    *,
    rounded: bool = True,
    prefix: str = "",
    suffix: str = "",
    na_label: str = "N/A",
) -> str:
    """Format a chart value with thousands separators and prefix/suffix.

    Args:
        value: Number, text, or NA.
        rounded: Show 0 decimals when True, otherwise 2.
        prefix: Text placed before the number (e.g. "€").
        suffix: Text placed after the number (e.g. "%").
        na_label: Text shown for NA values.

    Returns:
        Display string, e.g. "€1,250" or "N/A".
    """

    if value is None or value is NA:
        return na_label
    if isinstance(value, str):
        return f"{prefix}{value}{suffix}"
    decimals = 0 if rounded else 2
    return f"{prefix}{value:,.{decimals}f}{suffix}"


def has_displayable_data(result: ChartCalculationResult) -> bool:
    """Return True when a calculated chart should occupy layout space.

    A chart needs at least one numeric element; pie and KPI charts additionally
    need a positive total, while bar charts are shown even when all values are 0.
    """

    numeric = [element.value for element in result.elements if isinstance(element.value, float)]
    if not numeric:
        return False
    return result.type == "bar" or sum(numeric) > 0


def summarize_calculations(
    configs: Sequence[ChartConfiguration],
    results: Sequence[ChartCalculationResult],
) -> CalculationSummary:
    """Summarize a batch of calculations for debugging and monitoring."""

    elements_with_errors = sum(1 for result in results for element in result.elements if element.value is NA)
    return CalculationSummary(
        total_charts=len(configs),
        active_charts=sum(1 for config in configs if config.is_active),
        charts_with_errors=sum(1 for result in results if result.has_errors),
        elements_with_errors=elements_with_errors,
        total_elements=sum(len(result.elements) for result in results),
        chart_types=dict(Counter(result.type for result in results)),
    )


def round_value(value: float) -> float:
    """Round half away from zero to an integer-valued float."""

    magnitude = math.floor(abs(value) + 0.5)
    if magnitude == 0:
        return 0.0
    return math.copysign(magnitude, value)


def _element_value(element: ChartElement, stats: StatsRecord, registry: VariableRegistry) -> ChartValue | str:
    """Evaluate one element, falling back to text for bare variable references."""

    value = evaluate_formula(
        element.formula,
        stats,
        registry,
        parameters=element.parameters,
        manual_data=element.manual_data,
    )
    if value is NA:
        text = _text_reference(element.formula, stats, registry)
        if text is not None:
            return text
        logger.debug("Element %r (%s) evaluated to NA.", element.id, element.formula)
        return NA
    return round_value(value) if element.rounded else value


def _text_reference(formula: str, stats: StatsRecord, registry: VariableRegistry) -> str | None:
    """Return the text value of a formula that is a bare variable reference."""

    try:
        node = parse_formula(formula)
    except FormulaSyntaxError:
        return None
    if not isinstance(node, Variable):
        return None
    value = resolve_variable(node.name, stats, registry)
    if isinstance(value, str) and value:
        return value
    return None


def _sum_numeric(values: Iterable[ChartValue | str]) -> float:
    """Sum numeric values, counting NA (and text) as 0."""

    return sum((value for value in values if isinstance(value, float)), 0.0)


def _percentage(value: ChartValue | str, total: float) -> float:
    """Return `value / total * 100` rounded to 1 decimal; 0 for a zero total."""

    if not isinstance(value, float) or total == 0:
        return 0.0
    return round(value / total * 100.0, 1)


def _resolve_label(label: str, stats: StatsRecord, registry: VariableRegistry) -> str:
    """Replace `{{variable}}` placeholders in a label with stats values."""

    def replace(match: re.Match[str]) -> str:
        value = resolve_variable(match.group(1), stats, registry)
        if isinstance(value, NAType):
            return "N/A"
        if isinstance(value, float):
            return format_chart_value(value, rounded=value.is_integer())
        return str(value)

    return _LABEL_TEMPLATE_RE.sub(replace, label or "")

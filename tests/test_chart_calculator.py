"""Unit tests for chart calculation."""

from __future__ import annotations

from dataclasses import replace

import pytest

from analysis.chart_calculator import (
    calculate_active_charts,
    calculate_chart,
    format_chart_value,
    has_displayable_data,
    round_value,
    summarize_calculations,
)
from analysis.dto import NA, ChartConfiguration, ChartElement

pytestmark = pytest.mark.unit


def _bar(chart_id: str = "merch", *, show_total: bool = True, order: int = 0) -> ChartConfiguration:
    return ChartConfiguration(
        chart_id=chart_id,
        type="bar",
        title="Merchandise Sales",
        elements=(
            ChartElement(
                id="jersey",
                label="Jersey",
                formula="[stats.jersey] * [PARAM:jerseyPrice]",
                prefix="€",
                parameters={"jerseyPrice": 85},
            ),
            ChartElement(id="scarf", label="Scarf", formula="[stats.scarf] * 15", prefix="€"),
            ChartElement(id="flags", label="Flags", formula="[stats.flags] * 15", prefix="€"),
            ChartElement(id="cap", label="Cap", formula="[stats.baseballCap] * 20", prefix="€"),
            ChartElement(id="other", label="Other", formula="[stats.other] * 10", prefix="€"),
        ),
        order=order,
        show_total=show_total,
        total_label="possible merch sales",
    )


def _kpi(formula: str, **kwargs) -> ChartConfiguration:
    return ChartConfiguration(
        chart_id="kpi",
        type="kpi",
        title="KPI",
        elements=(ChartElement(id="value", label="Value", formula=formula, **kwargs),),
    )


@pytest.mark.golden
def test_pie_chart_percentages(gender_pie: ChartConfiguration) -> None:
    """Pie slices carry values, percentages of the total, and the total itself."""

    result = calculate_chart(gender_pie, {"female": 30, "male": 20})
    assert result is not None
    assert [element.value for element in result.elements] == [30.0, 20.0]
    assert [element.percentage for element in result.elements] == [60.0, 40.0]
    assert result.total == 50.0
    assert not result.has_errors


@pytest.mark.golden
def test_pie_chart_with_zero_total_keeps_zero_percentages(gender_pie: ChartConfiguration) -> None:
    """A zero-total pie is still calculated; the UI hides it via has_displayable_data."""

    result = calculate_chart(gender_pie, {"female": 0, "male": 0})
    assert result is not None
    assert [element.value for element in result.elements] == [0.0, 0.0]
    assert [element.percentage for element in result.elements] == [0.0, 0.0]
    assert result.total == 0.0
    assert not has_displayable_data(result)


def test_pie_percentages_sum_to_one_hundred() -> None:
    """Rounded percentages stay within rounding distance of 100."""

    pie = ChartConfiguration(
        chart_id="thirds",
        type="pie",
        title="Thirds",
        elements=(
            ChartElement(id="a", label="A", formula="1"),
            ChartElement(id="b", label="B", formula="2"),
        ),
    )
    result = calculate_chart(pie, {})
    assert result is not None
    assert sum(element.percentage for element in result.elements) == pytest.approx(100.0, abs=0.1)


def test_pie_na_slice_counts_as_zero(gender_pie: ChartConfiguration) -> None:
    """An NA slice contributes 0 to the total and flags the chart as having errors."""

    broken = replace(
        gender_pie,
        elements=(gender_pie.elements[0], ChartElement(id="male", label="Male", formula="[stats.male] / 0")),
    )
    result = calculate_chart(broken, {"female": 30, "male": 20})
    assert result is not None
    assert result.elements[1].value is NA
    assert result.elements[1].formatted == "N/A"
    assert result.elements[1].percentage == 0.0
    assert result.elements[0].percentage == 100.0
    assert result.total == 30.0
    assert result.has_errors


def test_bar_chart_total_and_formatting() -> None:
    """Bar charts total their numeric elements and format with prefixes."""

    stats = {"jersey": 10, "scarf": 2, "flags": 0, "baseballCap": 1, "other": 3}
    result = calculate_chart(_bar(), stats)
    assert result is not None
    assert [element.value for element in result.elements] == [850.0, 30.0, 0.0, 20.0, 30.0]
    assert result.elements[0].formatted == "€850"
    assert result.total == 930.0
    assert result.total_label == "possible merch sales"
    assert all(element.percentage is None for element in result.elements)


def test_bar_chart_without_show_total_has_no_total() -> None:
    """Totals are only computed when requested."""

    result = calculate_chart(_bar(show_total=False), {})
    assert result is not None
    assert result.total is None


def test_bar_chart_is_returned_even_when_every_element_is_na() -> None:
    """Active bar charts are always returned; their total is NA when nothing is numeric."""

    bar = replace(
        _bar(),
        elements=tuple(replace(element, formula="[stats.unknownThing]") for element in _bar().elements),
    )
    result = calculate_chart(bar, {})
    assert result is not None
    assert result.total is NA
    assert result.has_errors
    assert not has_displayable_data(result)


def test_bar_chart_with_zero_values_is_displayable() -> None:
    """Bar charts stay visible with all-zero values."""

    result = calculate_chart(_bar(), {})
    assert result is not None
    assert has_displayable_data(result)


def test_kpi_chart_value_and_unrounded_formatting() -> None:
    """KPI charts expose their first element as kpi_value."""

    result = calculate_chart(_kpi("([stats.female] + [stats.male]) / [stats.approvedImages]", rounded=False), {
        "female": 10,
        "male": 5,
        "approvedImages": 4,
    })
    assert result is not None
    assert result.kpi_value == 3.75
    assert result.elements[0].formatted == "3.75"


def test_kpi_chart_with_text_variable() -> None:
    """Bare references to text variables display the stored text."""

    result = calculate_chart(_kpi("[stats.bitlyTopCountry]"), {"bitlyTopCountry": "Hungary"})
    assert result is not None
    assert result.kpi_value == "Hungary"
    assert result.elements[0].formatted == "Hungary"
    assert not result.has_errors


@pytest.mark.golden
def test_kpi_division_by_zero_skips_chart() -> None:
    """A KPI whose only element is NA produces no result."""

    assert calculate_chart(_kpi("eventAttendees / 0"), {"eventAttendees": 1200}) is None


def test_inactive_chart_returns_none(gender_pie: ChartConfiguration) -> None:
    """Inactive configurations are never calculated."""

    assert calculate_chart(replace(gender_pie, is_active=False), {"female": 1}) is None


def test_missing_config_or_stats_raises(gender_pie: ChartConfiguration) -> None:
    """None inputs are programming errors."""

    with pytest.raises(TypeError):
        calculate_chart(None, {})  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        calculate_chart(gender_pie, None)  # type: ignore[arg-type]


def test_calculation_is_deterministic(gender_pie: ChartConfiguration) -> None:
    """Identical inputs produce identical results."""

    stats = {"female": 12, "male": 7}
    assert calculate_chart(gender_pie, stats) == calculate_chart(gender_pie, stats)


def test_label_templates_are_resolved() -> None:
    """`{{variable}}` placeholders in labels are filled from stats."""

    kpi = _kpi("[stats.totalFans]")
    kpi = replace(kpi, elements=(replace(kpi.elements[0], label="Fans at {{eventName}} ({{stadium}})"),))
    result = calculate_chart(kpi, {"eventName": "Derby", "stadium": 1200})
    assert result is not None
    assert result.elements[0].label == "Fans at Derby (1,200)"


def test_calculate_active_charts_orders_and_filters(gender_pie: ChartConfiguration) -> None:
    """Results follow `order`; inactive and empty charts are dropped."""

    configs = [
        _bar("late", order=5),
        replace(gender_pie, order=1),
        replace(_bar("inactive"), is_active=False),
        _kpi("1 / 0"),
    ]
    results = calculate_active_charts(configs, {"female": 1, "male": 1})
    assert [result.chart_id for result in results] == ["gender-distribution", "late"]

    summary = summarize_calculations(configs, results)
    assert summary.total_charts == 4
    assert summary.active_charts == 3
    assert summary.chart_types == {"pie": 1, "bar": 1}


def test_result_json_uses_na_marker(gender_pie: ChartConfiguration) -> None:
    """NA values serialize as the string "NA"."""

    result = calculate_chart(_kpi("[stats.female] / [stats.male]"), {"female": 1, "male": 1})
    assert result is not None
    broken = calculate_chart(
        replace(gender_pie, elements=(gender_pie.elements[0], replace(gender_pie.elements[1], formula="1/0"))),
        {"female": 3},
    )
    assert broken is not None
    payload = broken.as_json()
    assert payload["chartId"] == "gender-distribution"
    assert payload["elements"][1]["value"] == "NA"
    assert payload["hasErrors"] is True


@pytest.mark.parametrize(
    ("value", "expected"),
    [(2.5, 3.0), (-2.5, -3.0), (0.4, 0.0), (-0.4, 0.0), (1234567.5, 1234568.0)],
)
def test_round_value_rounds_half_away_from_zero(value: float, expected: float) -> None:
    """Rounding is half away from zero and never yields -0.0."""

    rounded = round_value(value)
    assert rounded == expected
    assert str(rounded) != "-0.0"


def test_format_chart_value() -> None:
    """Formatting applies separators, decimals and affixes."""

    assert format_chart_value(1250.0, prefix="€") == "€1,250"
    assert format_chart_value(12.346, rounded=False, suffix="%") == "12.35%"
    assert format_chart_value(NA) == "N/A"
    assert format_chart_value(None, na_label="-") == "-"


def test_overflowing_literal_does_not_break_the_chart() -> None:
    """An out-of-range literal is NA, so the KPI is skipped rather than raising."""

    assert calculate_chart(_kpi("1e999"), {}) is None
    bar = _bar()
    bar = replace(bar, elements=(replace(bar.elements[0], formula="[stats.jersey] * 1e999"), *bar.elements[1:]))
    result = calculate_chart(bar, {"jersey": 1, "scarf": 2})
    assert result is not None
    assert result.elements[0].value is NA
    assert result.has_errors

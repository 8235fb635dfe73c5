"""Save-time validation for ChartConfiguration values.

Chart configurations are admin-authored, so the admin UI validates them
before they are saved. The calculator itself never relies on these checks.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final

from .chart_calculator import calculate_chart
from .dto import CHART_TYPES, NA, ChartCalculationResult, ChartConfiguration, ChartElement, StatsRecord
from .formula import inspect_formula
from .variables import DEFAULT_REGISTRY, VariableRegistry

EXPECTED_ELEMENT_COUNTS: Final[dict[str, int]] = {"pie": 2, "bar": 5, "kpi": 1}


@dataclass(frozen=True, slots=True)
class ChartConfigValidationResult:
    """Validation result for a ChartConfiguration.

    Args:
        is_valid: True when no errors exist.
        errors: Fatal validation errors.
        warnings: Non-fatal warnings intended for UI display.
        calculation: Dry-run calculation, when validated against stats.
    """

    is_valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    calculation: ChartCalculationResult | None = None

    def as_json(self) -> dict[str, object]:
        """Return a JSON-serializable representation."""

        return {
            "isValid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "calculation": self.calculation.as_json() if self.calculation is not None else None,
        }


def validate_chart_configuration(
    config: ChartConfiguration,
    *,
    registry: VariableRegistry = DEFAULT_REGISTRY,
) -> ChartConfigValidationResult:
    """Validate a ChartConfiguration before it is saved.

    Args:
        config: Chart configuration from the admin editor.
        registry: VariableRegistry used to detect unknown variables.

    Returns:
        ChartConfigValidationResult containing errors and warnings.
    """

    errors: list[str] = []
    warnings: list[str] = []

    if not config.chart_id.strip():
        errors.append("ChartConfiguration.chart_id must be a non-empty string.")
    if not config.title.strip():
        errors.append(f"ChartConfiguration[{config.chart_id}].title must be a non-empty string.")

    if config.type not in CHART_TYPES:
        errors.append(f"ChartConfiguration[{config.chart_id}].type is not a supported value: {config.type!r}.")
    else:
        expected = EXPECTED_ELEMENT_COUNTS[config.type]
        if len(config.elements) != expected:
            noun = "element" if expected == 1 else "elements"
            errors.append(
                f"{config.type.capitalize()} charts must have exactly {expected} {noun} "
                f"(got {len(config.elements)})."
            )

    duplicates = sorted(key for key, count in Counter(e.id for e in config.elements).items() if count > 1)
    if duplicates:
        errors.append(f"ChartConfiguration[{config.chart_id}] has duplicate element ids: {duplicates}.")

    for idx, element in enumerate(config.elements):
        prefix = f"ChartConfiguration[{config.chart_id}].elements[{idx}]"
        if not element.label.strip():
            warnings.append(f"{prefix} has an empty label.")
        if not element.color.strip():
            warnings.append(f"{prefix} has no color; the renderer default will be used.")

        inspection = inspect_formula(element.formula, registry)
        if not inspection.is_valid_syntax:
            errors.append(f"{prefix}.formula is invalid: {inspection.error}")
            continue
        if inspection.unknown_identifiers:
            errors.append(
                f"{prefix}.formula references unknown identifiers: {sorted(inspection.unknown_identifiers)}."
            )
        missing_params = inspection.parameter_keys - set(element.parameters)
        if missing_params:
            errors.append(f"{prefix}.formula references undefined parameters: {sorted(missing_params)}.")

    return ChartConfigValidationResult(is_valid=not errors, errors=tuple(errors), warnings=tuple(warnings))


def validate_chart_with_stats(
    config: ChartConfiguration,
    stats: StatsRecord,
    *,
    registry: VariableRegistry = DEFAULT_REGISTRY,
) -> ChartConfigValidationResult:
    """Validate a configuration and dry-run it against sample stats.

    Adds errors for elements that evaluate to NA and warnings for negative
    values and for pie charts whose elements all evaluate to zero.
    """

    base = validate_chart_configuration(config, registry=registry)
    errors = list(base.errors)
    warnings = list(base.warnings)

    calculation = calculate_chart(
        ChartConfiguration(
            chart_id=config.chart_id,
            type=config.type,
            title=config.title,
            elements=config.elements,
            order=config.order,
            is_active=True,
            show_total=config.show_total,
        ),
        stats,
        variables=registry,
    )
    if calculation is None:
        errors.append(f"ChartConfiguration[{config.chart_id}] produced no data for the sample stats.")
    else:
        for element in calculation.elements:
            if element.value is NA:
                errors.append(f'Formula evaluation failed for element "{element.label}".')
            elif isinstance(element.value, float) and element.value < 0:
                warnings.append(f'Element "{element.label}" has negative value: {element.value}.')
        if config.show_total and calculation.total is NA:
            errors.append(f"Total calculation failed for {config.type} chart.")
        if config.type == "pie" and calculation.total == 0:
            warnings.append("All pie chart elements evaluate to zero - chart will not be visible.")

    return ChartConfigValidationResult(
        is_valid=not errors,
        errors=tuple(errors),
        warnings=tuple(warnings),
        calculation=calculation,
    )


def parse_chart_configuration(payload: Mapping[str, Any]) -> ChartConfiguration:
    """Build a ChartConfiguration DTO from its JSON representation.

    Accepts both the stored field names (`chart_id`, `chart_type`,
    `show_total`) and the camelCase keys used by the admin editor
    (`chartId`, `type`, `showTotal`).

    Args:
        payload: Decoded JSON object.

    Returns:
        ChartConfiguration with one ChartElement per entry of `elements`.

    Raises:
        ValueError: When the payload or one of its elements has the wrong shape.
    """

    if not isinstance(payload, Mapping):
        raise ValueError("Chart configuration must be a JSON object.")
    raw_elements = payload.get("elements") or []
    if not isinstance(raw_elements, list):
        raise ValueError("Chart configuration elements must be a list.")

    return ChartConfiguration(
        chart_id=str(_first(payload, "chart_id", "chartId") or ""),
        type=str(_first(payload, "chart_type", "type") or ""),
        title=str(payload.get("title") or ""),
        elements=tuple(_parse_element(item, idx) for idx, item in enumerate(raw_elements)),
        order=_as_int(payload.get("order", 0), "order"),
        is_active=bool(_first(payload, "is_active", "isActive", default=True)),
        emoji=payload.get("emoji") or None,
        subtitle=payload.get("subtitle") or None,
        show_total=bool(_first(payload, "show_total", "showTotal", default=False)),
        total_label=_first(payload, "total_label", "totalLabel") or None,
    )


def _parse_element(item: object, idx: int) -> ChartElement:
    if not isinstance(item, Mapping):
        raise ValueError(f"elements[{idx}] must be a JSON object.")
    return ChartElement(
        id=str(item.get("id") or f"element-{idx + 1}"),
        label=str(item.get("label") or ""),
        formula=str(item.get("formula") or ""),
        color=str(item.get("color") or ""),
        prefix=str(item.get("prefix") or ""),
        suffix=str(item.get("suffix") or ""),
        rounded=bool(item.get("rounded", True)),
        parameters=_number_map(item.get("parameters"), f"elements[{idx}].parameters"),
        manual_data=_number_map(_first(item, "manual_data", "manualData"), f"elements[{idx}].manualData"),
    )


def _first(payload: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in payload:
            return payload[key]
    return default


def _as_int(value: object, name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer.")
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValueError(f"{name} must be an integer.") from exc


def _number_map(raw: object, name: str) -> dict[str, float]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"{name} must be a JSON object.")
    values: dict[str, float] = {}
    for key, value in raw.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{name}[{key!r}] must be a number.")
        values[str(key)] = float(value)
    return values

"""Variable resolution and formula evaluation against a project's stats.

Derived variables are evaluated through the same formula language as chart
elements, so resolution and evaluation live together here. Both entry points
fail softly: an unknown variable or a malformed formula yields NA and never
aborts the calculation of the surrounding chart.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from .dto import NA, ChartValue, NAType, StatsRecord, VariableDefinition, stored_number
from .formula import FormulaSyntaxError, evaluate_node, parse_formula
from .variables import DEFAULT_REGISTRY, VariableRegistry, normalize_variable_name

logger = logging.getLogger(__name__)

VariableDefs = VariableRegistry | Iterable[VariableDefinition] | None


def as_registry(variable_defs: VariableDefs) -> VariableRegistry:
    """Coerce the accepted variable-definition inputs into a registry."""

    if variable_defs is None:
        return DEFAULT_REGISTRY
    if isinstance(variable_defs, VariableRegistry):
        return variable_defs
    return VariableRegistry(variable_defs)


def resolve_variable(name: str, stats: StatsRecord, variable_defs: VariableDefs = None) -> float | str | NAType:
    """Resolve a variable reference to a value drawn from stats.

    Args:
        name: Variable reference (`female`, `stats.female` or `[stats.female]`).
        stats: The project's stats record.
        variable_defs: Registry (or definitions) describing known variables;
            defaults to the built-in registry.

    Returns:
        The stored value (numbers as float, text as str), the evaluated formula
        for derived variables, 0 for absent numeric variables, or NA for absent
        text variables and unknown names.
    """

    registry = as_registry(variable_defs)
    try:
        return _resolve(normalize_variable_name(name), stats, registry, frozenset())
    except RecursionError:
        logger.warning("Derived variable %r expands too deeply; resolving as NA.", name)
        return NA


def evaluate_formula(
    formula: str,
    stats: StatsRecord,
    variable_defs: VariableDefs = None,
    *,
    parameters: Mapping[str, float] | None = None,
    manual_data: Mapping[str, float] | None = None,
) -> ChartValue:
    """Evaluate a formula using variables resolved from stats.

    Args:
        formula: Expression referencing variables (e.g. "[stats.female] / [stats.male]").
        stats: The project's stats record.
        variable_defs: Registry (or definitions) describing known variables.
        parameters: Values for `[PARAM:key]` tokens.
        manual_data: Values for `[MANUAL:key]` tokens.

    Returns:
        The computed float value, or NA when inputs are missing/invalid, on
        division by zero, or when the formula is malformed.
    """

    try:
        node = parse_formula(formula)
    except FormulaSyntaxError as exc:
        logger.warning("Malformed formula %r: %s", formula, exc)
        return NA

    registry = as_registry(variable_defs)
    try:
        return evaluate_node(
            node,
            resolve=lambda var: _resolve(var, stats, registry, frozenset()),
            parameters=parameters,
            manual_data=manual_data,
        )
    except RecursionError:
        logger.warning("Formula %r expands too deeply through derived variables; evaluating as NA.", formula)
        return NA


def _resolve(
    key: str,
    stats: StatsRecord,
    registry: VariableRegistry,
    active: frozenset[str],
) -> float | str | NAType:
    """Resolve a normalized key; `active` holds derived variables being expanded."""

    definition = registry.get(key)
    raw = _lookup(stats, key)
    if raw is not None:
        return _coerce_stored(raw, definition)

    if definition is None:
        return NA

    if definition.derived and definition.formula:
        if key in active:
            logger.warning("Derived variable %r references itself; resolving as NA.", key)
            return NA
        try:
            node = parse_formula(definition.formula)
        except FormulaSyntaxError as exc:
            logger.warning("Malformed formula for derived variable %r: %s", key, exc)
            return NA
        expanding = active | {key}
        return evaluate_node(node, resolve=lambda var: _resolve(var, stats, registry, expanding))

    if definition.is_numeric:
        return 0.0
    return NA


def _lookup(stats: StatsRecord, key: str) -> object:
    """Return the stored value for a (possibly dotted) key, or None."""

    if key in stats:
        return stats[key]
    current: object = stats
    for part in key.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


def _coerce_stored(raw: object, definition: VariableDefinition | None) -> float | str | NAType:
    """Coerce a stored stats value according to its variable definition."""

    if isinstance(raw, bool):
        return 1.0 if raw else 0.0
    if isinstance(raw, str) and definition is not None and not definition.is_numeric:
        return raw
    number = stored_number(raw)
    if number is not None:
        return number
    if isinstance(raw, str) and definition is None:
        return raw
    return NA

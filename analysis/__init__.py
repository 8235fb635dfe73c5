"""Chart Calculation Engine for MessMass.

This package contains deterministic, testable computations that operate on
in-memory stats and chart configurations and return DTOs. It must not import
Django or perform any database I/O.
"""

from .aggregations import aggregate_stats
from .chart_calculator import calculate_active_charts, calculate_chart
from .comparisons import compare_entities
from .dto import NA
from .evaluator import evaluate_formula, resolve_variable

__all__ = [
    "NA",
    "aggregate_stats",
    "calculate_active_charts",
    "calculate_chart",
    "compare_entities",
    "evaluate_formula",
    "resolve_variable",
]

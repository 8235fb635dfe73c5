"""Delta calculations for entity comparisons.

This module computes deterministic differences between two values. Deltas are
computed on-demand and are never persisted.
"""

from __future__ import annotations

from .dto import MetricDelta


def delta(baseline: float, comparison: float) -> MetricDelta:
    """Compute absolute and percentage delta between two values.

    Args:
        baseline: Baseline value (A).
        comparison: Comparison value (B).

    Returns:
        MetricDelta with `absolute = B - A` and `percent = (B - A) / A * 100`.
        Percentage delta is 0 when the baseline is 0.
    """

    absolute = comparison - baseline
    if baseline == 0:
        percent = 0.0
    else:
        percent = absolute / baseline * 100.0
    return MetricDelta(
        baseline=baseline,
        comparison=comparison,
        absolute=absolute,
        percent=percent,
    )

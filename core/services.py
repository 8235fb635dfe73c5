"""Service-layer functions for the core app.

Services in `core` coordinate Django persistence concerns (ORM, transactions)
with the pure `analysis` modules. Views and management commands call these
functions instead of touching the engine directly.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Max

from analysis.aggregations import aggregate_stats, daily_metric_series, filter_records_by_date
from analysis.cache import TTLCache
from analysis.chart_calculator import calculate_active_charts, has_displayable_data, summarize_calculations
from analysis.comparisons import compare_entities
from analysis.dto import AggregatedStats, ChartCalculationResult, ChartConfiguration, ComparisonResult
from analysis.evaluator import resolve_variable
from analysis.variables import DEFAULT_REGISTRY, VariableRegistry, variable_definitions_from_rows
from core.models import AnalyticsAggregate, ChartConfiguration as ChartConfigurationModel
from core.models import Partner, Project, VariableMetadata

logger = logging.getLogger(__name__)

GLOBAL_SCOPE_KEY = "all"
_REGISTRY_KEY = "variables"
_registry_cache: TTLCache[VariableRegistry] | None = None


def _get_registry_cache() -> TTLCache[VariableRegistry]:
    global _registry_cache
    if _registry_cache is None:
        _registry_cache = TTLCache(ttl_seconds=settings.MESSMASS_VARIABLE_CACHE_TTL_SECONDS)
    return _registry_cache


def get_variable_registry() -> VariableRegistry:
    """Return built-in variables extended with admin-defined metadata.

    The registry is cached for `MESSMASS_VARIABLE_CACHE_TTL_SECONDS` and
    invalidated whenever a VariableMetadata row is saved or deleted.
    """

    return _get_registry_cache().get_or_set(_REGISTRY_KEY, _load_variable_registry)


def invalidate_variable_registry() -> None:
    """Drop the cached registry so the next lookup reloads it."""

    _get_registry_cache().invalidate()


def _load_variable_registry() -> VariableRegistry:
    rows = [row.as_row() for row in VariableMetadata.objects.all()]
    registry = DEFAULT_REGISTRY.extended(variable_definitions_from_rows(rows))
    logger.debug("Loaded variable registry with %d variables (%d custom).", len(registry), len(rows))
    return registry


def active_chart_configurations() -> list[ChartConfiguration]:
    """Return DTOs for every active chart configuration, ordered by `order`.

    Rows whose `elements` JSON cannot be parsed are skipped with a warning.
    """

    configs: list[ChartConfiguration] = []
    for row in ChartConfigurationModel.objects.filter(is_active=True).order_by("order", "id"):
        try:
            configs.append(row.to_dto())
        except ValueError as exc:
            logger.warning("Skipping chart configuration %s: %s", row.chart_id, exc)
    return configs


def chart_payload(result: ChartCalculationResult) -> dict[str, Any]:
    """Return a chart's JSON with a `displayable` flag for the layout.

    Zero-total pie and KPI charts are still returned so editors can see them,
    but renderers should skip charts that are not displayable.
    """

    return {**result.as_json(), "displayable": has_displayable_data(result)}


def project_chart_results(project: Project) -> list[ChartCalculationResult]:
    """Calculate every active chart for a single project."""

    configs = active_chart_configurations()
    results = calculate_active_charts(configs, project.stats or {}, variables=get_variable_registry())
    summary = summarize_calculations(configs, results)
    if summary.elements_with_errors:
        logger.info(
            "Project %s: %d of %d chart elements evaluated to NA.",
            project.slug,
            summary.elements_with_errors,
            summary.total_elements,
        )
    return results


@dataclass(frozen=True)
class PartnerReport:
    """Aggregated stats and charts for a partner's events.

    Attributes:
        partner: The reported partner.
        start_date: Inclusive lower bound, if any.
        end_date: Inclusive upper bound, if any.
        aggregated: Stats summed across the events in range.
        charts: Active charts calculated on the aggregated totals.
        series: Optional daily average series for one metric.
    """

    partner: Partner
    start_date: date | None
    end_date: date | None
    aggregated: AggregatedStats
    charts: list[ChartCalculationResult] = field(default_factory=list)
    series: dict[str, float] | None = None

    def as_json(self) -> dict[str, Any]:
        """Return a JSON-serializable representation."""

        payload: dict[str, Any] = {
            "partner": {"name": self.partner.name, "slug": self.partner.slug},
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "aggregated": self.aggregated.as_json(),
            "charts": [chart_payload(chart) for chart in self.charts],
        }
        if self.series is not None:
            payload["series"] = self.series
        return payload


def partner_report(
    partner: Partner,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    metric: str | None = None,
) -> PartnerReport:
    """Aggregate a partner's events in a date range and calculate charts.

    Args:
        partner: Partner whose projects are reported.
        start_date: Optional start date (inclusive).
        end_date: Optional end date (inclusive).
        metric: Optional metric for a daily average series.

    Returns:
        PartnerReport. An unbounded report reuses a fresh AnalyticsAggregate
        row when one exists.
    """

    projects = filter_records_by_date(
        partner.projects.all().order_by("event_date", "id"),
        start_date=start_date,
        end_date=end_date,
        date_getter=lambda project: project.event_date,
    )

    aggregated = None
    if start_date is None and end_date is None:
        aggregated = _cached_partner_aggregate(partner)
    if aggregated is None:
        aggregated = aggregate_stats(project.stats or {} for project in projects)

    charts = calculate_active_charts(
        active_chart_configurations(),
        aggregated.as_stats(),
        variables=get_variable_registry(),
    )
    series = None
    if metric:
        series = daily_metric_series(
            projects,
            metric=metric,
            stats_getter=lambda project: project.stats or {},
            date_getter=lambda project: project.event_date,
        )
    return PartnerReport(
        partner=partner,
        start_date=start_date,
        end_date=end_date,
        aggregated=aggregated,
        charts=charts,
        series=series,
    )


def compare_projects(projects: Sequence[Project], metrics: Sequence[str]) -> ComparisonResult:
    """Rank projects per metric and compute deltas against the first project.

    Metrics are resolved through the variable registry so derived variables
    (e.g. `totalFans`) can be compared; unresolvable values count as 0.
    """

    registry = get_variable_registry()
    records = []
    for project in projects:
        stats = project.stats or {}
        record: dict[str, float] = {}
        for metric in metrics:
            value = resolve_variable(metric, stats, registry)
            record[metric] = value if isinstance(value, float) else 0.0
        records.append(record)
    return compare_entities(records, metrics, labels=[project.event_name for project in projects])


@dataclass(frozen=True, slots=True)
class RefreshSummary:
    """Counts reported by `refresh_analytics_aggregates`."""

    partners: int = 0
    created: int = 0
    updated: int = 0


def refresh_analytics_aggregates(*, write: bool) -> RefreshSummary:
    """Recompute per-partner and global aggregates.

    Args:
        write: Persist AnalyticsAggregate rows when True; otherwise only count
            what would be written.

    Returns:
        RefreshSummary with created/updated row counts.
    """

    partners = list(Partner.objects.all().order_by("id"))
    if not write:
        return RefreshSummary(partners=len(partners))

    created_count = 0
    updated_count = 0
    with transaction.atomic():
        scopes: list[tuple[str, str, AggregatedStats]] = [
            (
                AnalyticsAggregate.Scope.PARTNER,
                partner.slug,
                aggregate_stats(project.stats or {} for project in partner.projects.all()),
            )
            for partner in partners
        ]
        scopes.append(
            (
                AnalyticsAggregate.Scope.GLOBAL,
                GLOBAL_SCOPE_KEY,
                aggregate_stats(project.stats or {} for project in Project.objects.all()),
            )
        )
        for scope, scope_key, aggregated in scopes:
            _, created = AnalyticsAggregate.objects.update_or_create(
                scope=scope,
                scope_key=scope_key,
                defaults={"payload": aggregated.as_json()},
            )
            if created:
                created_count += 1
            else:
                updated_count += 1

    logger.info(
        "Refreshed analytics aggregates: partners=%d created=%d updated=%d",
        len(partners),
        created_count,
        updated_count,
    )
    return RefreshSummary(partners=len(partners), created=created_count, updated=updated_count)


def _cached_partner_aggregate(partner: Partner) -> AggregatedStats | None:
    """Return the stored aggregate when it still describes the partner's events.

    The row must be newer than every project edit and cover exactly the
    partner's current projects, so deleted or reassigned events invalidate it.
    """

    row = AnalyticsAggregate.objects.filter(
        scope=AnalyticsAggregate.Scope.PARTNER,
        scope_key=partner.slug,
    ).first()
    if row is None:
        return None
    current = partner.projects.aggregate(latest=Max("updated_at"), events=Count("id"))
    if current["latest"] is not None and current["latest"] > row.computed_at:
        return None
    aggregated = _aggregated_from_payload(row.payload)
    if aggregated.event_count != current["events"]:
        return None
    return aggregated


def _aggregated_from_payload(payload: dict[str, Any]) -> AggregatedStats:
    return AggregatedStats(
        totals={str(k): float(v) for k, v in (payload.get("totals") or {}).items()},
        counts={str(k): int(v) for k, v in (payload.get("counts") or {}).items()},
        averages={str(k): float(v) for k, v in (payload.get("averages") or {}).items()},
        event_count=int(payload.get("eventCount") or 0),
    )

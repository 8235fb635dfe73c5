"""JSON views for event charts, partner reports and chart configuration checks."""

from __future__ import annotations

import json
from datetime import date

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_date
from django.views.decorators.http import require_GET, require_POST

from analysis.chart_config_validator import (
    parse_chart_configuration,
    validate_chart_configuration,
    validate_chart_with_stats,
)
from core.models import Partner, Project
from core.services import (
    chart_payload,
    compare_projects,
    get_variable_registry,
    partner_report,
    project_chart_results,
)

DEFAULT_COMPARE_METRICS = ("totalFans", "allImages", "merched")
MIN_COMPARE_ENTITIES = 2


@require_GET
def project_charts_api(request: HttpRequest, slug: str) -> JsonResponse:
    """Return the calculated charts for one project, flagged for display."""

    project = get_object_or_404(Project, slug=slug)
    charts = project_chart_results(project)
    return JsonResponse(
        {
            "project": {
                "slug": project.slug,
                "eventName": project.event_name,
                "eventDate": project.event_date.isoformat(),
            },
            "charts": [chart_payload(chart) for chart in charts],
        }
    )


@require_GET
def partner_report_api(request: HttpRequest, slug: str) -> JsonResponse:
    """Return aggregated stats and charts for a partner's events.

    Query parameters `start` and `end` bound the range (ISO dates, inclusive);
    `metric` adds a daily average series.
    """

    partner = get_object_or_404(Partner, slug=slug)
    try:
        start_date = _query_date(request, "start")
        end_date = _query_date(request, "end")
    except ValueError as exc:
        return JsonResponse({"error": str(exc)}, status=400)
    if start_date is not None and end_date is not None and start_date > end_date:
        return JsonResponse({"error": "start must be on or before end."}, status=400)

    metric = (request.GET.get("metric") or "").strip() or None
    report = partner_report(partner, start_date=start_date, end_date=end_date, metric=metric)
    return JsonResponse(report.as_json())


@require_GET
def compare_projects_api(request: HttpRequest) -> JsonResponse:
    """Rank 2-5 projects per metric and compute deltas against the first one."""

    slugs = _csv_param(request, "projects")
    max_entities = settings.MESSMASS_MAX_COMPARE_ENTITIES
    if not MIN_COMPARE_ENTITIES <= len(slugs) <= max_entities:
        return JsonResponse(
            {"error": f"Select between {MIN_COMPARE_ENTITIES} and {max_entities} projects to compare."},
            status=400,
        )

    by_slug = {project.slug: project for project in Project.objects.filter(slug__in=slugs)}
    missing = [slug for slug in slugs if slug not in by_slug]
    if missing:
        return JsonResponse({"error": f"Unknown projects: {', '.join(missing)}."}, status=404)

    metrics = _csv_param(request, "metrics") or list(DEFAULT_COMPARE_METRICS)
    result = compare_projects([by_slug[slug] for slug in slugs], metrics)
    return JsonResponse({"projects": slugs, **result.as_json()})


@require_POST
def validate_chart_config_api(request: HttpRequest) -> JsonResponse:
    """Validate a chart configuration posted by the admin editor.

    The body is the configuration JSON; an optional `sampleStats` object
    triggers a dry-run calculation.
    """

    if not request.user.is_staff:
        return JsonResponse({"error": "Staff access required."}, status=403)
    try:
        payload = json.loads(request.body or b"{}")
        config = parse_chart_configuration(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        return JsonResponse({"error": f"Invalid JSON: {exc}"}, status=400)
    except ValueError as exc:
        return JsonResponse({"error": str(exc)}, status=400)

    registry = get_variable_registry()
    sample_stats = payload.get("sampleStats")
    if sample_stats is None:
        result = validate_chart_configuration(config, registry=registry)
    elif isinstance(sample_stats, dict):
        result = validate_chart_with_stats(config, sample_stats, registry=registry)
    else:
        return JsonResponse({"error": "sampleStats must be a JSON object."}, status=400)
    return JsonResponse(result.as_json())


def _query_date(request: HttpRequest, name: str) -> date | None:
    """Parse an optional ISO date query parameter.

    Raises:
        ValueError: When the value is present but not a valid date.
    """

    raw = (request.GET.get(name) or "").strip()
    if not raw:
        return None
    parsed = parse_date(raw)
    if parsed is None:
        raise ValueError(f"Invalid {name} date: {raw!r}. Use YYYY-MM-DD.")
    return parsed


def _csv_param(request: HttpRequest, name: str) -> list[str]:
    raw = request.GET.get(name) or ""
    return list(dict.fromkeys(part.strip() for part in raw.split(",") if part.strip()))

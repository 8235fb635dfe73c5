"""URL configuration for core views."""

from __future__ import annotations

from django.urls import path

from core import views

app_name = "core"

urlpatterns = [
    path("api/projects/<slug:slug>/charts/", views.project_charts_api, name="project_charts"),
    path("api/partners/<slug:slug>/report/", views.partner_report_api, name="partner_report"),
    path("api/analytics/compare/", views.compare_projects_api, name="compare_projects"),
    path("api/chart-config/validate/", views.validate_chart_config_api, name="validate_chart_config"),
]

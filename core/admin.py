"""Admin registrations for the core app."""

from __future__ import annotations

from django.contrib import admin

from core.models import AnalyticsAggregate, ChartConfiguration, Partner, Project, VariableMetadata


@admin.register(Partner)
class PartnerAdmin(admin.ModelAdmin):
    """Admin configuration for Partner."""

    list_display = ("name", "slug", "created_at")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    """Admin configuration for Project."""

    list_display = ("event_name", "event_date", "partner", "updated_at")
    list_filter = ("partner",)
    search_fields = ("event_name", "slug")
    date_hierarchy = "event_date"
    prepopulated_fields = {"slug": ("event_name",)}


@admin.register(ChartConfiguration)
class ChartConfigurationAdmin(admin.ModelAdmin):
    """Admin configuration for ChartConfiguration.

    Saving runs `ChartConfiguration.clean()`, which rejects malformed formulas,
    unknown variables and wrong element counts.
    """

    list_display = ("chart_id", "title", "chart_type", "order", "is_active")
    list_filter = ("chart_type", "is_active")
    list_editable = ("order", "is_active")
    search_fields = ("chart_id", "title")


@admin.register(VariableMetadata)
class VariableMetadataAdmin(admin.ModelAdmin):
    """Admin configuration for VariableMetadata."""

    list_display = ("name", "label", "var_type", "category", "derived")
    list_filter = ("var_type", "category", "derived")
    search_fields = ("name", "label", "description")


@admin.register(AnalyticsAggregate)
class AnalyticsAggregateAdmin(admin.ModelAdmin):
    """Admin configuration for AnalyticsAggregate."""

    list_display = ("scope", "scope_key", "computed_at")
    list_filter = ("scope",)
    readonly_fields = ("computed_at",)

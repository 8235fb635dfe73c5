"""Database models for the core app.

Projects store their event statistics as a flat JSON mapping. Chart
configurations and variable metadata are admin-authored and are converted to
the pure `analysis` DTOs before any calculation runs.
"""

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models

from analysis.chart_config_validator import parse_chart_configuration, validate_chart_configuration
from analysis.dto import ChartConfiguration as ChartConfigurationDTO
from analysis.formula import inspect_formula
from analysis.variables import DEFAULT_REGISTRY


class Partner(models.Model):
    """Organization (club, federation, venue) that owns a set of events.

    Attributes:
        name: Display name.
        slug: Stable URL identifier.
    """

    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=120, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("name",)

    def __str__(self) -> str:
        """Return the partner name for display contexts."""

        return self.name


class Project(models.Model):
    """A single event and its collected statistics.

    Attributes:
        event_name: Human-readable event name.
        slug: Stable URL identifier.
        event_date: Calendar date of the event.
        partner: Optional owning partner.
        stats: Flat mapping of variable name to value (numbers or text).
    """

    event_name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=120, unique=True)
    event_date = models.DateField()
    partner = models.ForeignKey(
        Partner,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="projects",
    )
    stats = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-event_date", "id")

    def __str__(self) -> str:
        """Return a concise display string for admin/debug usage."""

        return f"{self.event_name} ({self.event_date.isoformat()})"

    def clean(self) -> None:
        """Reject stats payloads that are not JSON objects."""

        if not isinstance(self.stats, dict):
            raise ValidationError({"stats": "Stats must be a JSON object."})


class ChartConfiguration(models.Model):
    """Admin-defined chart rendered on event and partner reports.

    `elements` holds a list of objects with `id`, `label`, `formula`, `color`
    and optional `prefix`, `suffix`, `rounded`, `parameters`, `manualData`.
    """

    class ChartType(models.TextChoices):
        PIE = "pie", "Pie"
        BAR = "bar", "Bar"
        KPI = "kpi", "KPI"

    chart_id = models.SlugField(max_length=100, unique=True)
    title = models.CharField(max_length=200)
    chart_type = models.CharField(max_length=8, choices=ChartType.choices)
    order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    elements = models.JSONField(default=list, blank=True)
    emoji = models.CharField(max_length=16, blank=True)
    subtitle = models.CharField(max_length=200, blank=True)
    show_total = models.BooleanField(default=False)
    total_label = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("order", "chart_id")

    def __str__(self) -> str:
        """Return the chart id and title for display contexts."""

        return f"{self.chart_id}: {self.title}"

    def to_dto(self) -> ChartConfigurationDTO:
        """Return the analysis-layer DTO for this configuration.

        Raises:
            ValueError: When `elements` does not have the expected JSON shape.
        """

        return parse_chart_configuration(
            {
                "chart_id": self.chart_id,
                "chart_type": self.chart_type,
                "title": self.title,
                "elements": self.elements,
                "order": self.order,
                "is_active": self.is_active,
                "emoji": self.emoji,
                "subtitle": self.subtitle,
                "show_total": self.show_total,
                "total_label": self.total_label,
            }
        )

    def clean(self) -> None:
        """Validate element shape, formulas and referenced variables."""

        from core.services import get_variable_registry

        try:
            dto = self.to_dto()
        except ValueError as exc:
            raise ValidationError({"elements": str(exc)}) from exc

        result = validate_chart_configuration(dto, registry=get_variable_registry())
        if not result.is_valid:
            raise ValidationError({"elements": list(result.errors)})


class VariableMetadata(models.Model):
    """Admin-editable variable definition layered over the built-in registry.

    Rows with the same name as a built-in variable override it.
    """

    class VariableType(models.TextChoices):
        COUNT = "count", "Count"
        PERCENTAGE = "percentage", "Percentage"
        CURRENCY = "currency", "Currency"
        NUMERIC = "numeric", "Numeric"
        TEXT = "text", "Text"
        BOOLEAN = "boolean", "Boolean"
        DATE = "date", "Date"

    name = models.CharField(max_length=100, unique=True)
    label = models.CharField(max_length=200)
    var_type = models.CharField(max_length=16, choices=VariableType.choices, default=VariableType.COUNT)
    category = models.CharField(max_length=100, default="Custom")
    description = models.TextField(blank=True)
    derived = models.BooleanField(default=False)
    formula = models.TextField(blank=True)

    class Meta:
        ordering = ("category", "name")
        verbose_name = "Variable Metadata"
        verbose_name_plural = "Variable Metadata"

    def __str__(self) -> str:
        """Return the variable name for display contexts."""

        return self.name

    def as_row(self) -> dict[str, object]:
        """Return the mapping consumed by `variable_definitions_from_rows`."""

        return {
            "name": self.name,
            "label": self.label,
            "type": self.var_type,
            "category": self.category,
            "description": self.description,
            "derived": self.derived,
            "formula": self.formula,
        }

    def clean(self) -> None:
        """Require a parseable formula for derived variables."""

        if not self.derived:
            return
        if not self.formula.strip():
            raise ValidationError({"formula": "Derived variables require a formula."})
        inspection = inspect_formula(self.formula, DEFAULT_REGISTRY)
        if not inspection.is_valid_syntax:
            raise ValidationError({"formula": inspection.error})


class AnalyticsAggregate(models.Model):
    """Precomputed aggregate payload used to speed up partner reports.

    Rows are advisory: reports can always be recomputed from Project stats.

    Attributes:
        scope: Aggregate family ("partner" or "global").
        scope_key: Identifier within the scope (partner slug, or "all").
        payload: JSON form of AggregatedStats.
        computed_at: When the payload was last refreshed.
    """

    class Scope(models.TextChoices):
        PARTNER = "partner", "Partner"
        GLOBAL = "global", "Global"

    scope = models.CharField(max_length=16, choices=Scope.choices)
    scope_key = models.CharField(max_length=120)
    payload = models.JSONField(default=dict)
    computed_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=("scope", "scope_key"), name="core_aggregate_scope_key_unique"),
        ]

    def __str__(self) -> str:
        """Return a concise display string for admin/debug usage."""

        return f"AnalyticsAggregate({self.scope}:{self.scope_key})"

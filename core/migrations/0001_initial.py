"""Initial schema for projects, partners, chart configurations and variables."""

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Partner",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=120, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={"ordering": ("name",)},
        ),
        migrations.CreateModel(
            name="Project",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("event_name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=120, unique=True)),
                ("event_date", models.DateField()),
                ("stats", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "partner",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="projects",
                        to="core.partner",
                    ),
                ),
            ],
            options={"ordering": ("-event_date", "id")},
        ),
        migrations.CreateModel(
            name="ChartConfiguration",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("chart_id", models.SlugField(max_length=100, unique=True)),
                ("title", models.CharField(max_length=200)),
                (
                    "chart_type",
                    models.CharField(choices=[("pie", "Pie"), ("bar", "Bar"), ("kpi", "KPI")], max_length=8),
                ),
                ("order", models.IntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
                ("elements", models.JSONField(blank=True, default=list)),
                ("emoji", models.CharField(blank=True, max_length=16)),
                ("subtitle", models.CharField(blank=True, max_length=200)),
                ("show_total", models.BooleanField(default=False)),
                ("total_label", models.CharField(blank=True, max_length=100)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={"ordering": ("order", "chart_id")},
        ),
        migrations.CreateModel(
            name="VariableMetadata",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100, unique=True)),
                ("label", models.CharField(max_length=200)),
                (
                    "var_type",
                    models.CharField(
                        choices=[
                            ("count", "Count"),
                            ("percentage", "Percentage"),
                            ("currency", "Currency"),
                            ("numeric", "Numeric"),
                            ("text", "Text"),
                            ("boolean", "Boolean"),
                            ("date", "Date"),
                        ],
                        default="count",
                        max_length=16,
                    ),
                ),
                ("category", models.CharField(default="Custom", max_length=100)),
                ("description", models.TextField(blank=True)),
                ("derived", models.BooleanField(default=False)),
                ("formula", models.TextField(blank=True)),
            ],
            options={
                "ordering": ("category", "name"),
                "verbose_name": "Variable Metadata",
                "verbose_name_plural": "Variable Metadata",
            },
        ),
        migrations.CreateModel(
            name="AnalyticsAggregate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "scope",
                    models.CharField(choices=[("partner", "Partner"), ("global", "Global")], max_length=16),
                ),
                ("scope_key", models.CharField(max_length=120)),
                ("payload", models.JSONField(default=dict)),
                ("computed_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("scope", "scope_key"), name="core_aggregate_scope_key_unique")
                ],
            },
        ),
    ]

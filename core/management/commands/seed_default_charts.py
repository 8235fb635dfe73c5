"""Seed the default chart configurations and custom variables.

Reads `core/fixtures/default_charts.yaml` (or `--path`) and upserts rows by
`chart_id` / `name`, so running it repeatedly is safe.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from analysis.chart_config_validator import parse_chart_configuration, validate_chart_configuration
from analysis.variables import DEFAULT_REGISTRY, variable_definitions_from_rows
from core.models import ChartConfiguration, VariableMetadata

DEFAULT_FIXTURE = Path(__file__).resolve().parents[2] / "fixtures" / "default_charts.yaml"

_CHART_FIELDS = ("title", "chart_type", "order", "is_active", "emoji", "subtitle", "show_total", "total_label")


class Command(BaseCommand):
    """Upsert default ChartConfiguration and VariableMetadata rows."""

    help = "Seed default chart configurations and variables from a YAML fixture."

    def add_arguments(self, parser) -> None:
        """Add command arguments."""

        parser.add_argument("--path", default=str(DEFAULT_FIXTURE), help="YAML fixture to load.")
        parser.add_argument(
            "--check",
            action="store_true",
            help="Dry-run: validate the fixture and print what would change.",
        )
        parser.add_argument(
            "--write",
            action="store_true",
            help="Write changes to the database (required to persist results).",
        )

    def handle(self, *args, **options) -> str | None:
        """Run the command."""

        check: bool = options["check"]
        write: bool = options["write"]
        if check and write:
            raise CommandError("Use either --check or --write, not both.")
        if not check and not write:
            raise CommandError("Refusing to write without explicit intent; pass --check or --write.")

        fixture = self._load(Path(options["path"]))
        variables = _mapping_rows(fixture, "variables")
        charts = _mapping_rows(fixture, "charts")
        for idx, row in enumerate(variables):
            if not str(row.get("name") or "").strip():
                raise CommandError(f"variables[{idx}] has no name.")

        registry = DEFAULT_REGISTRY.extended(variable_definitions_from_rows(variables))
        for chart in charts:
            try:
                dto = parse_chart_configuration(chart)
            except ValueError as exc:
                raise CommandError(f"Chart {chart.get('chart_id')!r}: {exc}") from exc
            result = validate_chart_configuration(dto, registry=registry)
            if not result.is_valid:
                raise CommandError(f"Chart {dto.chart_id!r} is invalid: {'; '.join(result.errors)}")

        mode = "CHECK" if check else "WRITE"
        if check:
            self.stdout.write(f"[{mode}] variables={len(variables)} charts={len(charts)} valid")
            return None

        created = 0
        updated = 0
        with transaction.atomic():
            for row in variables:
                _, was_created = VariableMetadata.objects.update_or_create(
                    name=row["name"],
                    defaults={
                        "label": row.get("label") or row["name"],
                        "var_type": row.get("type") or VariableMetadata.VariableType.COUNT,
                        "category": row.get("category") or "Custom",
                        "description": row.get("description") or "",
                        "derived": bool(row.get("derived")),
                        "formula": row.get("formula") or "",
                    },
                )
                created, updated = (created + 1, updated) if was_created else (created, updated + 1)
            for chart in charts:
                defaults = {key: chart[key] for key in _CHART_FIELDS if chart.get(key) is not None}
                defaults["elements"] = chart.get("elements") or []
                _, was_created = ChartConfiguration.objects.update_or_create(
                    chart_id=parse_chart_configuration(chart).chart_id,
                    defaults=defaults,
                )
                created, updated = (created + 1, updated) if was_created else (created, updated + 1)

        self.stdout.write(f"[{mode}] created={created} updated={updated}")
        return None

    def _load(self, path: Path) -> dict[str, Any]:
        """Read and parse the YAML fixture."""

        try:
            with path.open(encoding="utf-8") as handle:
                data = yaml.safe_load(handle)
        except OSError as exc:
            raise CommandError(f"Cannot read fixture {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise CommandError(f"Invalid YAML in {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise CommandError(f"Fixture {path} must contain a mapping with 'variables' and 'charts'.")
        return data


def _mapping_rows(fixture: dict[str, Any], section: str) -> list[dict[str, Any]]:
    """Return a fixture section, requiring a list of mappings."""

    rows = fixture.get(section) or []
    if not isinstance(rows, list):
        raise CommandError(f"'{section}' must be a list.")
    for idx, row in enumerate(rows):
        if not isinstance(row, dict):
            raise CommandError(f"{section}[{idx}] must be a mapping, got {type(row).__name__}.")
    return rows

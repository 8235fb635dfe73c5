"""Pytest fixtures shared across engine and Django integration tests."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date

import pytest
from django.contrib.auth import get_user_model
from django.test import Client

from analysis.dto import ChartConfiguration, ChartElement


@pytest.fixture
def staff_user(db):
    """Return a staff user allowed to use the chart configuration tools."""

    user_model = get_user_model()
    return user_model.objects.create_user(username="editor", password="password", is_staff=True)


@pytest.fixture
def staff_client(staff_user):
    """Return a separate Django test client authenticated as a staff user."""

    staff = Client()
    staff.force_login(staff_user)
    return staff


@pytest.fixture
def make_project(db):
    """Return a factory creating Project rows with sensible defaults."""

    from core.models import Project

    counter = {"n": 0}

    def _make(*, stats: dict | None = None, partner=None, event_date: date | None = None, **kwargs):
        counter["n"] += 1
        n = counter["n"]
        return Project.objects.create(
            event_name=kwargs.pop("event_name", f"Event {n}"),
            slug=kwargs.pop("slug", f"event-{n}"),
            event_date=event_date or date(2024, 5, n),
            partner=partner,
            stats=stats if stats is not None else {},
            **kwargs,
        )

    return _make


@pytest.fixture
def gender_pie() -> ChartConfiguration:
    """Return the two-slice gender distribution pie chart."""

    return ChartConfiguration(
        chart_id="gender-distribution",
        type="pie",
        title="Gender Distribution",
        elements=(
            ChartElement(id="female", label="Female", formula="[stats.female]", color="#ff6b9d"),
            ChartElement(id="male", label="Male", formula="[stats.male]", color="#4a90e2"),
        ),
        order=1,
    )


@pytest.fixture(autouse=True)
def _fresh_variable_registry():
    """Keep the process-wide variable registry cache from leaking between tests."""

    yield
    from core import services

    services._registry_cache = None


def pytest_collection_modifyitems(items: Sequence[pytest.Item]) -> None:
    """Enforce that every test has exactly one speed marker.

    - `unit`: pure, fast tests with no database access.
    - `integration`: tests touching Django, database, views, commands, or IO.

    Each test must have exactly one of these markers.
    """

    invalid: list[str] = []
    for item in items:
        has_unit = item.get_closest_marker("unit") is not None
        has_integration = item.get_closest_marker("integration") is not None
        if has_unit == has_integration:
            markers = []
            if has_unit:
                markers.append("unit")
            if has_integration:
                markers.append("integration")
            invalid.append(f"{item.nodeid} (markers={markers or 'none'})")

    if invalid:
        joined = "\n".join(f"- {nodeid}" for nodeid in invalid)
        raise pytest.UsageError(
            "Each test must have exactly one speed marker: `@pytest.mark.unit` or "
            "`@pytest.mark.integration`.\n"
            f"Offending tests:\n{joined}"
        )

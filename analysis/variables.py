"""Variable registry for stats-driven chart formulas.

The registry describes which variables exist on a project's stats, their value
type, and which ones are derived from a formula instead of being captured
directly. It describes *capabilities* only; value resolution lives in
`analysis.evaluator`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Final, get_args

from .dto import VariableDefinition, VariableType

_STATS_PREFIX: Final[str] = "stats."
_VARIABLE_TYPES: Final[frozenset[str]] = frozenset(get_args(VariableType))


def normalize_variable_name(name: str) -> str:
    """Return the registry key for a variable reference.

    Accepts bare names (`female`), database paths (`stats.female`) and the
    bracketed token form used in stored formulas (`[stats.female]`).
    """

    key = name.strip()
    if key.startswith("[") and key.endswith("]"):
        key = key[1:-1].strip()
    if key.startswith(_STATS_PREFIX):
        key = key[len(_STATS_PREFIX) :]
    return key


class VariableRegistry:
    """Lookup helpers for variable definitions."""

    def __init__(self, definitions: Iterable[VariableDefinition]) -> None:
        """Initialize a registry from a collection of definitions."""

        self._definitions: dict[str, VariableDefinition] = {}
        for definition in definitions:
            key = normalize_variable_name(definition.name)
            if key in self._definitions:
                raise ValueError(f"Duplicate VariableDefinition name: {key!r}")
            if definition.derived and not (definition.formula or "").strip():
                raise ValueError(f"Derived variable {key!r} requires a formula.")
            self._definitions[key] = definition

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize_variable_name(name) in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def get(self, name: str) -> VariableDefinition | None:
        """Return a definition for a variable reference, or None when unknown."""

        return self._definitions.get(normalize_variable_name(name))

    def names(self) -> frozenset[str]:
        """Return all registered variable keys."""

        return frozenset(self._definitions)

    def list(self) -> tuple[VariableDefinition, ...]:
        """Return all definitions in a stable (category, name) order."""

        return tuple(
            sorted(self._definitions.values(), key=lambda d: (d.category, normalize_variable_name(d.name)))
        )

    def extended(self, definitions: Iterable[VariableDefinition]) -> "VariableRegistry":
        """Return a new registry where `definitions` override same-named entries."""

        merged = dict(self._definitions)
        for definition in definitions:
            merged[normalize_variable_name(definition.name)] = definition
        return VariableRegistry(merged.values())


def variable_definitions_from_rows(rows: Iterable[Mapping[str, Any]]) -> tuple[VariableDefinition, ...]:
    """Build definitions from stored variable metadata rows.

    Args:
        rows: Mappings with `name`, `label`, `type`, `category` and optional
            `description`, `derived`, `formula` keys.

    Returns:
        A tuple of VariableDefinition. Rows without a name are skipped and
        unknown types fall back to "numeric".
    """

    definitions: list[VariableDefinition] = []
    for row in rows:
        name = str(row.get("name") or "").strip()
        if not name:
            continue
        var_type = str(row.get("type") or "count")
        if var_type not in _VARIABLE_TYPES:
            var_type = "numeric"
        formula = row.get("formula") or None
        definitions.append(
            VariableDefinition(
                name=normalize_variable_name(name),
                label=str(row.get("label") or name),
                type=var_type,  # type: ignore[arg-type]
                category=str(row.get("category") or "Custom"),
                description=row.get("description") or None,
                derived=bool(row.get("derived")) and bool(formula),
                formula=formula,
            )
        )
    return tuple(definitions)


def _count(name: str, label: str, category: str, description: str | None = None) -> VariableDefinition:
    return VariableDefinition(name=name, label=label, type="count", category=category, description=description)


def _text(name: str, label: str, category: str, description: str | None = None) -> VariableDefinition:
    return VariableDefinition(name=name, label=label, type="text", category=category, description=description)


BASE_VARIABLES: Final[tuple[VariableDefinition, ...]] = (
    _count("remoteImages", "Remote Images", "Images", "Images taken remotely"),
    _count("hostessImages", "Hostess Images", "Images", "Images taken by hostesses"),
    _count("selfies", "Selfies", "Images", "Self-shot images"),
    _count("indoor", "Indoor", "Fans", "Remote fans watching indoors"),
    _count("outdoor", "Outdoor", "Fans", "Remote fans watching outdoors"),
    _count("stadium", "Location Fans", "Fans", "On-site (stadium) fans"),
    _count("female", "Female", "Demographics"),
    _count("male", "Male", "Demographics"),
    _count("genAlpha", "Gen Alpha", "Demographics"),
    _count("genYZ", "Gen Y+Z", "Demographics"),
    _count("genX", "Gen X", "Demographics"),
    _count("boomer", "Boomer", "Demographics"),
    _count("merched", "People with Merch", "Merchandise"),
    _count("jersey", "Jersey", "Merchandise"),
    _count("scarf", "Scarf", "Merchandise"),
    _count("flags", "Flags", "Merchandise"),
    _count("baseballCap", "Baseball Cap", "Merchandise"),
    _count("other", "Other", "Merchandise"),
    _count("approvedImages", "Approved Images", "Moderation"),
    _count("rejectedImages", "Rejected Images", "Moderation"),
    _count("eventAttendees", "Event Attendees", "Event"),
    _count("eventTicketPurchases", "Event Ticket Purchases", "Event"),
    _count("eventResultHome", "Event Result Home", "Event"),
    _count("eventResultVisitor", "Event Result Visitor", "Event"),
    _count("visitQrCode", "QR Code Visits", "Visits"),
    _count("visitShortUrl", "Short URL Visits", "Visits"),
    _count("visitWeb", "Web Visits", "Visits"),
    _count("bitlyTotalClicks", "Total Bitly Clicks", "Bitly", "Sum of all Bitly link clicks for the event"),
    _count("bitlyUniqueClicks", "Unique Bitly Clicks", "Bitly", "Unique visitors from Bitly links"),
    _count("bitlyCountryCount", "Countries Reached", "Bitly", "Number of unique countries"),
    _text("bitlyTopCountry", "Top Country", "Bitly", "Country with most clicks"),
    _text("bitlyTopReferrer", "Top Referrer Platform", "Bitly", "Platform with most clicks"),
    VariableDefinition(name="jerseyPrice", label="Jersey Price", type="currency", category="Pricing"),
    VariableDefinition(name="scarfPrice", label="Scarf Price", type="currency", category="Pricing"),
    VariableDefinition(name="flagsPrice", label="Flags Price", type="currency", category="Pricing"),
    VariableDefinition(name="capPrice", label="Cap Price", type="currency", category="Pricing"),
    VariableDefinition(name="otherPrice", label="Other Price", type="currency", category="Pricing"),
)

DERIVED_VARIABLES: Final[tuple[VariableDefinition, ...]] = (
    VariableDefinition(
        name="remoteFans",
        label="Remote",
        category="Fans",
        description="Indoor + Outdoor (a stored value takes precedence)",
        derived=True,
        formula="indoor + outdoor",
    ),
    VariableDefinition(
        name="totalFans",
        label="Total Fans",
        category="Fans",
        description="Remote + stadium fans",
        derived=True,
        formula="remoteFans + stadium",
    ),
    VariableDefinition(
        name="allImages",
        label="Total Images",
        category="Images",
        description="Sum of Remote, Hostess, and Selfies",
        derived=True,
        formula="remoteImages + hostessImages + selfies",
    ),
    VariableDefinition(
        name="totalUnder40",
        label="Total Under 40",
        category="Demographics",
        derived=True,
        formula="genAlpha + genYZ",
    ),
    VariableDefinition(
        name="totalOver40",
        label="Total Over 40",
        category="Demographics",
        derived=True,
        formula="genX + boomer",
    ),
)

DEFAULT_VARIABLES: Final[tuple[VariableDefinition, ...]] = BASE_VARIABLES + DERIVED_VARIABLES
DEFAULT_REGISTRY: Final[VariableRegistry] = VariableRegistry(DEFAULT_VARIABLES)

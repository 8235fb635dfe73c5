"""Refresh the advisory AnalyticsAggregate rows.

Partner reports recompute from Project stats whenever the stored aggregate is
older than the latest project edit, so running this command is optional.
"""

from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from core.services import refresh_analytics_aggregates


class Command(BaseCommand):
    """Recompute per-partner and global aggregates."""

    help = "Recompute per-partner and global analytics aggregates."

    def add_arguments(self, parser) -> None:
        """Add command arguments."""

        parser.add_argument(
            "--check",
            action="store_true",
            help="Dry-run: do not write to the database; print summaries only.",
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

        mode = "CHECK" if check else "WRITE"
        summary = refresh_analytics_aggregates(write=write)
        self.stdout.write(
            f"[{mode}] partners={summary.partners} created={summary.created} updated={summary.updated}"
        )
        return None

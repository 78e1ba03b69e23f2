"""Refresh the local MaxMind database.

Usage:
    python manage.py update_geoip
    python manage.py update_geoip --force
"""

import typing as t

from django.core.management.base import BaseCommand, CommandError

from geo.exceptions import GeoIPError
from geo.service import get_geoip_service


class Command(BaseCommand):
    help = "Download the MaxMind database if a newer one is available."

    def add_arguments(self, parser: t.Any) -> None:
        """Add CLI arguments."""
        parser.add_argument(
            "--force",
            action="store_true",
            help="Download even if the local database is current.",
        )

    def handle(self, *args: t.Any, **kwargs: t.Any) -> None:
        """Run one refresh."""
        try:
            status = get_geoip_service().update(force=kwargs["force"])
        except GeoIPError as e:
            raise CommandError(str(e)) from e

        if status.updated:
            self.stdout.write(self.style.SUCCESS(f"Database updated: {status.reason}"))
        else:
            self.stdout.write(f"Database not updated: {status.reason}")

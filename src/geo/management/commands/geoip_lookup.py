import typing as t

import orjson
from django.core.management.base import BaseCommand, CommandError

from geo.exceptions import GeoIPError
from geo.service import get_geoip_service


class Command(BaseCommand):
    help = "Look up an IP address in the local MaxMind database."

    def add_arguments(self, parser: t.Any) -> None:
        """Add CLI arguments."""
        parser.add_argument("address", help="IPv4 or IPv6 address.")

    def handle(self, *args: t.Any, **kwargs: t.Any) -> None:
        """Print the record as JSON."""
        try:
            record = get_geoip_service().lookup(kwargs["address"])
        except GeoIPError as e:
            raise CommandError(str(e)) from e
        self.stdout.write(orjson.dumps(record.as_dict(), option=orjson.OPT_INDENT_2).decode())

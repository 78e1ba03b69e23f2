from django.apps import AppConfig


class GeoConfig(AppConfig):
    """Configuration for the geo app."""

    name = "geo"

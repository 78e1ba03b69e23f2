"""WSGI config for the geolocation project."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "geolocation.settings")

application = get_wsgi_application()

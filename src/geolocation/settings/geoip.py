from decouple import config

from common.utils import duration_setting
from geo.conf import (
    DEFAULT_CHECKSUM_URL,
    DEFAULT_DOWNLOAD_URL,
    DEFAULT_EDITION_ID,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_STARTUP_RETRY_INTERVAL,
)

from .base import BASE_DIR

GEOIP_DATABASE_PATH = config("MAXMIND_DB_PATH", default=str(BASE_DIR / "geo" / "data" / "GeoLite2-City.mmdb"))
MAXMIND_LICENSE_KEY = config("MAXMIND_KEY", default="")
MAXMIND_EDITION_ID = config("MAXMIND_EDITION_ID", default=DEFAULT_EDITION_ID)
MAXMIND_DOWNLOAD_URL = config("MAXMIND_DOWNLOAD_URL", default=DEFAULT_DOWNLOAD_URL)
MAXMIND_CHECKSUM_URL = config("MAXMIND_CHECKSUM_URL", default=DEFAULT_CHECKSUM_URL)

GEOIP_HTTP_TIMEOUT = config(
    "MAXMIND_HTTP_TIMEOUT", default="30s", cast=duration_setting(DEFAULT_HTTP_TIMEOUT)
)
# 0 disables the window: every refresh asks MaxMind for the current checksum.
GEOIP_MIN_REFRESH_INTERVAL = config(
    "MAXMIND_REFRESH_INTERVAL", default="24h", cast=duration_setting(DEFAULT_REFRESH_INTERVAL)
)
GEOIP_AUTO_RELOAD = config("GEOIP_AUTO_RELOAD", default=True, cast=bool)
GEOIP_STARTUP_RETRY_INTERVAL = config(
    "MAXMIND_STARTUP_RETRY_INTERVAL", default="1m", cast=duration_setting(DEFAULT_STARTUP_RETRY_INTERVAL)
)

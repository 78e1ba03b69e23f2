import typing as t
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

from django.conf import settings

DEFAULT_DOWNLOAD_URL = "https://download.maxmind.com/app/geoip_download?suffix=tar.gz"
DEFAULT_CHECKSUM_URL = "https://download.maxmind.com/app/geoip_download?suffix=tar.gz.sha256"
DEFAULT_EDITION_ID = "GeoLite2-City"
DEFAULT_HTTP_TIMEOUT = timedelta(seconds=30)
DEFAULT_REFRESH_INTERVAL = timedelta(hours=24)
DEFAULT_STARTUP_RETRY_INTERVAL = timedelta(minutes=1)

ARTIFACT_SUFFIX = ".mmdb"
CHECKSUM_SUFFIX = ".sha256"


@dataclass(frozen=True)
class GeoIPConfig:
    """Immutable configuration of the geoip database service.

    Attributes:
        database_path: Location of the local ``.mmdb`` file.
        license_key: MaxMind license key. Empty disables downloads.
        download_url: Endpoint serving the gzipped tar archive.
        checksum_url: Endpoint serving the archive checksum.
        edition_id: MaxMind edition sent along with the license key.
        http_timeout: Deadline for a whole refresh (all network calls included).
        min_refresh_interval: Skip remote checks while the local file is younger than this.
            A zero interval disables the window.
        auto_reload: Reload the reader when the file on disk changes underneath the process.
        startup_retry_interval: After a failed start, wait this long before trying to open or
            download the database again.
    """

    database_path: Path
    license_key: str = field(default="", repr=False)
    download_url: str = DEFAULT_DOWNLOAD_URL
    checksum_url: str = DEFAULT_CHECKSUM_URL
    edition_id: str = DEFAULT_EDITION_ID
    http_timeout: timedelta = DEFAULT_HTTP_TIMEOUT
    min_refresh_interval: timedelta = DEFAULT_REFRESH_INTERVAL
    auto_reload: bool = True
    startup_retry_interval: timedelta = DEFAULT_STARTUP_RETRY_INTERVAL

    def __post_init__(self) -> None:
        object.__setattr__(self, "database_path", Path(self.database_path))
        object.__setattr__(self, "license_key", (self.license_key or "").strip())
        if self.http_timeout <= timedelta(0):
            object.__setattr__(self, "http_timeout", DEFAULT_HTTP_TIMEOUT)
        if self.min_refresh_interval < timedelta(0):
            object.__setattr__(self, "min_refresh_interval", timedelta(0))

    @property
    def checksum_path(self) -> Path:
        """Path of the checksum sidecar file."""
        return self.database_path.with_name(self.database_path.name + CHECKSUM_SUFFIX)

    @property
    def has_license(self) -> bool:
        """Whether downloads are possible at all."""
        return bool(self.license_key)

    @classmethod
    def from_settings(cls, **overrides: t.Any) -> "GeoIPConfig":
        """Build the configuration from Django settings."""
        values: dict[str, t.Any] = {
            "database_path": settings.GEOIP_DATABASE_PATH,
            "license_key": settings.MAXMIND_LICENSE_KEY,
            "download_url": settings.MAXMIND_DOWNLOAD_URL,
            "checksum_url": settings.MAXMIND_CHECKSUM_URL,
            "edition_id": settings.MAXMIND_EDITION_ID,
            "http_timeout": settings.GEOIP_HTTP_TIMEOUT,
            "min_refresh_interval": settings.GEOIP_MIN_REFRESH_INTERVAL,
            "auto_reload": settings.GEOIP_AUTO_RELOAD,
            "startup_retry_interval": settings.GEOIP_STARTUP_RETRY_INTERVAL,
        }
        values.update(overrides)
        return cls(**values)

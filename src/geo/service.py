"""GeoIP lookup service backed by a self-refreshing MaxMind database."""

import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

import maxminddb
import requests
import structlog

from common.utils import format_duration

from .conf import GeoIPConfig
from .exceptions import CredentialMissingError, DatabaseMissingError
from .readers import ReaderManager, ReaderOpener
from .records import GeoRecord, IPAddress, parse_ip_address
from .refresh import DatabaseDownloader

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class UpdateStatus:
    updated: bool
    reason: str


class GeoIPService:
    """Serves lookups while keeping the database current.

    On construction the database is opened. When it does not exist yet and a license key
    is configured, one forced download happens first; without a license key construction
    fails.
    """

    def __init__(
        self,
        config: GeoIPConfig,
        session: requests.Session | None = None,
        opener: ReaderOpener = maxminddb.open_database,
    ) -> None:
        self.config = config
        self.readers = ReaderManager(config.database_path, opener=opener)
        self.downloader = DatabaseDownloader(config, session=session, opener=opener) if config.has_license else None
        try:
            self._open_or_initialize()
        except BaseException:
            self.close()
            raise
        logger.info("maxmind database ready", path=str(config.database_path))

    def _open_or_initialize(self) -> None:
        if self.config.database_path.is_file() or self.downloader is None:
            try:
                self.readers.reload()
            except FileNotFoundError as e:
                raise DatabaseMissingError(
                    f"maxmind database {self.config.database_path} does not exist and no license key is configured"
                ) from e
            return

        logger.info("maxmind database missing, downloading", path=str(self.config.database_path))
        self.downloader.ensure_latest(force=True)
        self.readers.reload()

    def lookup(self, ip: str | IPAddress | None) -> GeoRecord:
        """Look up an address.

        Raises:
            InvalidAddressError: If the address is empty or malformed.
            DatabaseMissingError: If no database is loaded.
            AddressNotFoundError: If the address is not in the database.
        """
        address = parse_ip_address(ip)
        if self.config.auto_reload:
            self.readers.reload_if_modified()
        data = self.readers.lookup(address)
        return GeoRecord.from_mmdb(str(address), data)

    def update(self, force: bool = False, timeout: timedelta | None = None) -> UpdateStatus:
        """Refresh the database and reload the reader if a new file was installed.

        A failed refresh leaves the current reader in service.

        Raises:
            CredentialMissingError: If no license key is configured.
            GeoIPError: If the refresh fails.
        """
        if self.downloader is None:
            raise CredentialMissingError("maxmind license key not configured")

        updated, reason = self.downloader.ensure_latest(force=force, timeout=timeout)
        if updated:
            self.readers.reload()
            logger.info("maxmind database reloaded", path=str(self.config.database_path))
        return UpdateStatus(updated=updated, reason=reason)

    def ready(self) -> bool:
        return self.readers.ready()

    def database_path(self) -> Path:
        return self.config.database_path

    def close(self) -> None:
        self.readers.close()
        if self.downloader is not None:
            self.downloader.close()


_SERVICE: GeoIPService | None = None
_SERVICE_FAILED_AT: float | None = None
_SERVICE_LOCK = threading.Lock()


def get_geoip_service() -> GeoIPService:
    """Return the process-wide service, building it from settings on first use.

    A failed start is remembered: until ``startup_retry_interval`` has passed, callers get
    a ``DatabaseMissingError`` straight away instead of another download attempt.

    Raises:
        DatabaseMissingError: While waiting to retry a failed start.
        GeoIPError: If building the service fails.
    """
    global _SERVICE, _SERVICE_FAILED_AT

    if _SERVICE is None:
        with _SERVICE_LOCK:
            if _SERVICE is None:
                config = GeoIPConfig.from_settings()
                if _SERVICE_FAILED_AT is not None:
                    wait = config.startup_retry_interval.total_seconds() - (time.monotonic() - _SERVICE_FAILED_AT)
                    if wait > 0:
                        raise DatabaseMissingError(
                            f"maxmind database unavailable, next attempt in {format_duration(timedelta(seconds=wait))}"
                        )
                try:
                    _SERVICE = GeoIPService(config)
                except Exception as e:
                    _SERVICE_FAILED_AT = time.monotonic()
                    logger.warning(
                        "geoip service failed to start",
                        error=str(e),
                        retry_in=format_duration(config.startup_retry_interval),
                    )
                    raise
                _SERVICE_FAILED_AT = None
    return _SERVICE


def reset_geoip_service() -> None:
    """Close and forget the process-wide service and any failed start."""
    global _SERVICE, _SERVICE_FAILED_AT

    with _SERVICE_LOCK:
        _SERVICE_FAILED_AT = None
        service, _SERVICE = _SERVICE, None
    if service is not None:
        service.close()

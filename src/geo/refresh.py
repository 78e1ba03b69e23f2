"""Decide whether the local geoip database needs a refresh and perform it.

A refresh is attempted when it is forced, when the database is missing, or when the
checksum published by MaxMind differs from the one recorded at the last install. A
minimum refresh interval keeps the service from asking MaxMind on every call: while
the database file is younger than the interval, no network call is made at all.

The window is measured from the file's modification time, so replacing the file by
hand restarts it.
"""

import time
from dataclasses import dataclass
from datetime import timedelta
from enum import StrEnum
from pathlib import Path

import maxminddb
import requests
import structlog

from common.utils import format_duration

from .checksums import ChecksumOracle
from .conf import GeoIPConfig
from .exceptions import ArchiveCorruptError, FilesystemError, GeoIPError
from .fetcher import ArchiveFetcher
from .readers import ReaderOpener
from .replace import commit_file
from .transport import Deadline, DistributionClient

logger = structlog.get_logger(__name__)


class RefreshState(StrEnum):
    """Where the refresh decision landed."""

    NEEDS_INSTALL = "needs_install"
    WITHIN_REFRESH_WINDOW = "within_refresh_window"
    CHECK_PENDING = "check_pending"
    UP_TO_DATE = "up_to_date"
    NEEDS_UPDATE = "needs_update"
    FAILED = "failed"


class Reasons(StrEnum):
    FORCED = "force update requested"
    MISSING = "database file missing"
    UP_TO_DATE = "database already up to date"
    CHECKSUM_CHANGED = "remote checksum changed"


@dataclass(frozen=True)
class RefreshDecision:
    should_refresh: bool
    reason: str
    state: RefreshState
    remote_checksum: str = ""


class DatabaseDownloader:
    """Keeps the database file in sync with the MaxMind distribution endpoint."""

    def __init__(
        self,
        config: GeoIPConfig,
        session: requests.Session | None = None,
        opener: ReaderOpener | None = None,
    ) -> None:
        self.config = config
        self.opener = opener or maxminddb.open_database
        self.client = DistributionClient(config.license_key, config.edition_id, session=session)
        self.checksums = ChecksumOracle(config, self.client)
        self.fetcher = ArchiveFetcher(config, self.client)

    @property
    def target_path(self) -> Path:
        return self.config.database_path

    def decide(self, force: bool, deadline: Deadline) -> RefreshDecision:
        """Work out whether a refresh is warranted.

        Only the last step, the checksum comparison, touches the network.
        """
        if force:
            return RefreshDecision(True, Reasons.FORCED, RefreshState.NEEDS_INSTALL)

        if not self.target_path.is_file():
            return RefreshDecision(True, Reasons.MISSING, RefreshState.NEEDS_INSTALL)

        interval = self.config.min_refresh_interval
        if interval > timedelta(0):
            try:
                modified = self.target_path.stat().st_mtime
            except FileNotFoundError:
                return RefreshDecision(True, Reasons.MISSING, RefreshState.NEEDS_INSTALL)
            except OSError as e:
                raise FilesystemError(f"could not stat {self.target_path}: {e}") from e
            age = timedelta(seconds=max(time.time() - modified, 0))
            if age < interval:
                reason = (
                    f"last update {format_duration(age)} ago, minimum refresh window {format_duration(interval)}"
                )
                return RefreshDecision(False, reason, RefreshState.WITHIN_REFRESH_WINDOW)

        logger.debug("comparing checksums", state=RefreshState.CHECK_PENDING)
        should_download, remote_checksum = self.checksums.should_download(deadline)
        if not should_download:
            return RefreshDecision(False, Reasons.UP_TO_DATE, RefreshState.UP_TO_DATE, remote_checksum)
        return RefreshDecision(True, Reasons.CHECKSUM_CHANGED, RefreshState.NEEDS_UPDATE, remote_checksum)

    def ensure_latest(self, force: bool = False, timeout: timedelta | None = None) -> tuple[bool, str]:
        """Refresh the database if needed.

        Args:
            force: Skip every check and download unconditionally.
            timeout: Deadline for the whole refresh. Defaults to the configured HTTP timeout.

        Returns:
            Whether the database was replaced, and why (or why not).

        Raises:
            GeoIPError: If any step fails. The checksum sidecar is left untouched in that case.
        """
        deadline = Deadline(timeout or self.config.http_timeout)
        try:
            decision = self.decide(force, deadline)
            if decision.should_refresh:
                self.install(deadline, decision.remote_checksum)
        except GeoIPError as e:
            logger.warning("geoip refresh failed", state=RefreshState.FAILED, error=str(e))
            raise

        logger.info(
            "geoip refresh finished",
            updated=decision.should_refresh,
            reason=str(decision.reason),
            state=decision.state,
            path=str(self.target_path),
        )
        return decision.should_refresh, str(decision.reason)

    def install(self, deadline: Deadline, remote_checksum: str = "") -> None:
        """Download, commit and record a new database.

        The staged file must open as a database before it replaces the current one. The
        checksum is written last, once the new database is in place.

        Raises:
            ArchiveCorruptError: If the staged file is not a readable database.
        """
        staged = self.fetcher.fetch(deadline)
        try:
            self.verify(staged)
            commit_file(staged, self.target_path)
        except GeoIPError:
            staged.unlink(missing_ok=True)
            raise

        if not remote_checksum:
            remote_checksum = self.checksums.remote_checksum(deadline)
        self.checksums.write_local_checksum(remote_checksum)

    def verify(self, path: Path) -> None:
        """Open and close a database file to prove it is usable."""
        try:
            reader = self.opener(str(path))
        except (OSError, maxminddb.InvalidDatabaseError, ValueError) as e:
            raise ArchiveCorruptError(f"downloaded database is not readable: {e}") from e
        reader.close()

    def close(self) -> None:
        self.client.close()

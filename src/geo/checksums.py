"""Local and remote checksums of the geoip database.

The checksum of the last installed archive is kept in a sidecar file next to the
database. Comparing it against the checksum published by MaxMind tells whether a
download is needed.
"""

import tempfile
from pathlib import Path

import structlog

from .conf import GeoIPConfig
from .exceptions import FilesystemError
from .replace import commit_file
from .transport import Deadline, DistributionClient

logger = structlog.get_logger(__name__)


class ChecksumOracle:
    def __init__(self, config: GeoIPConfig, client: DistributionClient) -> None:
        self.config = config
        self.client = client

    def local_checksum(self) -> str:
        """Return the checksum recorded at the last install.

        An empty string means there is no baseline: the database or its sidecar is missing.

        Raises:
            FilesystemError: If the sidecar exists but cannot be read.
        """
        if not self.config.database_path.is_file() or not self.config.checksum_path.is_file():
            return ""
        try:
            return self.config.checksum_path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return ""
        except (OSError, UnicodeDecodeError) as e:
            raise FilesystemError(f"could not read {self.config.checksum_path}: {e}") from e

    def remote_checksum(self, deadline: Deadline) -> str:
        """Fetch the checksum currently published for the edition."""
        with self.client.get(self.config.checksum_url, deadline) as response:
            body = response.content
        return body.decode("utf-8", errors="replace").strip()

    def should_download(self, deadline: Deadline) -> tuple[bool, str]:
        """Compare the local and remote checksums.

        Returns:
            Whether a download is needed, and the remote checksum.
        """
        local = self.local_checksum()
        remote = self.remote_checksum(deadline)
        if not local:
            return True, remote
        return local.casefold() != remote.casefold(), remote

    def write_local_checksum(self, checksum: str) -> None:
        """Record the checksum of a freshly installed database.

        The sidecar is staged next to its target and renamed into place, so readers see
        either the previous checksum or the new one.
        """
        target = self.config.checksum_path
        staged: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=target.parent, prefix="geoip-", suffix=".sha256", delete=False
            ) as tmp:
                staged = Path(tmp.name)
                tmp.write(f"{checksum.strip()}\n")
            commit_file(staged, target)
        except OSError as e:
            if staged is not None:
                staged.unlink(missing_ok=True)
            raise FilesystemError(f"could not write checksum file {target}: {e}") from e
        except FilesystemError:
            if staged is not None:
                staged.unlink(missing_ok=True)
            raise
        logger.debug("checksum recorded", path=str(target))

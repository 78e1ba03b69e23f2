"""Download and unpack the geoip database archive.

MaxMind ships the database as a gzipped tarball holding a dated directory with the
``.mmdb`` file and some text files. The archive is decompressed while it streams in;
only the database member is written to disk.
"""

import io
import shutil
import tarfile
import tempfile
import typing as t
import zlib
from pathlib import Path

import structlog

from .conf import ARTIFACT_SUFFIX, GeoIPConfig
from .exceptions import ArchiveCorruptError, FilesystemError, GeoIPError
from .transport import Deadline, DistributionClient, iter_body

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 64 * 1024


class _ChunkStream(io.RawIOBase):
    """Read-only file object over an iterator of byte chunks."""

    def __init__(self, chunks: t.Iterator[bytes]) -> None:
        self._chunks = chunks
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: t.Any) -> int:
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size


class ArchiveFetcher:
    def __init__(self, config: GeoIPConfig, client: DistributionClient) -> None:
        self.config = config
        self.client = client

    def fetch(self, deadline: Deadline) -> Path:
        """Download the archive and stage the database member next to the target.

        Args:
            deadline: The deadline of the surrounding refresh.

        Returns:
            Path of the staged file, in the same directory as the database.

        Raises:
            ArchiveCorruptError: If the archive cannot be decompressed or holds no database file.
            FilesystemError: If the staged file cannot be written.
            TransportError: On network failures and timeouts.
            CredentialInvalidError: If the license key is rejected.
        """
        staged: Path | None = None
        try:
            with self.client.get(self.config.download_url, deadline, stream=True) as response:
                stream = _ChunkStream(iter_body(response, deadline, CHUNK_SIZE))
                with tarfile.open(fileobj=stream, mode="r|gz") as archive:
                    for member in archive:
                        if not member.isfile() or not member.name.endswith(ARTIFACT_SUFFIX):
                            continue
                        source = archive.extractfile(member)
                        if source is None:
                            continue
                        staged = self._stage(source)
                        logger.debug("database member staged", member=member.name, size=member.size)
                        break
        except GeoIPError:
            self._discard(staged)
            raise
        except (tarfile.TarError, zlib.error, EOFError) as e:
            self._discard(staged)
            raise ArchiveCorruptError(f"could not unpack database archive: {e}") from e
        except OSError as e:
            self._discard(staged)
            raise FilesystemError(f"could not stage database file: {e}") from e

        if staged is None:
            raise ArchiveCorruptError(f"invalid download, archive doesn't contain a {ARTIFACT_SUFFIX} file")
        return staged

    def _stage(self, source: t.IO[bytes]) -> Path:
        target_dir = self.config.database_path.parent
        target_dir.mkdir(parents=True, exist_ok=True)
        tmp = tempfile.NamedTemporaryFile(dir=target_dir, prefix="geoip-", suffix=ARTIFACT_SUFFIX, delete=False)
        staged = Path(tmp.name)
        try:
            with tmp:
                shutil.copyfileobj(source, tmp, CHUNK_SIZE)
        except BaseException:
            staged.unlink(missing_ok=True)
            raise
        return staged

    @staticmethod
    def _discard(staged: Path | None) -> None:
        if staged is not None:
            staged.unlink(missing_ok=True)

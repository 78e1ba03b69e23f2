"""Lifecycle of the open geoip database reader.

Lookups borrow the current reader for the duration of one query. A reload opens the
new reader first, swaps the pointer under a short lock and then retires the previous
reader. A retired reader is closed by whoever returns the last borrow, so no query
ever runs against a closed reader and no query waits for a download.
"""

import threading
import typing as t
from contextlib import contextmanager
from pathlib import Path

import maxminddb
import structlog

from .exceptions import AddressNotFoundError, DatabaseMissingError
from .records import IPAddress, parse_ip_address

logger = structlog.get_logger(__name__)


class Reader(t.Protocol):
    """What the manager needs from an open database, e.g. ``maxminddb.Reader``."""

    def get(self, ip_address: t.Any) -> t.Any: ...

    def close(self) -> None: ...


ReaderOpener = t.Callable[[str], Reader]


class ReaderHandle:
    """An open reader plus the number of lookups currently using it."""

    def __init__(self, reader: Reader, mtime_ns: int | None = None) -> None:
        self._reader = reader
        self.mtime_ns = mtime_ns
        self._lock = threading.Lock()
        self._borrowers = 0
        self._retired = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def borrowers(self) -> int:
        return self._borrowers

    def acquire(self) -> None:
        with self._lock:
            if self._closed:
                raise DatabaseMissingError("maxmind database reader already closed")
            self._borrowers += 1

    def release(self) -> None:
        with self._lock:
            self._borrowers -= 1
            close_now = self._retired and self._borrowers == 0 and not self._closed
            if close_now:
                self._closed = True
        if close_now:
            self._close_reader()

    def retire(self) -> None:
        """Mark the handle as superseded; it closes once the last borrower is done."""
        with self._lock:
            self._retired = True
            close_now = self._borrowers == 0 and not self._closed
            if close_now:
                self._closed = True
        if close_now:
            self._close_reader()

    def get(self, ip_address: IPAddress) -> t.Any:
        return self._reader.get(ip_address)

    def _close_reader(self) -> None:
        try:
            self._reader.close()
        except Exception:
            logger.warning("could not close maxmind database reader", exc_info=True)


class ReaderManager:
    """Owns the current reader of the database at ``database_path``."""

    def __init__(self, database_path: Path, opener: ReaderOpener = maxminddb.open_database) -> None:
        self.database_path = Path(database_path)
        self._opener = opener
        self._slot_lock = threading.Lock()
        self._reload_lock = threading.Lock()
        self._current: ReaderHandle | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @contextmanager
    def borrow(self) -> t.Iterator[ReaderHandle]:
        """Hold the current reader open for the duration of the block.

        Raises:
            DatabaseMissingError: If no reader is loaded or the manager is closed.
        """
        with self._slot_lock:
            if self._closed:
                raise DatabaseMissingError("maxmind database reader closed")
            handle = self._current
            if handle is None:
                raise DatabaseMissingError("maxmind database not loaded")
            handle.acquire()
        try:
            yield handle
        finally:
            handle.release()

    def lookup(self, ip: str | IPAddress | None) -> dict[str, t.Any]:
        """Look up the raw record of an address.

        Raises:
            InvalidAddressError: If the address cannot be parsed. Checked before touching the reader.
            DatabaseMissingError: If no reader is loaded.
            AddressNotFoundError: If the database has no record for the address.
        """
        address = parse_ip_address(ip)
        with self.borrow() as handle:
            record = handle.get(address)
        if record is None:
            raise AddressNotFoundError(f"the address {address} is not in the database")
        return t.cast(dict[str, t.Any], record)

    def reload(self) -> None:
        """Open the database file and make it the current reader.

        Raises:
            DatabaseMissingError: If the manager has been closed.
            FileNotFoundError: If the database file does not exist.
            maxminddb.InvalidDatabaseError: If the file is not a valid database.
        """
        if self._closed:
            raise DatabaseMissingError("maxmind database reader closed")
        mtime_ns = self.database_path.stat().st_mtime_ns
        handle = ReaderHandle(self._opener(str(self.database_path)), mtime_ns)
        previous: ReaderHandle | None = None
        with self._slot_lock:
            closed = self._closed
            if not closed:
                previous, self._current = self._current, handle
        if closed:
            handle.retire()
            raise DatabaseMissingError("maxmind database reader closed")
        if previous is not None:
            previous.retire()
        logger.debug("maxmind database reader swapped", path=str(self.database_path))

    def reload_if_modified(self) -> bool:
        """Reload when the file on disk is not the one the current reader was opened from.

        Picks up databases installed by another process. Failures keep the current reader.

        Returns:
            Whether a new reader was swapped in. Always false once the manager is closed.
        """
        if self._closed:
            return False
        try:
            mtime_ns = self.database_path.stat().st_mtime_ns
        except FileNotFoundError:
            return False
        with self._slot_lock:
            current = self._current
        if current is not None and current.mtime_ns == mtime_ns:
            return False
        if not self._reload_lock.acquire(blocking=False):
            return False
        try:
            self.reload()
        except (FileNotFoundError, DatabaseMissingError):
            return False
        except (OSError, maxminddb.InvalidDatabaseError, ValueError):
            logger.warning("could not reload maxmind database", path=str(self.database_path), exc_info=True)
            return False
        finally:
            self._reload_lock.release()
        logger.info("maxmind database reloaded from disk", path=str(self.database_path))
        return True

    def ready(self) -> bool:
        with self._slot_lock:
            return self._current is not None

    def close(self) -> None:
        """Drop the current reader for good. Safe to call repeatedly."""
        with self._slot_lock:
            self._closed = True
            handle, self._current = self._current, None
        if handle is not None:
            handle.retire()

"""Errors raised by the geoip database subsystem."""


class GeoIPError(Exception):
    """Base class for geoip database errors."""


class CredentialMissingError(GeoIPError):
    """Raised when no MaxMind license key is configured."""


class CredentialInvalidError(GeoIPError):
    """Raised when the distribution endpoint rejects the license key."""


class TransportError(GeoIPError):
    """Raised on network errors, timeouts and non-success responses.

    Attributes:
        status_code: HTTP status code of the response, if one was received.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize the error.

        Args:
            message: Error message describing what went wrong.
            status_code: HTTP status code, if available.
        """
        super().__init__(message)
        self.status_code = status_code


class ArchiveCorruptError(GeoIPError):
    """Raised when the downloaded archive cannot be read or lacks the database file."""


class FilesystemError(GeoIPError):
    """Raised when staging, removing or renaming the database file fails."""


class DatabaseMissingError(GeoIPError):
    """Raised when a lookup is attempted while no database is loaded."""


class AddressNotFoundError(GeoIPError):
    """Raised when the address is not present in the database."""


class InvalidAddressError(GeoIPError, ValueError):
    """Raised when the lookup address is empty or not an IP address."""

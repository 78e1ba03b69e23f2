"""Exception handlers for the API."""

import traceback
import typing as t

import structlog
from django.conf import settings
from django.http import HttpRequest
from ninja.responses import Response

from geo.exceptions import (
    AddressNotFoundError,
    ArchiveCorruptError,
    CredentialInvalidError,
    CredentialMissingError,
    DatabaseMissingError,
    GeoIPError,
    InvalidAddressError,
    TransportError,
)

logger = structlog.get_logger(__name__)


def handle_general_exception(request: HttpRequest, exc: Exception | t.Type[Exception]) -> Response:
    """Handle a general exception.

    Args:
        request: The incoming HTTP request.
        exc: The exception.

    Returns:
        The response.
    """
    logger.exception("INTERNAL_SERVER_ERROR", exc_info=True, stack_info=True, path=request.path)
    data = {"message": "Internal Server Error."}
    if settings.DEBUG:  # pragma: no cover
        data["traceback"] = traceback.format_exc()
    return Response(status=500, data=data)


def handle_geoip_error(request: HttpRequest, exc: GeoIPError | t.Type[GeoIPError]) -> Response:
    """Handle a geoip error that has no dedicated handler."""
    logger.error("GEOIP_ERROR", error=str(exc), error_type=type(exc).__name__, path=request.path)
    return Response(status=500, data={"message": str(exc)})


def handle_database_missing_error(
    request: HttpRequest, exc: DatabaseMissingError | t.Type[DatabaseMissingError]
) -> Response:
    """Handle a lookup or readiness check while no database is loaded."""
    return Response(status=503, data={"message": "database not loaded"})


def handle_address_not_found_error(
    request: HttpRequest, exc: AddressNotFoundError | t.Type[AddressNotFoundError]
) -> Response:
    """Handle an address that is not in the database."""
    return Response(status=404, data={"message": str(exc)})


def handle_invalid_address_error(
    request: HttpRequest, exc: InvalidAddressError | t.Type[InvalidAddressError]
) -> Response:
    """Handle a malformed lookup address."""
    return Response(status=400, data={"message": "invalid ip address"})


def handle_credential_missing_error(
    request: HttpRequest, exc: CredentialMissingError | t.Type[CredentialMissingError]
) -> Response:
    """Handle an update request without a configured license key."""
    return Response(status=400, data={"message": "missing maxmind license key"})


def handle_credential_invalid_error(
    request: HttpRequest, exc: CredentialInvalidError | t.Type[CredentialInvalidError]
) -> Response:
    """Handle a license key rejected by MaxMind."""
    logger.warning("MAXMIND_LICENSE_REJECTED", path=request.path)
    return Response(status=401, data={"message": "invalid maxmind license key"})


def handle_upstream_error(
    request: HttpRequest, exc: TransportError | ArchiveCorruptError | t.Type[GeoIPError]
) -> Response:
    """Handle a failure talking to MaxMind or unpacking its download."""
    logger.warning("MAXMIND_UPSTREAM_ERROR", error=str(exc), error_type=type(exc).__name__, path=request.path)
    return Response(status=502, data={"message": str(exc)})

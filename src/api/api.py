from django.conf import settings
from django.http import HttpRequest
from ninja_extra import NinjaExtraAPI

from common.schema import VersionResponse
from geo.controllers.geoip import GeoIPController
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

from .exception_handlers import (
    handle_address_not_found_error,
    handle_credential_invalid_error,
    handle_credential_missing_error,
    handle_database_missing_error,
    handle_general_exception,
    handle_geoip_error,
    handle_invalid_address_error,
    handle_upstream_error,
)

api = NinjaExtraAPI(
    title="Geolocation API",
    docs_url="/docs",
    version=settings.VERSION,
    description=f"IP geolocation API {settings.VERSION}",
    app_name=f"geolocation-api-{settings.VERSION}",
    urls_namespace="api",
)


@api.get("/version", tags=["Version"], response={200: VersionResponse}, url_name="version")
def version(request: HttpRequest) -> tuple[int, VersionResponse]:
    """Get the API version.

    Args:
        request: The incoming HTTP request.

    Returns:
        The response status code and message.
    """
    return 200, VersionResponse(version=settings.VERSION)


api.register_controllers(
    GeoIPController,
)

EXCEPTION_HANDLERS = {
    Exception: handle_general_exception,
    GeoIPError: handle_geoip_error,
    DatabaseMissingError: handle_database_missing_error,
    AddressNotFoundError: handle_address_not_found_error,
    InvalidAddressError: handle_invalid_address_error,
    CredentialMissingError: handle_credential_missing_error,
    CredentialInvalidError: handle_credential_invalid_error,
    TransportError: handle_upstream_error,
    ArchiveCorruptError: handle_upstream_error,
}

for exc, handler in EXCEPTION_HANDLERS.items():
    api.add_exception_handler(exc, handler)

import typing as t

from ninja_extra import ControllerBase, api_controller, route

from common.schema import ResponseMessage
from common.throttling import GeoThrottle, UpdateDatabaseThrottle
from geo.exceptions import GeoIPError, InvalidAddressError
from geo.schema import HealthResponse, LookupResponse, ReadinessResponse, UpdateResponse
from geo.service import get_geoip_service


@api_controller("", tags=["GeoIP"])
class GeoIPController(ControllerBase):
    @route.get(
        "/ip",
        response={200: LookupResponse, 400: ResponseMessage, 404: ResponseMessage, 503: ResponseMessage},
        url_name="lookup_ip",
        throttle=GeoThrottle(),
    )
    def lookup_ip(self, address: str = "") -> tuple[int, dict[str, t.Any]]:
        """Resolve an IPv4 or IPv6 address to its location.

        Looks the address up in the local MaxMind database. Answers 404 when the address
        is not in the database and 503 while no database is loaded.
        """
        address = address.strip()
        if not address:
            return 400, {"message": "missing address parameter"}
        try:
            record = get_geoip_service().lookup(address)
        except InvalidAddressError:
            return 400, {"message": "invalid ip address"}
        return 200, {"data": record.as_dict()}

    @route.get("/healthz", response={200: HealthResponse}, url_name="healthz")
    def healthz(self) -> tuple[int, HealthResponse]:
        """Liveness probe."""
        return 200, HealthResponse()

    @route.get("/readiness", response={200: ReadinessResponse, 503: ReadinessResponse}, url_name="readiness")
    def readiness(self) -> tuple[int, ReadinessResponse]:
        """Readiness probe: ready once a database is loaded."""
        try:
            ready = get_geoip_service().ready()
        except GeoIPError:
            ready = False
        if not ready:
            return 503, ReadinessResponse(ready=False, message="maxmind database not available")
        return 200, ReadinessResponse(ready=True)

    @route.get(
        "/updatedb",
        response={200: UpdateResponse, 400: ResponseMessage, 401: ResponseMessage, 502: ResponseMessage},
        url_name="update_database",
        throttle=UpdateDatabaseThrottle(),
    )
    def update_database(self, force: bool = False) -> tuple[int, UpdateResponse]:
        """Check MaxMind for a newer database and install it.

        Without ``force`` the check is skipped while the local database is younger than the
        minimum refresh interval, and nothing is downloaded when the checksums match.
        """
        service = get_geoip_service()
        status = service.update(force=force)
        message = status.reason or ("database downloaded" if status.updated else "database already up to date")
        return 200, UpdateResponse(update=status.updated, file=str(service.database_path()), message=message)

from ninja import Schema


class GeoRecordSchema(Schema):
    ip: str
    city: str | None = None
    country_code: str | None = None
    country: str | None = None
    continent_code: str | None = None
    continent: str | None = None
    subdivision_code: str | None = None
    subdivision: str | None = None
    postal_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    accuracy_radius: int | None = None
    time_zone: str | None = None


class LookupResponse(Schema):
    data: GeoRecordSchema


class HealthResponse(Schema):
    data: str = "healthz"


class ReadinessResponse(Schema):
    ready: bool
    message: str | None = None


class UpdateResponse(Schema):
    update: bool
    file: str
    message: str

from ninja_extra.throttling import AnonRateThrottle


class GeoThrottle(AnonRateThrottle):
    rate = "600/min"


class UpdateDatabaseThrottle(AnonRateThrottle):
    rate = "10/hour"

import ipaddress
import typing as t
from dataclasses import dataclass, field

from .exceptions import InvalidAddressError

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


def parse_ip_address(value: str | IPAddress | None) -> IPAddress:
    """Validate a lookup address.

    Raises:
        InvalidAddressError: If the value is empty or not an IPv4/IPv6 address.
    """
    if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return value
    if value is None or not str(value).strip():
        raise InvalidAddressError("invalid IP address")
    try:
        return ipaddress.ip_address(str(value).strip())
    except ValueError as e:
        raise InvalidAddressError("invalid IP address") from e


def _name(node: t.Mapping[str, t.Any] | None, language: str) -> str | None:
    if not node:
        return None
    names = node.get("names") or {}
    return names.get(language) or names.get("en")


@dataclass(frozen=True)
class GeoRecord:
    """A GeoLite2/GeoIP2 City record flattened for API consumers."""

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
    raw: dict[str, t.Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_mmdb(cls, ip: str, data: t.Mapping[str, t.Any], language: str = "en") -> "GeoRecord":
        country = data.get("country") or data.get("registered_country") or {}
        continent = data.get("continent") or {}
        subdivisions = data.get("subdivisions") or [{}]
        location = data.get("location") or {}
        return cls(
            ip=ip,
            city=_name(data.get("city"), language),
            country_code=country.get("iso_code"),
            country=_name(country, language),
            continent_code=continent.get("code"),
            continent=_name(continent, language),
            subdivision_code=subdivisions[0].get("iso_code"),
            subdivision=_name(subdivisions[0], language),
            postal_code=(data.get("postal") or {}).get("code"),
            latitude=location.get("latitude"),
            longitude=location.get("longitude"),
            accuracy_radius=location.get("accuracy_radius"),
            time_zone=location.get("time_zone"),
            raw=dict(data),
        )

    def as_dict(self) -> dict[str, t.Any]:
        """Serializable form, without the raw record."""
        return {
            "ip": self.ip,
            "city": self.city,
            "country_code": self.country_code,
            "country": self.country,
            "continent_code": self.continent_code,
            "continent": self.continent,
            "subdivision_code": self.subdivision_code,
            "subdivision": self.subdivision,
            "postal_code": self.postal_code,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy_radius": self.accuracy_radius,
            "time_zone": self.time_zone,
        }

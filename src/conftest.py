"""
Shared fixtures: a fake MaxMind distribution endpoint and a fake database reader.
"""

import io
import json
import tarfile
import typing as t
from datetime import timedelta
from pathlib import Path
from urllib.parse import urlsplit

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

from geo.conf import GeoIPConfig
from geo.exceptions import TransportError
from geo.transport import Deadline

DOWNLOAD_URL = "https://maxmind.test/download?suffix=tar.gz"
CHECKSUM_URL = "https://maxmind.test/checksum?suffix=tar.gz.sha256"


class MockReader:
    """Stand-in for ``maxminddb.Reader``.

    The "database" is a JSON object mapping addresses to records.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self.records: dict[str, t.Any] = json.loads(Path(path).read_text())
        self.closed = False
        self.lookups = 0

    def get(self, ip_address: t.Any) -> t.Any:
        if self.closed:
            raise ValueError("Attempt to read from a closed MaxMind DB.")
        self.lookups += 1
        return self.records.get(str(ip_address))

    def close(self) -> None:
        self.closed = True


class MockReaderOpener:
    """Opens ``MockReader`` instances and remembers them."""

    def __init__(self) -> None:
        self.readers: list[MockReader] = []

    def __call__(self, path: str) -> MockReader:
        reader = MockReader(path)
        self.readers.append(reader)
        return reader


class ExpiringDeadline(Deadline):
    """A deadline that runs out after a fixed number of checks."""

    def __init__(self, checks: int) -> None:
        super().__init__(60)
        self.checks_left = checks

    def remaining(self) -> float:
        if self.checks_left <= 0:
            raise TransportError(f"deadline of {self.timeout:g}s exceeded")
        self.checks_left -= 1
        return super().remaining()


def city_record(city: str = "Vienna", country_code: str = "AT", country: str = "Austria") -> dict[str, t.Any]:
    """A record shaped like a GeoLite2-City entry."""
    return {
        "city": {"geoname_id": 2761369, "names": {"en": city, "de": "Wien"}},
        "continent": {"code": "EU", "names": {"en": "Europe"}},
        "country": {"iso_code": country_code, "names": {"en": country}},
        "location": {"latitude": 48.2082, "longitude": 16.3738, "accuracy_radius": 20, "time_zone": "Europe/Vienna"},
        "postal": {"code": "1010"},
        "subdivisions": [{"iso_code": "9", "names": {"en": "Vienna"}}],
    }


def database_bytes(records: dict[str, t.Any]) -> bytes:
    return json.dumps(records).encode()


def build_archive(members: dict[str, bytes]) -> bytes:
    """Build a gzipped tarball in memory."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
        for name, payload in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(payload)
            archive.addfile(info, io.BytesIO(payload))
    return buffer.getvalue()


class FakeMaxMind(BaseAdapter):
    """Transport adapter answering like the MaxMind download endpoints."""

    def __init__(self, checksum: str = "checksum-v1", payload: bytes = b"{}") -> None:
        super().__init__()
        self.checksum = checksum
        self.payload = payload
        self.archive: bytes | None = None
        self.status_code = 200
        self.error: Exception | None = None
        self.requests: list[requests.PreparedRequest] = []

    @property
    def paths(self) -> list[str]:
        return [urlsplit(r.url or "").path for r in self.requests]

    def send(self, request: requests.PreparedRequest, *args: t.Any, **kwargs: t.Any) -> requests.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error

        path = urlsplit(request.url or "").path
        if path == "/checksum":
            body = f"{self.checksum}\n".encode()
        elif path == "/download":
            body = self.archive if self.archive is not None else build_archive(
                {"GeoLite2-City_20240101/GeoLite2-City.mmdb": self.payload}
            )
        else:
            return self._response(request, 404, b"not found")
        return self._response(request, self.status_code, body)

    def close(self) -> None:
        pass

    @staticmethod
    def _response(request: requests.PreparedRequest, status_code: int, body: bytes) -> requests.Response:
        response = requests.Response()
        response.status_code = status_code
        response.raw = io.BytesIO(body)
        response.headers = CaseInsensitiveDict({"Content-Type": "application/octet-stream"})
        response.url = request.url or ""
        response.request = request
        response.reason = "OK" if status_code == 200 else "Error"
        return response


@pytest.fixture
def fake_maxmind() -> FakeMaxMind:
    return FakeMaxMind(payload=database_bytes({"81.2.69.142": city_record()}))


@pytest.fixture
def maxmind_session(fake_maxmind: FakeMaxMind) -> requests.Session:
    session = requests.Session()
    session.mount("https://", fake_maxmind)
    return session


@pytest.fixture
def database_path(tmp_path: Path) -> Path:
    return tmp_path / "db" / "GeoLite2-City.mmdb"


@pytest.fixture
def geoip_config(database_path: Path) -> GeoIPConfig:
    return GeoIPConfig(
        database_path=database_path,
        license_key="license-key",
        download_url=DOWNLOAD_URL,
        checksum_url=CHECKSUM_URL,
        http_timeout=timedelta(seconds=5),
        min_refresh_interval=timedelta(0),
    )


@pytest.fixture
def reader_opener() -> MockReaderOpener:
    return MockReaderOpener()


@pytest.fixture(autouse=True)
def reset_geoip() -> t.Iterator[None]:
    """Drop the process-wide geoip service between tests."""
    from geo.service import reset_geoip_service

    reset_geoip_service()
    yield
    reset_geoip_service()


@pytest.fixture(autouse=True)
def clear_throttle_history() -> None:
    """Throttle history lives in the cache; start every test with a clean slate."""
    from django.core.cache import cache

    cache.clear()


@pytest.fixture(autouse=True)
def enable_celery_eager_mode(settings: t.Any) -> None:
    """Enable Celery eager mode for tests so tasks execute synchronously."""
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True

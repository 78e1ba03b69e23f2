import os
from pathlib import Path

import pytest
import requests

from conftest import ExpiringDeadline, FakeMaxMind, build_archive
from geo.conf import GeoIPConfig
from geo.exceptions import ArchiveCorruptError, CredentialInvalidError, TransportError
from geo.fetcher import ArchiveFetcher
from geo.transport import Deadline, DistributionClient


@pytest.fixture
def fetcher(geoip_config: GeoIPConfig, maxmind_session: requests.Session) -> ArchiveFetcher:
    client = DistributionClient(geoip_config.license_key, geoip_config.edition_id, session=maxmind_session)
    return ArchiveFetcher(geoip_config, client)


def _leftovers(directory: Path) -> list[str]:
    if not directory.exists():
        return []
    return sorted(p.name for p in directory.iterdir())


def test_stages_database_member_next_to_target(
    fetcher: ArchiveFetcher, geoip_config: GeoIPConfig, fake_maxmind: FakeMaxMind
) -> None:
    staged = fetcher.fetch(Deadline(5))

    assert staged.parent == geoip_config.database_path.parent
    assert staged.name.startswith("geoip-")
    assert staged.suffix == ".mmdb"
    assert staged.read_bytes() == fake_maxmind.payload
    assert not geoip_config.database_path.exists()


def test_skips_non_database_members(fetcher: ArchiveFetcher, fake_maxmind: FakeMaxMind) -> None:
    fake_maxmind.archive = build_archive(
        {
            "GeoLite2-City_20240101/COPYRIGHT.txt": b"copyright",
            "GeoLite2-City_20240101/LICENSE.txt": b"license",
            "GeoLite2-City_20240101/GeoLite2-City.mmdb": b"the database",
        }
    )

    staged = fetcher.fetch(Deadline(5))

    assert staged.read_bytes() == b"the database"


def test_large_member_is_copied_intact(fetcher: ArchiveFetcher, fake_maxmind: FakeMaxMind) -> None:
    payload = bytes(range(256)) * 2048
    fake_maxmind.payload = payload

    staged = fetcher.fetch(Deadline(5))

    assert staged.read_bytes() == payload


def test_archive_without_database(fetcher: ArchiveFetcher, geoip_config: GeoIPConfig, fake_maxmind: FakeMaxMind) -> None:
    fake_maxmind.archive = build_archive({"GeoLite2-City_20240101/README.txt": b"hello"})

    with pytest.raises(ArchiveCorruptError, match="doesn't contain a .mmdb file"):
        fetcher.fetch(Deadline(5))

    assert _leftovers(geoip_config.database_path.parent) == []


def test_body_that_is_not_gzip(fetcher: ArchiveFetcher, geoip_config: GeoIPConfig, fake_maxmind: FakeMaxMind) -> None:
    fake_maxmind.archive = b"this is not a tarball"

    with pytest.raises(ArchiveCorruptError):
        fetcher.fetch(Deadline(5))

    assert _leftovers(geoip_config.database_path.parent) == []


def test_truncated_archive(fetcher: ArchiveFetcher, geoip_config: GeoIPConfig, fake_maxmind: FakeMaxMind) -> None:
    """A download cut short mid-member leaves no staged file behind."""
    archive = build_archive({"GeoLite2-City_20240101/GeoLite2-City.mmdb": bytes(range(256)) * 4096})
    fake_maxmind.archive = archive[: len(archive) // 2]

    with pytest.raises(ArchiveCorruptError):
        fetcher.fetch(Deadline(5))

    assert _leftovers(geoip_config.database_path.parent) == []


def test_rejected_license(fetcher: ArchiveFetcher, fake_maxmind: FakeMaxMind) -> None:
    fake_maxmind.status_code = 401

    with pytest.raises(CredentialInvalidError):
        fetcher.fetch(Deadline(5))


def test_deadline_expiring_mid_download(
    fetcher: ArchiveFetcher, geoip_config: GeoIPConfig, fake_maxmind: FakeMaxMind
) -> None:
    """Running out of time between chunks aborts the download and removes the staged file."""
    fake_maxmind.payload = os.urandom(2 * 1024 * 1024)

    with pytest.raises(TransportError, match="deadline"):
        fetcher.fetch(ExpiringDeadline(checks=4))

    assert _leftovers(geoip_config.database_path.parent) == []

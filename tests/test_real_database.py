"""
End-to-end tests against real MaxMind DB files decoded by geoip2
"""

import os

import pytest

from geolite_api.errors import SnapshotError
from geolite_api.services.lookup import LookupService, LookupStatus
from geolite_api.services.refresh import RefreshCoordinator, RefreshStatus
from geolite_api.services.snapshot import SnapshotStore, load_snapshot
from geolite_api.services.staging import ArchiveStager
from tests.support import FakeDistributor, distributor_archive

mmdb_writer = pytest.importorskip("mmdb_writer")
netaddr = pytest.importorskip("netaddr")

GOOGLE = {
    "city": {"geoname_id": 5375480, "names": {"en": "Mountain View"}},
    "continent": {"code": "NA", "geoname_id": 6255149, "names": {"en": "North America"}},
    "country": {"geoname_id": 6252001, "iso_code": "US", "names": {"en": "United States"}},
    "location": {
        "accuracy_radius": 1000,
        "latitude": 37.386,
        "longitude": -122.0838,
        "time_zone": "America/Los_Angeles",
    },
    "postal": {"code": "94035"},
    "subdivisions": [{"geoname_id": 5332921, "iso_code": "CA", "names": {"en": "California"}}],
}

CLOUDFLARE = {
    "continent": {"code": "OC", "geoname_id": 6255151, "names": {"en": "Oceania"}},
    "country": {"geoname_id": 2077456, "iso_code": "AU", "names": {"en": "Australia"}},
    "location": {"accuracy_radius": 1000, "latitude": -33.494, "longitude": 143.2104},
}


def build_mmdb(path, networks, database_type="GeoLite2-City", ip_version=6):
    writer = mmdb_writer.MMDBWriter(
        ip_version=ip_version,
        database_type=database_type,
        languages=["en"],
        description="test database",
        ipv4_compatible=ip_version == 6,
    )
    for cidr, record in networks.items():
        writer.insert_network(netaddr.IPSet([cidr]), record)
    writer.to_db_file(str(path))
    with open(path, "rb") as f:
        return f.read()


@pytest.fixture
def city_db(tmp_path):
    path = tmp_path / "source" / "GeoLite2-City.mmdb"
    path.parent.mkdir()
    build_mmdb(path, {"8.8.8.0/24": GOOGLE, "1.1.1.0/24": CLOUDFLARE, "2001:4860::/32": GOOGLE})
    return path


def test_load_and_resolve(city_db):
    snapshot = load_snapshot(str(city_db))
    service = LookupService(SnapshotStore(snapshot))

    assert snapshot.database_type == "GeoLite2-City"
    assert snapshot.build_epoch > 0

    found = service.resolve("8.8.8.8")
    assert found.status is LookupStatus.FOUND
    assert found.record.country_code == "US"
    assert found.record.city == "Mountain View"
    assert found.record.region == "California"
    assert found.record.time_zone == "America/Los_Angeles"

    sparse = service.resolve("1.1.1.1")
    assert sparse.status is LookupStatus.FOUND
    assert sparse.record.country == "Australia"
    assert sparse.record.city is None

    assert service.resolve("2001:4860:4860::8888").status is LookupStatus.FOUND
    assert service.resolve("203.0.113.1").status is LookupStatus.NOT_FOUND


def test_wrong_database_type_rejected(tmp_path):
    path = tmp_path / "GeoLite2-ASN.mmdb"
    build_mmdb(path, {"8.8.8.0/24": {"autonomous_system_number": 15169}}, database_type="GeoLite2-ASN")
    with pytest.raises(SnapshotError, match="GeoLite2-ASN"):
        load_snapshot(str(path))


def test_ipv6_lookup_in_ipv4_database_fails(tmp_path):
    path = tmp_path / "GeoLite2-City.mmdb"
    build_mmdb(path, {"8.8.8.0/24": GOOGLE}, ip_version=4)
    service = LookupService(SnapshotStore(load_snapshot(str(path))))

    assert service.resolve("8.8.8.8").status is LookupStatus.FOUND
    assert service.resolve("2001:4860::1").status is LookupStatus.FAILED


def test_snapshot_survives_file_replacement(city_db):
    """Memory-mode snapshots keep answering after the file on disk is overwritten"""
    snapshot = load_snapshot(str(city_db))
    city_db.write_bytes(b"overwritten")

    result = LookupService(SnapshotStore(snapshot)).resolve("8.8.8.8")
    assert result.status is LookupStatus.FOUND


def test_refresh_pipeline_with_real_archive(tmp_path, city_db):
    db_path = tmp_path / "data" / "GeoLite2-City.mmdb"
    staging = tmp_path / "staging"
    staging.mkdir()
    store = SnapshotStore()
    coordinator = RefreshCoordinator(
        store=store,
        distributor=FakeDistributor([distributor_archive(city_db.read_bytes())]),
        stager=ArchiveStager("GeoLite2-City.mmdb"),
        db_path=str(db_path),
        staging_root=str(staging),
    )

    outcome = coordinator.refresh_now()

    assert outcome.status is RefreshStatus.SUCCEEDED
    assert db_path.read_bytes() == city_db.read_bytes()
    assert os.listdir(staging) == []
    assert LookupService(store).resolve("8.8.8.8").record.country_code == "US"

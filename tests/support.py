"""
Test doubles for the refresh pipeline and the geoip2 reader
"""

import io
import ipaddress
import json
import tarfile
import threading
from types import SimpleNamespace as NS
from typing import Dict, List, Optional

import geoip2.errors

from geolite_api.errors import SnapshotError
from geolite_api.services.snapshot import Snapshot

GOOGLE_DNS = {
    "city": "Mountain View",
    "region": "California",
    "region_code": "CA",
    "country": "United States",
    "country_code": "US",
    "continent": "North America",
    "continent_code": "NA",
    "postal_code": "94035",
    "latitude": 37.386,
    "longitude": -122.0838,
    "accuracy_radius": 1000,
    "time_zone": "America/Los_Angeles",
}

CLOUDFLARE_DNS = {
    "city": "Sydney",
    "region": "New South Wales",
    "region_code": "NSW",
    "country": "Australia",
    "country_code": "AU",
    "continent": "Oceania",
    "continent_code": "OC",
    "latitude": -33.8688,
    "longitude": 151.2093,
    "accuracy_radius": 500,
    "time_zone": "Australia/Sydney",
}

DEFAULT_NETWORKS = {
    "8.8.8.0/24": GOOGLE_DNS,
    "1.1.1.0/24": CLOUDFLARE_DNS,
    "2001:4860::/32": GOOGLE_DNS,
}


def _city(address, network, data: dict):
    return NS(
        city=NS(name=data.get("city")),
        subdivisions=NS(most_specific=NS(name=data.get("region"), iso_code=data.get("region_code"))),
        country=NS(
            name=data.get("country"),
            iso_code=data.get("country_code"),
            is_in_european_union=data.get("is_in_european_union", False),
        ),
        continent=NS(name=data.get("continent"), code=data.get("continent_code")),
        postal=NS(code=data.get("postal_code")),
        location=NS(
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            accuracy_radius=data.get("accuracy_radius"),
            time_zone=data.get("time_zone"),
        ),
        traits=NS(ip_address=str(address), network=network),
    )


class FakeReader:
    """Duck-typed stand-in for geoip2.database.Reader.city()"""

    def __init__(self, networks: Dict[str, dict]):
        self.networks = {ipaddress.ip_network(k): v for k, v in networks.items()}
        self.calls = 0

    def city(self, ip):
        self.calls += 1
        address = ipaddress.ip_address(ip) if isinstance(ip, str) else ip
        for network, data in self.networks.items():
            if address.version == network.version and address in network:
                return _city(address, network, data)
        raise geoip2.errors.AddressNotFoundError(f"The address {address} is not in the database.")


def fake_db_bytes(networks: Optional[Dict[str, dict]] = None, database_type: str = "GeoLite2-City",
                  build_epoch: int = 1760000000) -> bytes:
    """Serialized database understood by fake_loader"""
    return json.dumps({
        "database_type": database_type,
        "build_epoch": build_epoch,
        "networks": networks if networks is not None else DEFAULT_NETWORKS,
    }).encode()


def fake_loader(path: str, expected_type: str = "City") -> Snapshot:
    """Drop-in for load_snapshot reading fake_db_bytes files"""
    try:
        with open(path, "rb") as f:
            data = json.loads(f.read().decode())
    except (OSError, ValueError) as e:
        raise SnapshotError(f"cannot parse database {path}: {e}") from e
    if expected_type not in data.get("database_type", ""):
        raise SnapshotError(f"database {path} has type {data.get('database_type')!r}")
    return Snapshot(
        reader=FakeReader(data["networks"]),
        source=path,
        database_type=data["database_type"],
        build_epoch=data["build_epoch"],
    )


def fake_snapshot(networks: Optional[Dict[str, dict]] = None, source: str = "memory") -> Snapshot:
    return Snapshot(
        reader=FakeReader(networks if networks is not None else DEFAULT_NETWORKS),
        source=source,
        database_type="GeoLite2-City",
        build_epoch=1760000000,
    )


def make_archive(files: Dict[str, bytes]) -> bytes:
    """Build a tar.gz holding the given member name -> content mapping"""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as archive:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            archive.addfile(info, io.BytesIO(content))
    return buf.getvalue()


def distributor_archive(db: bytes, edition: str = "GeoLite2-City", release: str = "20261018") -> bytes:
    """Archive laid out like the distributor's: <edition>_<date>/<edition>.mmdb plus license files"""
    folder = f"{edition}_{release}"
    return make_archive({
        f"{folder}/COPYRIGHT.txt": b"Database and Contents Copyright (c) MaxMind, Inc.\n",
        f"{folder}/LICENSE.txt": b"Use of this MaxMind product is governed by ...\n",
        f"{folder}/{edition}.mmdb": db,
    })


class FakeDistributor:
    """Replays a script of archives (bytes) and failures (exceptions)"""

    def __init__(self, script: List, gate: Optional[threading.Event] = None):
        self.script = list(script)
        self.gate = gate
        self.fetching = threading.Event()
        self.calls = 0

    def fetch(self) -> bytes:
        self.calls += 1
        self.fetching.set()
        if self.gate is not None:
            self.gate.wait(10)
        step = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(step, Exception):
            raise step
        return step

"""
Address lookups against the active database snapshot
"""

import ipaddress
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import geoip2.errors
import maxminddb

from ..errors import InvalidAddress
from ..schemas.geo import GeoRecord
from .prometheus_metrics import prometheus_metrics
from .snapshot import SnapshotStore

logger = logging.getLogger("geolite.lookup")


class LookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(frozen=True)
class LookupResult:
    status: LookupStatus
    record: Optional[GeoRecord] = None
    reason: Optional[str] = None

    @classmethod
    def found(cls, record: GeoRecord) -> "LookupResult":
        return cls(LookupStatus.FOUND, record=record)

    @classmethod
    def not_found(cls) -> "LookupResult":
        return cls(LookupStatus.NOT_FOUND)

    @classmethod
    def failed(cls, reason: str) -> "LookupResult":
        return cls(LookupStatus.FAILED, reason=reason)


def parse_address(address_text: str):
    """Parse an IPv4 or IPv6 address, raising InvalidAddress"""
    try:
        return ipaddress.ip_address(address_text or "")
    except ValueError:
        raise InvalidAddress(address_text) from None


def to_geo_record(city) -> GeoRecord:
    """Flatten a geoip2 City model; missing values stay None"""
    subdivision = city.subdivisions.most_specific
    network = getattr(city.traits, "network", None)
    return GeoRecord(
        ip_address=str(city.traits.ip_address),
        network=str(network) if network is not None else None,
        city=city.city.name,
        region=subdivision.name,
        region_code=subdivision.iso_code,
        country=city.country.name,
        country_code=city.country.iso_code,
        continent=city.continent.name,
        continent_code=city.continent.code,
        postal_code=city.postal.code,
        latitude=city.location.latitude,
        longitude=city.location.longitude,
        accuracy_radius=city.location.accuracy_radius,
        time_zone=city.location.time_zone,
        is_in_european_union=city.country.is_in_european_union,
    )


class LookupService:
    """Read-only translation of an address string into a LookupResult"""

    def __init__(self, store: SnapshotStore):
        self.store = store

    def resolve(self, address_text: str) -> LookupResult:
        address = parse_address(address_text)

        # One reference for the whole lookup, even if a swap happens meanwhile
        snapshot = self.store.current()
        try:
            city = snapshot.reader.city(address)
            result = LookupResult.found(to_geo_record(city))
        except geoip2.errors.AddressNotFoundError:
            result = LookupResult.not_found()
        except (geoip2.errors.GeoIP2Error, maxminddb.InvalidDatabaseError,
                ValueError, TypeError, OSError) as e:
            logger.error(f"Lookup error: {e}", extra={"component": "lookup", "ip": str(address)})
            result = LookupResult.failed(str(e))

        prometheus_metrics.increment_lookups(result.status.value)
        return result

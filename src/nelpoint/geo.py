from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import geoip2.database
import geoip2.errors

from nelpoint.models import Continent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeoData:
    """Location and network owner of an address."""

    asn: int
    as_name: str
    city: str
    country_code: str
    continent: Continent
    latitude: float
    longitude: float
    region: Optional[str] = None


class GeoLookup(Protocol):
    def lookup(self, ip) -> Optional[GeoData]:
        """Return what is known about `ip`, or None when there's no data for it."""
        ...


class NoGeoLookup:
    """Used when no geo database is configured; knows nothing about anyone."""

    def lookup(self, ip) -> Optional[GeoData]:
        return None


def _continent(code: Optional[str]) -> Continent:
    try:
        return Continent(code or Continent.UNKNOWN.value)
    except ValueError:
        return Continent.UNKNOWN


class GeoIP2Lookup:
    """
    MaxMind GeoIP2/GeoLite2 lookups: location from a City database and,
    optionally, network owner from an ASN database.

    A client missing from the City database has no geo data. A client missing
    only from the ASN database gets asn 0 and an empty AS name.
    """

    def __init__(self, city_reader, asn_reader=None):
        self.city_reader = city_reader
        self.asn_reader = asn_reader

    @classmethod
    def open(cls, city_path: str, asn_path: str = "") -> "GeoIP2Lookup":
        city_reader = geoip2.database.Reader(city_path)
        asn_reader = geoip2.database.Reader(asn_path) if asn_path else None
        logger.info("geo lookups from %s (asn: %s)", city_path, asn_path or "none")
        return cls(city_reader, asn_reader)

    def _asn(self, ip):
        if self.asn_reader is None:
            return 0, ""
        try:
            resp = self.asn_reader.asn(ip)
        except geoip2.errors.AddressNotFoundError:
            return 0, ""
        return resp.autonomous_system_number or 0, resp.autonomous_system_organization or ""

    def lookup(self, ip) -> Optional[GeoData]:
        try:
            city = self.city_reader.city(ip)
        except geoip2.errors.AddressNotFoundError:
            return None

        asn, as_name = self._asn(ip)
        return GeoData(
            asn=asn,
            as_name=as_name,
            city=city.city.name or "",
            region=city.subdivisions.most_specific.iso_code,
            country_code=city.country.iso_code or "",
            continent=_continent(city.continent.code),
            latitude=city.location.latitude or 0.0,
            longitude=city.location.longitude or 0.0,
        )

    def close(self) -> None:
        self.city_reader.close()
        if self.asn_reader is not None:
            self.asn_reader.close()

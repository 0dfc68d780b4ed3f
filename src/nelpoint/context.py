from __future__ import annotations

import ipaddress
import logging
from typing import Union

from nelpoint.anonymize import IPAddress, truncate_ip_to_prefix
from nelpoint.errors import GeoLookupUnavailable, InvalidClientAddress, UserAgentParseError
from nelpoint.geo import GeoData, GeoLookup
from nelpoint.models import ClientContext, Continent
from nelpoint.user_agent import UserAgentParser

logger = logging.getLogger(__name__)

PLACEHOLDER_GEO = GeoData(
    asn=0,
    as_name="",
    city="",
    country_code="",
    continent=Continent.UNKNOWN,
    latitude=0.0,
    longitude=0.0,
)


def parse_client_ip(ip: Union[str, IPAddress, None]) -> IPAddress:
    if isinstance(ip, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return ip
    try:
        return ipaddress.ip_address((ip or "").strip())
    except ValueError as e:
        raise InvalidClientAddress("client address is not an IP") from e


class ClientContextResolver:
    """
    Builds the ClientContext for one request from a geo lookup, a user agent
    parse and the truncated client address. Nothing is cached.

    With geo_fallback=True an address missing from the geo data gets
    placeholder location fields instead of failing the batch.
    """

    def __init__(self, geo: GeoLookup, ua_parser: UserAgentParser, *, geo_fallback: bool = False):
        self.geo = geo
        self.ua_parser = ua_parser
        self.geo_fallback = geo_fallback

    def resolve(self, ip: Union[str, IPAddress], user_agent: str = "") -> ClientContext:
        addr = parse_client_ip(ip)

        geo = self.geo.lookup(addr)
        if geo is None:
            if not self.geo_fallback:
                raise GeoLookupUnavailable("no geo data for client address")
            logger.debug("no geo data for client, using placeholder")
            geo = PLACEHOLDER_GEO

        try:
            ua = self.ua_parser.parse(user_agent or "")
        except UserAgentParseError:
            raise
        except Exception as e:
            raise UserAgentParseError(str(e)) from e

        return ClientContext(
            client_ip=truncate_ip_to_prefix(addr),
            client_user_agent=str(ua),
            client_asn=geo.asn,
            client_asname=geo.as_name,
            client_city=geo.city,
            client_region=geo.region or "",
            client_country_code=geo.country_code,
            client_continent_code=geo.continent,
            client_latitude=geo.latitude,
            client_longitude=geo.longitude,
        )

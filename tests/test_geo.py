import ipaddress
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import geoip2.errors

from nelpoint.geo import GeoIP2Lookup, NoGeoLookup
from nelpoint.models import Continent

IP = ipaddress.ip_address("198.51.100.37")


def _city(name="Lyon", region="ARA", country="FR", continent="EU", lat=45.76, lon=4.83):
    return SimpleNamespace(
        city=SimpleNamespace(name=name),
        subdivisions=SimpleNamespace(most_specific=SimpleNamespace(iso_code=region)),
        country=SimpleNamespace(iso_code=country),
        continent=SimpleNamespace(code=continent),
        location=SimpleNamespace(latitude=lat, longitude=lon),
    )


def _asn(number=64497, org="Narrow Net"):
    return SimpleNamespace(autonomous_system_number=number, autonomous_system_organization=org)


def _not_found(ip):
    raise geoip2.errors.AddressNotFoundError(f"The address {ip} is not in the database.")


def test_city_and_asn_mapped():
    city_reader, asn_reader = MagicMock(), MagicMock()
    city_reader.city.return_value = _city()
    asn_reader.asn.return_value = _asn()

    geo = GeoIP2Lookup(city_reader, asn_reader).lookup(IP)

    assert geo.asn == 64497
    assert geo.as_name == "Narrow Net"
    assert geo.city == "Lyon"
    assert geo.region == "ARA"
    assert geo.country_code == "FR"
    assert geo.continent is Continent.EUROPE
    assert (geo.latitude, geo.longitude) == (45.76, 4.83)
    city_reader.city.assert_called_once_with(IP)
    asn_reader.asn.assert_called_once_with(IP)


def test_city_miss_is_no_data():
    city_reader, asn_reader = MagicMock(), MagicMock()
    city_reader.city.side_effect = _not_found
    assert GeoIP2Lookup(city_reader, asn_reader).lookup(IP) is None
    asn_reader.asn.assert_not_called()


def test_asn_miss_or_no_asn_db():
    city_reader, asn_reader = MagicMock(), MagicMock()
    city_reader.city.return_value = _city()
    asn_reader.asn.side_effect = _not_found

    for lookup in (GeoIP2Lookup(city_reader, asn_reader), GeoIP2Lookup(city_reader)):
        geo = lookup.lookup(IP)
        assert (geo.asn, geo.as_name) == (0, "")
        assert geo.city == "Lyon"


def test_sparse_city_record():
    city_reader = MagicMock()
    city_reader.city.return_value = _city(name=None, region=None, country=None, continent=None, lat=None, lon=None)

    geo = GeoIP2Lookup(city_reader).lookup(IP)

    assert geo.city == ""
    assert geo.region is None
    assert geo.country_code == ""
    assert geo.continent is Continent.UNKNOWN
    assert (geo.latitude, geo.longitude) == (0.0, 0.0)


def test_open_and_close_readers():
    with patch("nelpoint.geo.geoip2.database.Reader") as reader_cls:
        lookup = GeoIP2Lookup.open("/data/GeoLite2-City.mmdb", "/data/GeoLite2-ASN.mmdb")
        assert [c.args[0] for c in reader_cls.call_args_list] == [
            "/data/GeoLite2-City.mmdb",
            "/data/GeoLite2-ASN.mmdb",
        ]
        lookup.close()
        assert reader_cls.return_value.close.call_count == 2


def test_open_without_asn_db():
    with patch("nelpoint.geo.geoip2.database.Reader") as reader_cls:
        lookup = GeoIP2Lookup.open("/data/GeoLite2-City.mmdb")
    assert reader_cls.call_count == 1
    assert lookup.asn_reader is None


def test_no_geo_lookup_knows_nothing():
    assert NoGeoLookup().lookup(IP) is None

"""
Shared fakes for the report pipeline tests.
No geo database, no network: lookups and the sink are in memory.
"""
import json
from typing import Dict, List, Optional, Tuple

import pytest

from nelpoint.context import ClientContextResolver
from nelpoint.geo import GeoData
from nelpoint.models import Continent
from nelpoint.pipeline import LogEmitter, ReportPipeline
from nelpoint.user_agent import RuleUserAgentParser

CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

REPORT = {
    "user_agent": "x",
    "url": "https://a.test/",
    "type": "network-error",
    "age": 10,
    "body": {
        "type": "dns.name_not_resolved",
        "elapsed_time": 100,
        "method": "GET",
        "phase": "dns",
        "protocol": "http/1.1",
        "referrer": "",
        "sampling_fraction": 1.0,
        "server_ip": "192.0.2.1",
        "status_code": 0,
    },
}

LONDON = GeoData(
    asn=64496,
    as_name="Example Transit",
    city="London",
    region="ENG",
    country_code="GB",
    continent=Continent.EUROPE,
    latitude=51.5,
    longitude=-0.12,
)


def batch(*reports) -> bytes:
    return json.dumps(list(reports)).encode("utf-8")


class MemorySink:
    def __init__(self):
        self.lines: List[Tuple[str, str]] = []

    def write_line(self, channel: str, line: str) -> None:
        self.lines.append((channel, line))

    def channel(self, name: str) -> List[dict]:
        return [json.loads(line) for ch, line in self.lines if ch == name]


class FakeGeo:
    def __init__(self, data: Optional[GeoData] = LONDON):
        self.data = data
        self.calls = []

    def lookup(self, ip) -> Optional[GeoData]:
        self.calls.append(ip)
        return self.data


class BrokenParser:
    def parse(self, raw: str):
        raise RuntimeError("parser exploded")


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def geo():
    return FakeGeo()


@pytest.fixture
def resolver(geo):
    return ClientContextResolver(geo, RuleUserAgentParser())


@pytest.fixture
def pipeline(resolver, sink):
    return ReportPipeline(resolver, LogEmitter(sink), clock=lambda: 1700000000.9)

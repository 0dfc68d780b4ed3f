from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr


# ----------------------------
# Incoming NEL reports
# ----------------------------
class ReportBody(BaseModel):
    """
    The network error details of a NEL report.
    Values are passed through verbatim; see https://www.w3.org/TR/network-error-logging
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    error_type: StrictStr = Field(alias="type")   # e.g. dns.name_not_resolved
    elapsed_time: StrictInt                       # ms, negative when not available
    method: StrictStr
    phase: StrictStr
    protocol: StrictStr
    referrer: StrictStr
    sampling_fraction: StrictFloat
    server_ip: StrictStr
    status_code: StrictInt


class Report(BaseModel):
    """One report as delivered by the user agent."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_agent: StrictStr
    url: StrictStr
    report_type: StrictStr = Field(alias="type")
    age: StrictInt                                # ms since the event
    body: ReportBody


# ----------------------------
# Client context
# ----------------------------
class Continent(str, Enum):
    AFRICA = "AF"
    ANTARCTICA = "AN"
    ASIA = "AS"
    EUROPE = "EU"
    NORTH_AMERICA = "NA"
    OCEANIA = "OC"
    SOUTH_AMERICA = "SA"
    UNKNOWN = "XX"


class ClientContext(BaseModel):
    """
    Who sent the batch. Built once per request and shared by every
    LogRecord of that request. client_ip is always a truncated network.
    """
    model_config = ConfigDict(frozen=True)

    client_ip: str
    client_user_agent: str
    client_asn: int = Field(ge=0)
    client_asname: str
    client_city: str
    client_region: str
    client_country_code: str
    client_continent_code: Continent
    client_latitude: float
    client_longitude: float


# ----------------------------
# Emitted log line
# ----------------------------
class LogRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: int                          # unix seconds at assembly
    client: ClientContext
    report: Report

    def to_line(self) -> str:
        return self.model_dump_json(by_alias=True)

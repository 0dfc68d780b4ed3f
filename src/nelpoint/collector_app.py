from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from nelpoint.context import ClientContextResolver
from nelpoint.errors import BatchDecodeError, ContextResolutionError, SinkError
from nelpoint.geo import GeoIP2Lookup, GeoLookup, NoGeoLookup
from nelpoint.pipeline import LogEmitter, ReportPipeline
from nelpoint.sink import FileLogSink, HttpLogSink, LogSink
from nelpoint.timed_access_log_middleware import TimedAccessLogMiddleware, client_ip_from_request
from nelpoint.user_agent import RuleUserAgentParser

logger = logging.getLogger(__name__)

# ----------------------------
# Config
# ----------------------------
SERVICE_NAME = os.getenv("NEL_SERVICE", "nelpoint")
CLIENT_IP_HEADER = os.getenv("NEL_CLIENT_IP_HEADER", "").strip()
REPORT_CHANNEL = os.getenv("NEL_REPORT_CHANNEL", "reports")

# file | http
SINK_KIND = os.getenv("NEL_SINK", "file").strip().lower()
SINK_DIR = os.getenv("NEL_SINK_DIR", "./nel-logs")
SINK_URL = os.getenv("NEL_SINK_URL", "").strip()
SINK_TOKEN = os.getenv("NEL_SINK_TOKEN", "")

# MaxMind City and ASN databases (.mmdb)
GEO_DB = os.getenv("NEL_GEO_DB", "").strip()
ASN_DB = os.getenv("NEL_ASN_DB", "").strip()
# 1 = emit with placeholder geo fields when the client isn't in the geo data,
# 0 = drop the batch
GEO_FALLBACK = os.getenv("NEL_GEO_FALLBACK", "0") == "1"

ACCESS_LOG = os.getenv("NEL_ACCESS_LOG", "0") == "1"
ACCESS_CHANNEL = os.getenv("NEL_ACCESS_CHANNEL", "access")

REPORT_PATH = "/report"

# Required by user agents delivering NEL reports; don't change.
NO_CONTENT_HEADERS = {
    "Content-Type": "application/json",
    "Cache-Control": "no-cache, no-store, max-age=0, must-revalidate",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Connection": "keep-alive",
}


def no_content_response() -> Response:
    return Response(status_code=204, headers=dict(NO_CONTENT_HEADERS))


def not_found_response() -> PlainTextResponse:
    return PlainTextResponse("Not found", status_code=404)


# ----------------------------
# Wiring
# ----------------------------
def default_sink() -> LogSink:
    if SINK_KIND == "http":
        if not SINK_URL:
            raise RuntimeError("NEL_SINK=http needs NEL_SINK_URL")
        return HttpLogSink(SINK_URL, token=SINK_TOKEN)
    if SINK_KIND == "file":
        return FileLogSink(SINK_DIR)
    raise RuntimeError(f"unknown NEL_SINK {SINK_KIND!r}")


def default_geo() -> Optional[GeoLookup]:
    if GEO_DB:
        return GeoIP2Lookup.open(GEO_DB, ASN_DB)
    return None


def build_pipeline(
    sink: LogSink,
    geo: Optional[GeoLookup] = None,
    ua_parser=None,
    geo_fallback: Optional[bool] = None,
) -> ReportPipeline:
    if geo_fallback is None:
        geo_fallback = GEO_FALLBACK
    if geo is None:
        geo = default_geo()
    if geo is None:
        # without any geo source every batch would be dropped
        logger.warning("NEL_GEO_DB not set: logging reports with placeholder location fields")
        geo, geo_fallback = NoGeoLookup(), True

    resolver = ClientContextResolver(
        geo,
        ua_parser if ua_parser is not None else RuleUserAgentParser(),
        geo_fallback=geo_fallback,
    )
    return ReportPipeline(resolver, LogEmitter(sink, channel=REPORT_CHANNEL))


def run_pipeline(pipeline: ReportPipeline, payload: bytes, client_ip: Optional[str], user_agent: str) -> None:
    """Run one batch and swallow whatever goes wrong; the caller always answers 204."""
    try:
        written = pipeline.process(payload, client_ip, user_agent)
        logger.info("logged %d report(s)", written)
    except BatchDecodeError as e:
        logger.warning("dropping batch, undecodable body: %s", e)
    except ContextResolutionError as e:
        logger.warning("dropping batch, no client context: %s", e)
    except SinkError as e:
        logger.error("log sink failed: %s", e)
    except Exception:
        logger.exception("unexpected failure handling report batch")


# ----------------------------
# App
# ----------------------------
def create_app(
    pipeline: Optional[ReportPipeline] = None,
    *,
    sink: Optional[LogSink] = None,
    access_log: bool = ACCESS_LOG,
    client_ip_header: str = CLIENT_IP_HEADER,
    geo: Optional[GeoLookup] = None,
    geo_fallback: Optional[bool] = None,
) -> FastAPI:
    if sink is None:
        sink = default_sink()
    if pipeline is None:
        pipeline = build_pipeline(sink, geo=geo, geo_fallback=geo_fallback)

    app = FastAPI(title="NEL report collector", redirect_slashes=False, openapi_url=None)
    app.state.pipeline = pipeline

    @app.on_event("shutdown")
    def _close_geo():
        close = getattr(pipeline.resolver.geo, "close", None)
        if close is not None:
            close()

    app.add_middleware(
        TimedAccessLogMiddleware,
        service=SERVICE_NAME,
        sink=sink if access_log else None,
        channel=ACCESS_CHANNEL,
        client_ip_header=client_ip_header,
    )

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        # unknown paths and wrong methods both look like a missing route
        if exc.status_code in (404, 405):
            return not_found_response()
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code)

    @app.options(REPORT_PATH)
    async def report_preflight():
        return no_content_response()

    @app.post(REPORT_PATH)
    async def report(request: Request):
        payload = await request.body()
        client_ip = client_ip_from_request(request, client_ip_header)
        user_agent = request.headers.get("user-agent", "")
        await asyncio.to_thread(run_pipeline, app.state.pipeline, payload, client_ip, user_agent)
        return no_content_response()

    return app


app = create_app()

# ----------------------------
# Entry hint (optional)
# ----------------------------
# Run with:
#   uvicorn nelpoint.collector_app:app --host 127.0.0.1 --port 7000

from __future__ import annotations

import json
import logging
import time
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from nelpoint.anonymize import truncate_ip_to_prefix
from nelpoint.context import parse_client_ip
from nelpoint.errors import ContextResolutionError, SinkError
from nelpoint.sink import LogSink
from nelpoint.trace_context import new_request_id, reset_request_id, set_request_id

logger = logging.getLogger(__name__)


def client_ip_from_request(request: Request, header: str = "") -> Optional[str]:
    """Client address from `header` when configured and present, else the socket peer."""
    if header:
        val = request.headers.get(header)
        if val:
            return val.split(",")[0].strip()
    return request.client.host if request.client else None


def _client_prefix(ip: Optional[str]) -> Optional[str]:
    try:
        return truncate_ip_to_prefix(parse_client_ip(ip))
    except ContextResolutionError:
        return None


class TimedAccessLogMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with a request id for diagnostic logging and, when a
    sink is given, writes one JSON access line per request to `channel`.
    The client address is only ever written truncated.
    """
    def __init__(
        self,
        app,
        *,
        service: str,
        sink: Optional[LogSink] = None,
        channel: str = "access",
        client_ip_header: str = "",
    ):
        super().__init__(app)
        self.service = service
        self.sink = sink
        self.channel = channel
        self.client_ip_header = client_ip_header

    async def dispatch(self, request: Request, call_next):
        start = time.time()
        request_id = new_request_id()
        token = set_request_id(request_id)
        status = 500

        try:
            resp = await call_next(request)
            status = resp.status_code
            return resp
        finally:
            if self.sink is not None:
                self._write(request, request_id, status, (time.time() - start) * 1000.0)
            reset_request_id(token)

    def _write(self, request: Request, request_id: str, status: int, dur_ms: float) -> None:
        record = {
            "kind": "req",
            "service": self.service,
            "ts": time.time(),
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": int(status),
            "duration_ms": round(dur_ms, 3),
            "meta": {
                "client": _client_prefix(client_ip_from_request(request, self.client_ip_header)),
                "ua": request.headers.get("user-agent"),
            },
        }
        try:
            self.sink.write_line(self.channel, json.dumps(record))
        except SinkError as e:
            logger.warning("access log write failed: %s", e)

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, List

from nelpoint.context import ClientContextResolver
from nelpoint.decoder import decode_batch
from nelpoint.errors import SerializationError
from nelpoint.models import ClientContext, LogRecord, Report
from nelpoint.sink import LogSink

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = "reports"


def assemble(report: Report, client: ClientContext, now: int) -> LogRecord:
    return LogRecord(timestamp=now, client=client, report=report)


def serialize(record: LogRecord) -> str:
    try:
        return record.to_line()
    except (ValueError, TypeError) as e:
        raise SerializationError(str(e)) from e


class LogEmitter:
    """
    Writes one JSON line per record to the sink.

    A record that fails to serialize is dropped and the rest still go out.
    SinkError from the sink is not caught here.
    """

    def __init__(self, sink: LogSink, channel: str = DEFAULT_CHANNEL):
        self.sink = sink
        self.channel = channel

    def emit(self, records: Iterable[LogRecord]) -> int:
        written = 0
        for record in records:
            try:
                line = serialize(record)
            except SerializationError as e:
                logger.warning("dropping report for %s: %s", record.report.url, e)
                continue
            self.sink.write_line(self.channel, line)
            written += 1
        return written


class ReportPipeline:
    """decode -> resolve client -> assemble -> emit, for one request body."""

    def __init__(
        self,
        resolver: ClientContextResolver,
        emitter: LogEmitter,
        clock: Callable[[], float] = time.time,
    ):
        self.resolver = resolver
        self.emitter = emitter
        self.clock = clock

    def process(self, payload: bytes, client_ip, user_agent: str = "") -> int:
        """
        Run the whole batch. Returns the number of lines written.
        Batch level failures (decode, client context) raise before anything
        is written.
        """
        reports = decode_batch(payload)
        client = self.resolver.resolve(client_ip, user_agent)

        now = int(self.clock())
        records: List[LogRecord] = [assemble(r, client, now) for r in reports]
        written = self.emitter.emit(records)
        logger.debug("emitted %d/%d reports", written, len(records))
        return written

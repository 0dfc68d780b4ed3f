from __future__ import annotations

import logging
import os
import queue
import threading
from typing import Protocol, Tuple

import requests

from nelpoint.errors import SinkError

logger = logging.getLogger(__name__)


class LogSink(Protocol):
    def write_line(self, channel: str, line: str) -> None:
        """Append one line to `channel`. Raises SinkError if the write failed."""
        ...


class FileLogSink:
    """One append-only file per channel: <directory>/<channel>.log"""

    def __init__(self, directory: str):
        self.directory = directory
        self._lock = threading.Lock()

    def path_for(self, channel: str) -> str:
        return os.path.join(self.directory, f"{channel}.log")

    def write_line(self, channel: str, line: str) -> None:
        path = self.path_for(channel)
        try:
            with self._lock:
                os.makedirs(self.directory, exist_ok=True)
                with open(path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
        except OSError as e:
            raise SinkError(f"write to {path} failed: {e}") from e


class HttpLogSink:
    """
    Ships lines to <url>/<channel> from a background thread.
    Lines are dropped when the queue is full or the POST fails; nothing is retried.
    """

    def __init__(self, url: str, token: str = "", max_q: int = 8000, timeout: float = 1.2):
        self.url = url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.q: "queue.Queue[Tuple[str, str]]" = queue.Queue(maxsize=max_q)
        threading.Thread(target=self._worker, daemon=True).start()

    def write_line(self, channel: str, line: str) -> None:
        try:
            self.q.put_nowait((channel, line))
        except queue.Full:
            # drop under pressure
            logger.warning("sink queue full, dropping line for channel %s", channel)

    def _post(self, channel: str, line: str) -> None:
        headers = {"Content-Type": "application/x-ndjson"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        resp = requests.post(
            f"{self.url}/{channel}",
            data=(line + "\n").encode("utf-8"),
            headers=headers,
            timeout=self.timeout,
        )
        resp.raise_for_status()

    def _worker(self):
        while True:
            channel, line = self.q.get()
            try:
                self._post(channel, line)
            except requests.RequestException as e:
                logger.warning("delivery to channel %s failed: %s", channel, e)
            finally:
                self.q.task_done()

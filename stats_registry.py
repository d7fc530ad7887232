import logging
import threading
import time
from collections import namedtuple

logger = logging.getLogger(__name__)

StatsSnapshot = namedtuple(
    'StatsSnapshot',
    ['connected', 'peak_connected', 'sent', 'received', 'errors', 'elapsed'],
)


class StatsRegistry:
    """Counters shared by every agent in a run.

    All mutators hold a lock for a single integer update only, so they are
    safe from asyncio callbacks and from plain threads alike.
    """

    def __init__(self, clock=time.monotonic):
        self._lock = threading.Lock()
        self._clock = clock
        self.start_time = clock()
        self._connected = 0
        self._peak_connected = 0
        self._sent = 0
        self._received = 0
        self._errors = 0

    def increment_sent(self):
        with self._lock:
            self._sent += 1

    def increment_received(self):
        with self._lock:
            self._received += 1

    def increment_error(self):
        with self._lock:
            self._errors += 1

    def connection_opened(self):
        with self._lock:
            self._connected += 1
            if self._connected > self._peak_connected:
                self._peak_connected = self._connected
            return self._connected

    def connection_closed(self):
        with self._lock:
            if self._connected == 0:
                logger.warning("Connection closed with no open connections recorded")
                return 0
            self._connected -= 1
            return self._connected

    def elapsed(self):
        return self._clock() - self.start_time

    def snapshot(self):
        with self._lock:
            return StatsSnapshot(
                connected=self._connected,
                peak_connected=self._peak_connected,
                sent=self._sent,
                received=self._received,
                errors=self._errors,
                elapsed=self._clock() - self.start_time,
            )

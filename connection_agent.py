import asyncio
import enum
import json
import logging
import threading
import time

logger = logging.getLogger(__name__)


class AgentState(enum.Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'
    ERRORED = 'errored'
    CLOSED = 'closed'


class ConnectionAgent:
    """One simulated client: connects, emits at a fixed rate, counts replies.

    Every state change goes through ``self._lock`` so that a disconnect
    notification racing with ``stop()`` decrements the shared connection
    count exactly once.
    """

    def __init__(self, index, url, rate, transport, stats, total=None, message_handler=None):
        self.index = index
        self.url = url
        self.rate = rate
        self.transport = transport
        self.stats = stats
        self.total = total
        self.message_handler = message_handler
        self.state = AgentState.DISCONNECTED
        self._lock = threading.Lock()
        self._connection = None
        self._task = None
        self._emitter = None

    @property
    def interval(self):
        return 1.0 / self.rate

    @property
    def emitting(self):
        return self._emitter is not None and not self._emitter.done()

    def start(self):
        self._task = asyncio.ensure_future(self.run())
        return self._task

    async def run(self):
        with self._lock:
            if self.state is not AgentState.DISCONNECTED:
                return
            self.state = AgentState.CONNECTING

        try:
            connection = await self.transport.connect(self.url)
        except Exception as e:
            with self._lock:
                if self.state is AgentState.CONNECTING:
                    self.state = AgentState.ERRORED
            self.stats.increment_error()
            logger.error(f"Connection {self.index} failed: {e}")
            return

        with self._lock:
            stopped = self.state is not AgentState.CONNECTING
            if not stopped:
                self.state = AgentState.CONNECTED
                self._connection = connection
                connected = self.stats.connection_opened()
        if stopped:
            # stop() won the race with the handshake
            await connection.close()
            return

        logger.info(f"Connection {self.index} established ({connected}/{self.total or '?'})")
        self._emitter = asyncio.ensure_future(self._emit(connection))
        await self._receive(connection)

    def build_payload(self):
        timestamp = int(time.time() * 1000)
        return json.dumps({
            'data': f"Message from connection {self.index} - {timestamp}",
            'timestamp': timestamp,
        })

    async def _emit(self, connection):
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while self.state is AgentState.CONNECTED:
            try:
                await connection.send(self.build_payload())
            except Exception as e:
                if self.state is not AgentState.CONNECTED or connection.closed:
                    # Peer went away mid-send; the receive loop reports the disconnect
                    logger.debug(f"Send on closed connection {self.index} dropped: {e}")
                    return
                self.stats.increment_error()
                logger.warning(f"Send on connection {self.index} failed, stopping emission: {e}")
                return
            self.stats.increment_sent()

            next_tick += self.interval
            now = loop.time()
            if next_tick < now:
                # Skip ticks we fell behind on instead of bursting
                next_tick = now
            await asyncio.sleep(next_tick - now)

    async def _receive(self, connection):
        try:
            async for message in connection:
                self.handle_message(message)
        except Exception as e:
            reason = str(e)
        else:
            reason = connection.disconnect_reason
        self._on_disconnect(reason)

    def handle_message(self, message):
        try:
            self.stats.increment_received()
            if self.message_handler is not None:
                self.message_handler(self.index, message)
        except Exception as e:
            self.stats.increment_error()
            logger.error(f"Error handling message on connection {self.index}: {e}", exc_info=True)

    def _on_disconnect(self, reason):
        with self._lock:
            if self.state is not AgentState.CONNECTED:
                return
            self.state = AgentState.DISCONNECTED
            self.stats.connection_closed()
        self._cancel_emitter()
        logger.info(f"Connection {self.index} disconnected: {reason}")

    def _cancel_emitter(self):
        if self._emitter is not None and not self._emitter.done():
            self._emitter.cancel()

    async def stop(self):
        with self._lock:
            previous = self.state
            self.state = AgentState.CLOSED
            if previous is AgentState.CONNECTED:
                self.stats.connection_closed()
            connection = self._connection
        self._cancel_emitter()
        if previous is AgentState.CLOSED:
            return

        # Tasks go first so nothing is counted while the close is pending
        pending = [task for task in (self._task, self._emitter) if task is not None]
        for task in pending:
            if not task.done():
                task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        if connection is not None:
            try:
                await connection.close()
            except Exception as e:
                logger.debug(f"Error closing connection {self.index}: {e}")
        logger.debug(f"Connection {self.index} stopped")

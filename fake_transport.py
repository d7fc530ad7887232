import asyncio

from load_errors import ConnectError, SendError

_CLOSED = object()


class FakeConnection:
    def __init__(self, echo=True, fail_send=False, close_delay=0):
        self.echo = echo
        self.close_delay = close_delay
        self.fail_send = fail_send
        self.sent = []
        self.closed = False
        self.close_calls = 0
        self.disconnect_reason = None
        self._inbox = asyncio.Queue()

    async def send(self, payload):
        if self.fail_send or self.closed:
            raise SendError("fake send failure")
        self.sent.append(payload)
        if self.echo:
            self._inbox.put_nowait(payload)

    def __aiter__(self):
        return self._messages()

    async def _messages(self):
        while True:
            item = await self._inbox.get()
            if item is _CLOSED:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    def push(self, message):
        self._inbox.put_nowait(message)

    def drop(self, reason='transport close'):
        # Peer-initiated disconnect
        self.closed = True
        self.disconnect_reason = reason
        self._inbox.put_nowait(_CLOSED)

    def fail(self, error):
        self.closed = True
        self._inbox.put_nowait(error)

    async def close(self):
        self.close_calls += 1
        if self.close_delay:
            await asyncio.sleep(self.close_delay)
        if not self.closed:
            self.closed = True
            self.disconnect_reason = 'client disconnect'
            self._inbox.put_nowait(_CLOSED)


class FakeTransport:
    """In-memory transport. ``fail_on`` holds connect attempts, counted from zero, that fail."""

    def __init__(self, fail_on=(), echo=True, fail_send=False, connect_delay=0, close_delay=0):
        self.close_delay = close_delay
        self.fail_on = set(fail_on)
        self.echo = echo
        self.fail_send = fail_send
        self.connect_delay = connect_delay
        self.connect_calls = 0
        self.connections = []

    async def connect(self, url):
        attempt = self.connect_calls
        self.connect_calls += 1
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if attempt in self.fail_on:
            raise ConnectError(url, "connection refused")
        connection = FakeConnection(echo=self.echo, fail_send=self.fail_send, close_delay=self.close_delay)
        self.connections.append(connection)
        return connection

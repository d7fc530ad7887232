import asyncio
import logging

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

from load_errors import ConnectError, ReceiveError, SendError

logger = logging.getLogger(__name__)

SCHEME_MAP = {
    'http://': 'ws://',
    'https://': 'wss://',
}


def to_websocket_url(url):
    # Socket servers are often addressed with their HTTP URL
    for http_scheme, ws_scheme in SCHEME_MAP.items():
        if url.startswith(http_scheme):
            return ws_scheme + url[len(http_scheme):]
    return url


class WebSocketConnection:
    def __init__(self, websocket, url):
        self.websocket = websocket
        self.url = url

    async def send(self, payload):
        try:
            await self.websocket.send(payload)
        except (ConnectionClosed, OSError) as e:
            raise SendError(f"Send to {self.url} failed: {e}") from e

    def __aiter__(self):
        return self._messages()

    async def _messages(self):
        try:
            async for message in self.websocket:
                yield message
        except ConnectionClosedOK:
            return
        except ConnectionClosed as e:
            raise ReceiveError(f"Connection to {self.url} lost: {e}") from e

    @property
    def closed(self):
        return self.websocket.close_code is not None

    @property
    def disconnect_reason(self):
        code = self.websocket.close_code
        if code is None:
            return "connection lost"
        reason = self.websocket.close_reason
        return f"code {code} ({reason})" if reason else f"code {code}"

    async def close(self):
        logger.debug(f"Closing connection to {self.url}")
        await self.websocket.close()


class WebSocketTransport:
    def __init__(self, connect_timeout=5.0):
        self.connect_timeout = connect_timeout

    async def connect(self, url):
        ws_url = to_websocket_url(url)
        try:
            websocket = await websockets.connect(ws_url, open_timeout=self.connect_timeout)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise ConnectError(ws_url, e) from e
        logger.debug(f"Socket connected to {ws_url}")
        return WebSocketConnection(websocket, ws_url)

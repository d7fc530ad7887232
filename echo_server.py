import argparse
import asyncio
import logging
import time

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from load_config import setup_logging

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3030


class EchoServer:
    """Target server for local runs: echoes every message back to its sender."""

    def __init__(self, host='localhost', port=DEFAULT_PORT):
        self.host = host
        self.port = port
        self.server = None
        # Store client connections
        self.clients = {}

    async def start(self):
        self.server = await websockets.serve(self.handle_client, self.host, self.port)
        if self.port == 0:
            self.port = self.server.sockets[0].getsockname()[1]
        logger.info(f"Echo server started on {self.host}:{self.port}")
        return self.server

    async def stop(self):
        if self.server is None:
            return
        self.server.close()
        await self.server.wait_closed()
        self.server = None
        logger.info("Echo server stopped")

    async def serve_forever(self):
        await self.start()
        try:
            await asyncio.Future()
        finally:
            await self.stop()

    def connected_count(self):
        return len(self.clients)

    async def handle_client(self, websocket):
        address = websocket.remote_address
        self.clients[websocket] = {"address": address, "connected_at": time.time()}
        logger.info(f"New connection established from {address}")
        try:
            async for message in websocket:
                logger.debug(f"Received message: {message}")
                await websocket.send(message)
        except ConnectionClosedOK:
            logger.debug(f"Connection with {address} closed mid-echo")
        except ConnectionClosed as e:
            logger.warning(f"Connection with {address} lost: {e}")
        finally:
            self.remove_client(websocket)
            logger.info(f"Connection closed for {address}")

    def remove_client(self, websocket):
        if websocket in self.clients:
            del self.clients[websocket]


def main(argv=None):
    parser = argparse.ArgumentParser(description="WebSocket echo server for load tests")
    parser.add_argument('--host', default='0.0.0.0')
    parser.add_argument('--port', type=int, default=DEFAULT_PORT)
    options = parser.parse_args(argv)

    setup_logging('echo_server.log')
    server = EchoServer(options.host, options.port)
    try:
        asyncio.run(server.serve_forever())
    except KeyboardInterrupt:
        logger.info("Echo server interrupted")
    return 0


if __name__ == "__main__":
    main()

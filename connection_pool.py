import asyncio
import logging

from connection_agent import ConnectionAgent

logger = logging.getLogger(__name__)

CLOSE_TIMEOUT = 5.0


class ConnectionPool:
    def __init__(self, config, transport, stats, message_handler=None):
        self.config = config
        self.transport = transport
        self.stats = stats
        self.message_handler = message_handler
        self.agents = []
        self._closed = False

    def __len__(self):
        return len(self.agents)

    def start_all(self):
        # The list is complete before any agent task gets to run
        self.agents = [
            ConnectionAgent(
                index,
                self.config.url,
                self.config.rate,
                self.transport,
                self.stats,
                total=self.config.connections,
                message_handler=self.message_handler,
            )
            for index in range(self.config.connections)
        ]
        for agent in self.agents:
            agent.start()
        logger.info(f"Started {len(self.agents)} connections to {self.config.url}")

    async def close_all(self, timeout=CLOSE_TIMEOUT):
        if self._closed:
            return
        self._closed = True

        stops = [asyncio.ensure_future(agent.stop()) for agent in self.agents]
        if not stops:
            return
        done, pending = await asyncio.wait(stops, timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} connections did not close within {timeout}s")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.error(f"Error stopping connection: {task.exception()}")
        logger.info(f"Closed {len(self.agents)} connections")

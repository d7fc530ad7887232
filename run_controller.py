import asyncio
import enum
import logging
import signal
import sys
import threading

from connection_pool import ConnectionPool
from load_config import parse_args, setup_logging
from reporter import Reporter, build_final_report, format_final_report
from stats_registry import StatsRegistry
from websocket_transport import WebSocketTransport

logger = logging.getLogger(__name__)

DURATION_ELAPSED = 'duration elapsed'
INTERRUPTED = 'interrupted'
STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class RunState(enum.Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    SHUTTING_DOWN = 'shutting down'
    TERMINATED = 'terminated'


class RunController:
    """Drives one run from start to final report.

    The duration timer and the interrupt handler both go through
    ``trigger_shutdown``; the latch lets only the first one through, and
    the teardown itself runs once, at the end of ``run``.
    """

    def __init__(self, config, transport=None, output=print, install_signal_handlers=True,
                 message_handler=None, report_interval=1.0):
        self.config = config
        self.transport = transport or WebSocketTransport(connect_timeout=config.connect_timeout)
        self.output = output
        self.install_signal_handlers = install_signal_handlers
        self.message_handler = message_handler
        self.report_interval = report_interval
        self.state = RunState.IDLE
        self.stats = None
        self.pool = None
        self.reporter = None
        self.shutdown_reason = None
        self._latch = threading.Lock()
        self._loop = None
        self._stop_event = None
        self._timer = None
        self._installed_signals = []
        self._previous_handlers = {}
        self._fallback_signals = set()

    async def run(self):
        if self.state is not RunState.IDLE:
            raise RuntimeError(f"Run already {self.state.value}")
        self._loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()

        self._print_banner()
        self.stats = StatsRegistry()
        self.pool = ConnectionPool(self.config, self.transport, self.stats,
                                   message_handler=self.message_handler)
        self.reporter = Reporter(self.stats, interval=self.report_interval, output=self.output)
        self.state = RunState.RUNNING

        self.pool.start_all()
        self.reporter.start()
        self._timer = self._loop.call_later(self.config.duration, self.trigger_shutdown, DURATION_ELAPSED)
        if self.install_signal_handlers:
            self._install_signal_handlers()

        with self._latch:
            if self.shutdown_reason is not None:
                self._stop_event.set()
        await self._stop_event.wait()
        return await self._shutdown()

    def trigger_shutdown(self, reason):
        with self._latch:
            if self.shutdown_reason is not None:
                return False
            self.shutdown_reason = reason
            loop = self._loop
        logger.info(f"Shutting down: {reason}")
        if loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(self._stop_event.set)
        return True

    def interrupt(self):
        logger.info("Interrupt received, stopping test")
        return self.trigger_shutdown(INTERRUPTED)

    async def _shutdown(self):
        self.state = RunState.SHUTTING_DOWN
        self._timer.cancel()
        self._remove_signal_handlers()
        # Close handshakes do not count towards the run time
        duration = self.stats.elapsed()

        # Stop progress output before the summary is printed
        await self.reporter.stop()
        await self.pool.close_all()

        report = build_final_report(self.stats.snapshot(), self.config.connections, self.shutdown_reason,
                                    duration=duration)
        self.output(format_final_report(report))
        self.state = RunState.TERMINATED
        return report

    def _print_banner(self):
        self.output('\n'.join([
            "Starting WebSocket load test",
            f"Server: {self.config.url}",
            f"Connections: {self.config.connections}",
            f"Duration: {self.config.duration} seconds",
            f"Rate: {self.config.rate} msg/s per connection",
            '-' * 40,
        ]))

    def _install_signal_handlers(self):
        for sig in STOP_SIGNALS:
            previous = signal.getsignal(sig)
            try:
                self._loop.add_signal_handler(sig, self.interrupt)
            except NotImplementedError:
                # Loops without add_signal_handler (Windows)
                signal.signal(sig, self._on_signal)
                self._fallback_signals.add(sig)
            except (RuntimeError, ValueError) as e:
                logger.warning(f"Could not install handler for {sig.name}: {e}")
                continue
            self._previous_handlers[sig] = previous
            self._installed_signals.append(sig)

    def _on_signal(self, signum, frame):
        self._loop.call_soon_threadsafe(self.interrupt)

    def _remove_signal_handlers(self):
        for sig in self._installed_signals:
            previous = self._previous_handlers.pop(sig, None)
            if sig in self._fallback_signals:
                self._fallback_signals.discard(sig)
            else:
                self._loop.remove_signal_handler(sig)
            # Handlers set outside Python report as None and cannot be restored
            if previous is not None:
                signal.signal(sig, previous)
        self._installed_signals = []


def main(argv=None, transport=None):
    config, options = parse_args(argv)
    setup_logging(options.log_file, options.log_level)
    controller = RunController(config, transport=transport)
    asyncio.run(controller.run())
    return 0


def cli():
    sys.exit(main())


if __name__ == "__main__":
    cli()

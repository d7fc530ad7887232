import asyncio
import logging
from collections import namedtuple

logger = logging.getLogger(__name__)

SEPARATOR = '-' * 40

FinalReport = namedtuple('FinalReport', [
    'reason',
    'duration',
    'configured_connections',
    'achieved_connections',
    'sent',
    'received',
    'errors',
    'avg_throughput',
    'received_throughput',
    'error_rate',
])


def format_progress(snapshot):
    elapsed = snapshot.elapsed
    throughput = snapshot.sent / elapsed if elapsed > 0 else 0.0
    minutes, seconds = divmod(int(elapsed), 60)
    return (
        f"{minutes}:{seconds:02d} | connected {snapshot.connected} | sent {snapshot.sent} | "
        f"received {snapshot.received} | errors {snapshot.errors} | {throughput:.1f} msg/s"
    )


def build_final_report(snapshot, configured_connections, reason, duration=None):
    """Summarise a run. ``duration`` defaults to the snapshot's elapsed time."""
    if duration is None:
        duration = snapshot.elapsed
    total_messages = snapshot.sent + snapshot.received
    return FinalReport(
        reason=reason,
        duration=duration,
        configured_connections=configured_connections,
        achieved_connections=snapshot.peak_connected,
        sent=snapshot.sent,
        received=snapshot.received,
        errors=snapshot.errors,
        avg_throughput=snapshot.sent / duration if duration > 0 else 0.0,
        received_throughput=snapshot.received / duration if duration > 0 else 0.0,
        error_rate=snapshot.errors / total_messages * 100 if total_messages else 0.0,
    )


def format_final_report(report):
    return '\n'.join([
        f"Test completed ({report.reason})",
        SEPARATOR,
        "FINAL STATISTICS",
        SEPARATOR,
        f"Total duration: {report.duration:.2f} seconds",
        f"Configured connections: {report.configured_connections}",
        f"Achieved connections: {report.achieved_connections}",
        f"Messages sent: {report.sent}",
        f"Messages received: {report.received}",
        f"Errors: {report.errors}",
        f"Average throughput: {report.avg_throughput:.2f} msg/s",
        f"Received throughput: {report.received_throughput:.2f} msg/s",
        f"Error rate: {report.error_rate:.2f}%",
        SEPARATOR,
    ])


class Reporter:
    """Prints a progress line from the shared stats on a fixed period."""

    def __init__(self, stats, interval=1.0, output=print):
        self.stats = stats
        self.interval = interval
        self.output = output
        self._task = None

    @property
    def running(self):
        return self._task is not None and not self._task.done()

    def start(self):
        self._task = asyncio.ensure_future(self._tick())
        return self._task

    async def _tick(self):
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.output(format_progress(self.stats.snapshot()))
            except Exception as e:
                logger.error(f"Error writing progress: {e}", exc_info=True)

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        logger.debug("Reporter stopped")

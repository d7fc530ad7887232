import argparse
import logging
from dataclasses import dataclass

from load_errors import ConfigError

DEFAULT_RATE = 1
DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_LOG_FILE = 'load_test.log'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

EXAMPLES = (
    "examples:\n"
    "  websocket-load-test -url=ws://localhost:3030 -connections=500 -duration=30\n"
    "  websocket-load-test -url=ws://localhost:3030 -connections=1000 -duration=60 -rate=2"
)


@dataclass(frozen=True)
class RunConfig:
    url: str
    connections: int
    duration: int
    rate: int = DEFAULT_RATE
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT

    def __post_init__(self):
        if not self.url:
            raise ConfigError("server URL is required")
        if self.connections is None or self.connections <= 0:
            raise ConfigError("connections is required and must be greater than 0")
        if self.duration is None or self.duration <= 0:
            raise ConfigError("duration is required and must be greater than 0")
        if self.rate is None or self.rate <= 0:
            raise ConfigError("rate must be greater than 0")
        if self.connect_timeout <= 0:
            raise ConfigError("connect timeout must be greater than 0")


def build_parser():
    parser = argparse.ArgumentParser(
        prog='websocket-load-test',
        description="Load test for real-time WebSocket servers",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    # Single-dash long options keep the "-url=..." style working
    parser.add_argument('-url', '--url', dest='url', required=True,
                        help="server URL (e.g. ws://localhost:3030)")
    parser.add_argument('-connections', '--connections', dest='connections', type=int, required=True,
                        help="number of simultaneous connections")
    parser.add_argument('-duration', '--duration', dest='duration', type=int, required=True,
                        help="test duration in seconds")
    parser.add_argument('-rate', '--rate', dest='rate', type=int, default=DEFAULT_RATE,
                        help="messages per second per connection (default: 1)")
    parser.add_argument('-connect-timeout', '--connect-timeout', dest='connect_timeout', type=float,
                        default=DEFAULT_CONNECT_TIMEOUT,
                        help="seconds to wait for each connection to open (default: 5)")
    parser.add_argument('-log-file', '--log-file', dest='log_file', default=DEFAULT_LOG_FILE,
                        help="debug log file, empty to disable (default: load_test.log)")
    parser.add_argument('-log-level', '--log-level', dest='log_level', default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help="console log level (default: INFO)")
    return parser


def parse_args(argv=None):
    """Parse and validate the command line.

    Returns ``(config, options)``. Invalid input prints usage and exits
    with status 2 before anything is connected.
    """
    parser = build_parser()
    options = parser.parse_args(argv)
    try:
        config = RunConfig(
            url=options.url,
            connections=options.connections,
            duration=options.duration,
            rate=options.rate,
            connect_timeout=options.connect_timeout,
        )
    except ConfigError as e:
        parser.error(str(e))
    return config, options


def setup_logging(log_file=DEFAULT_LOG_FILE, console_level='INFO'):
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    formatter = logging.Formatter(LOG_FORMAT)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='a')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # Add console logging
    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

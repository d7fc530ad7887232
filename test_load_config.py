import io
import logging
import unittest
from unittest.mock import patch

from load_config import RunConfig, parse_args, setup_logging
from load_errors import ConfigError


class TestRunConfig(unittest.TestCase):
    def test_defaults(self):
        config = RunConfig(url='ws://localhost:3030', connections=10, duration=30)
        self.assertEqual(config.rate, 1)
        self.assertEqual(config.connect_timeout, 5.0)

    def test_immutable(self):
        config = RunConfig(url='ws://localhost:3030', connections=10, duration=30)
        with self.assertRaises(AttributeError):
            config.connections = 20

    def test_invalid_values(self):
        cases = [
            dict(url='', connections=1, duration=1),
            dict(url='ws://x', connections=0, duration=1),
            dict(url='ws://x', connections=-3, duration=1),
            dict(url='ws://x', connections=1, duration=0),
            dict(url='ws://x', connections=1, duration=1, rate=0),
            dict(url='ws://x', connections=1, duration=1, connect_timeout=0),
        ]
        for kwargs in cases:
            with self.subTest(**kwargs):
                with self.assertRaises(ConfigError):
                    RunConfig(**kwargs)


class TestParseArgs(unittest.TestCase):
    def test_single_dash_equals_style(self):
        config, options = parse_args([
            '-url=http://localhost:3030', '-connections=500', '-duration=30', '-rate=2'])
        self.assertEqual(config, RunConfig('http://localhost:3030', 500, 30, 2))
        self.assertEqual(options.log_level, 'INFO')

    def test_double_dash_style(self):
        config, _ = parse_args(['--url', 'ws://localhost:3030', '--connections', '5', '--duration', '10'])
        self.assertEqual(config.connections, 5)
        self.assertEqual(config.rate, 1)

    def assertUsageExit(self, argv):
        with patch('sys.stderr', new_callable=io.StringIO) as stderr:
            with self.assertRaises(SystemExit) as ctx:
                parse_args(argv)
        self.assertNotEqual(ctx.exception.code, 0)
        self.assertIn("usage:", stderr.getvalue())

    def test_missing_url(self):
        self.assertUsageExit(['-connections=5', '-duration=10'])

    def test_zero_connections(self):
        self.assertUsageExit(['-url=ws://x', '-connections=0', '-duration=10'])

    def test_negative_duration(self):
        self.assertUsageExit(['-url=ws://x', '-connections=1', '-duration=-1'])

    def test_non_numeric_rate(self):
        self.assertUsageExit(['-url=ws://x', '-connections=1', '-duration=1', '-rate=fast'])


class TestSetupLogging(unittest.TestCase):
    def setUp(self):
        self.root = logging.getLogger()
        self.saved_handlers = list(self.root.handlers)
        self.saved_level = self.root.level

    def tearDown(self):
        for handler in self.root.handlers:
            if handler not in self.saved_handlers:
                handler.close()
        self.root.handlers = self.saved_handlers
        self.root.setLevel(self.saved_level)

    def test_console_only(self):
        setup_logging(log_file='', console_level='WARNING')
        added = [h for h in self.root.handlers if h not in self.saved_handlers]
        self.assertEqual(len(added), 1)
        self.assertEqual(added[0].level, logging.WARNING)

    @patch('logging.FileHandler')
    def test_file_and_console(self, mock_file_handler):
        mock_file_handler.return_value.level = logging.DEBUG
        setup_logging(log_file='run.log')
        mock_file_handler.assert_called_once_with('run.log', mode='a')


if __name__ == '__main__':
    unittest.main()

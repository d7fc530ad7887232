class LoadTestError(Exception):
    """Base class for load test failures."""


class ConfigError(LoadTestError):
    # Raised before the run starts; fatal
    pass


class ConnectError(LoadTestError):
    def __init__(self, url, cause):
        super().__init__(f"Could not connect to {url}: {cause}")
        self.url = url
        self.cause = cause


class SendError(LoadTestError):
    pass


class ReceiveError(LoadTestError):
    pass
